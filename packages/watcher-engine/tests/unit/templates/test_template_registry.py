"""Unit tests — TemplateRegistry."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from watcher_engine.templates.base import WatcherTemplate
from watcher_engine.templates.registry import ENTRY_POINT_GROUP, TemplateRegistry, default_registry


class ErrorRatioTemplate(WatcherTemplate):
    TEMPLATE_ID = "error_ratio"
    DESCRIPTION = "Ratio of error hits."

    async def search(self, client, params, custom_params):
        return {}

    def condition(self, response, params, custom_params):
        return False


def _entry_point(name: str, target=None, error: Exception | None = None) -> MagicMock:
    ep = MagicMock()
    ep.name = name
    if error is not None:
        ep.load.side_effect = error
    else:
        ep.load.return_value = target
    return ep


@pytest.mark.unit
class TestRegistration:
    def test_register_and_create(self) -> None:
        registry = TemplateRegistry()
        registry.register(ErrorRatioTemplate)
        assert registry.is_registered("error_ratio")
        assert registry.get("error_ratio") is ErrorRatioTemplate
        instance = registry.create("error_ratio", {"ratio": 0.1})
        assert isinstance(instance, ErrorRatioTemplate)
        assert instance.options == {"ratio": 0.1}

    def test_create_returns_new_instances(self) -> None:
        registry = TemplateRegistry()
        registry.register(ErrorRatioTemplate)
        assert registry.create("error_ratio") is not registry.create("error_ratio")

    def test_register_as_decorator(self) -> None:
        registry = TemplateRegistry()

        @registry.register
        class Decorated(ErrorRatioTemplate):
            TEMPLATE_ID = "decorated"

        assert registry.get("decorated") is Decorated

    def test_rejects_non_template(self) -> None:
        with pytest.raises(TypeError):
            TemplateRegistry().register(dict)  # type: ignore[arg-type]

    def test_rejects_missing_id(self) -> None:
        class Anonymous(ErrorRatioTemplate):
            TEMPLATE_ID = ""

        with pytest.raises(ValueError):
            TemplateRegistry().register(Anonymous)

    def test_get_unknown(self) -> None:
        with pytest.raises(KeyError):
            TemplateRegistry().get("nope")

    def test_default_registry_builtins(self) -> None:
        registry = default_registry()
        assert registry.list_ids() == ["absence", "aggregation_threshold", "threshold"]
        assert set(registry.describe()) == set(registry.list_ids())
        assert all(registry.describe().values())


@pytest.mark.unit
class TestEntryPoints:
    def test_discovers_plugins(self) -> None:
        registry = TemplateRegistry()
        with patch(
            "watcher_engine.templates.registry.importlib.metadata.entry_points",
            return_value=[_entry_point("error_ratio", ErrorRatioTemplate)],
        ) as mock_eps:
            loaded = registry.discover_entry_points()

        mock_eps.assert_called_once_with(group=ENTRY_POINT_GROUP)
        assert loaded == ["error_ratio"]
        assert registry.is_registered("error_ratio")

    def test_broken_plugin_is_skipped(self) -> None:
        registry = TemplateRegistry()
        eps = [
            _entry_point("broken", error=ImportError("missing dependency")),
            _entry_point("not_a_template", target=object),
            _entry_point("error_ratio", ErrorRatioTemplate),
        ]
        with patch(
            "watcher_engine.templates.registry.importlib.metadata.entry_points",
            return_value=eps,
        ):
            loaded = registry.discover_entry_points()

        assert loaded == ["error_ratio"]
        assert registry.list_ids() == ["error_ratio"]

    def test_default_registry_can_load_entry_points(self) -> None:
        with patch(
            "watcher_engine.templates.registry.importlib.metadata.entry_points",
            return_value=[_entry_point("error_ratio", ErrorRatioTemplate)],
        ):
            registry = default_registry(load_entry_points=True)
        assert "error_ratio" in registry.list_ids()
        assert "threshold" in registry.list_ids()
