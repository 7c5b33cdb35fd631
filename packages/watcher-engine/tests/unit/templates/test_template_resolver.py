"""Unit tests — TemplateResolver and ScriptSource."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from watcher_engine.exceptions import TemplateLoadError, TemplateNotFoundError
from watcher_engine.templates.builtin import AbsenceTemplate, ThresholdTemplate
from watcher_engine.templates.registry import TemplateRegistry, default_registry
from watcher_engine.templates.resolver import ScriptSource, TemplateResolver
from watcher_engine.templates.store import AuthContext, InMemoryScriptStore


@pytest.fixture
def store() -> InMemoryScriptStore:
    s = InMemoryScriptStore()
    s.add_script("a", "errors", json.dumps({"template": "threshold", "options": {"threshold": 5}}))
    s.add_script("b", "errors-eu", json.dumps({"template": "absence"}))
    return s


@pytest.mark.unit
class TestScriptSource:
    def test_json(self) -> None:
        source = ScriptSource.parse('{"template": "threshold", "options": {"threshold": 2}}')
        assert source.template == "threshold"
        assert source.options == {"threshold": 2}

    def test_yaml(self) -> None:
        source = ScriptSource.parse("template: absence\noptions:\n  index: logs\n")
        assert source.template == "absence"
        assert source.options == {"index": "logs"}

    def test_options_default_to_empty(self) -> None:
        assert ScriptSource.parse('{"template": "absence"}').options == {}

    @pytest.mark.parametrize(
        "text",
        [
            "just a string",
            "[1, 2]",
            '{"options": {}}',
            '{"template": ""}',
            '{"template": "x", "code": "import os"}',
            "template: [unclosed",
        ],
    )
    def test_rejects_bad_documents(self, text: str) -> None:
        with pytest.raises(ValueError):
            ScriptSource.parse(text)


@pytest.mark.unit
class TestTemplateResolver:
    async def test_exact_title_match(self, store) -> None:
        template = await TemplateResolver(store).resolve("errors")
        assert isinstance(template, ThresholdTemplate)
        assert template.options == {"threshold": 5}

    async def test_near_match_is_not_accepted(self, store) -> None:
        template = await TemplateResolver(store).resolve("errors-eu")
        assert isinstance(template, AbsenceTemplate)
        with pytest.raises(TemplateNotFoundError):
            await TemplateResolver(store).resolve("error")

    async def test_not_found_message(self, store) -> None:
        with pytest.raises(TemplateNotFoundError) as exc_info:
            await TemplateResolver(store).resolve("missing")
        assert exc_info.value.message == "Could not find custom watcher type missing"
        assert exc_info.value.title == "missing"

    async def test_fresh_instance_per_call(self, store) -> None:
        resolver = TemplateResolver(store)
        first = await resolver.resolve("errors")
        second = await resolver.resolve("errors")
        assert first is not second

    async def test_missing_script_source(self) -> None:
        store = InMemoryScriptStore()
        store.add_script("a", "empty", "   ")
        with pytest.raises(TemplateLoadError) as exc_info:
            await TemplateResolver(store).resolve("empty")
        assert "scriptSource" in exc_info.value.reason

    async def test_unparseable_script_source(self) -> None:
        store = InMemoryScriptStore()
        store.add_script("a", "legacy", "function search() { return 1 }")
        with pytest.raises(TemplateLoadError):
            await TemplateResolver(store).resolve("legacy")

    async def test_unregistered_plugin(self) -> None:
        store = InMemoryScriptStore()
        store.add_script("a", "x", json.dumps({"template": "does_not_exist"}))
        with pytest.raises(TemplateLoadError) as exc_info:
            await TemplateResolver(store, TemplateRegistry()).resolve("x")
        assert "does_not_exist" in exc_info.value.reason

    async def test_invalid_options(self) -> None:
        store = InMemoryScriptStore()
        store.add_script("a", "x", json.dumps({"template": "threshold", "options": {"operator": "~="}}))
        with pytest.raises(TemplateLoadError) as exc_info:
            await TemplateResolver(store, default_registry()).resolve("x")
        assert "~=" in exc_info.value.reason

    async def test_store_failure_becomes_load_error(self) -> None:
        store = MagicMock()
        store.find = AsyncMock(side_effect=OSError("disk gone"))
        with pytest.raises(TemplateLoadError) as exc_info:
            await TemplateResolver(store).resolve("errors")
        assert "disk gone" in exc_info.value.message

    async def test_auth_context_is_passed_to_store(self) -> None:
        store = InMemoryScriptStore(required_roles=["sirenalert"])
        store.add_script("a", "errors", json.dumps({"template": "absence"}))

        with pytest.raises(TemplateNotFoundError):
            await TemplateResolver(store, auth=AuthContext(roles=("viewer",))).resolve("errors")

        template = await TemplateResolver(store, auth=AuthContext(roles=("sirenalert",))).resolve("errors")
        assert isinstance(template, AbsenceTemplate)
