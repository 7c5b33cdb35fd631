"""Template registry — the only place template plugins come from.

Plugins are Python classes registered ahead of time, either explicitly::

    registry = TemplateRegistry()
    registry.register(ThresholdTemplate)

    @registry.register
    class MyTemplate(WatcherTemplate):
        TEMPLATE_ID = "my_template"
        ...

or through the ``watcher_engine.templates`` entry-point group of an installed
distribution::

    [project.entry-points."watcher_engine.templates"]
    error_ratio = "acme_watchers.templates:ErrorRatioTemplate"
"""

from __future__ import annotations

import importlib.metadata
from typing import Any, Mapping, Type

from watcher_engine.logging import get_logger
from watcher_engine.templates.base import WatcherTemplate
from watcher_engine.templates.builtin import BUILTIN_TEMPLATES

log = get_logger(__name__)

ENTRY_POINT_GROUP = "watcher_engine.templates"


class TemplateRegistry:
    """Runtime registry of template plugin classes keyed by ``TEMPLATE_ID``."""

    def __init__(self) -> None:
        self._classes: dict[str, Type[WatcherTemplate]] = {}

    def register(self, template_class: Type[WatcherTemplate]) -> Type[WatcherTemplate]:
        """Register *template_class*.  Returns it so this works as a decorator."""
        if not isinstance(template_class, type) or not issubclass(template_class, WatcherTemplate):
            raise TypeError(f"{template_class!r} is not a WatcherTemplate subclass.")
        template_id = template_class.TEMPLATE_ID
        if not template_id:
            raise ValueError(f"Template class {template_class.__name__} has no TEMPLATE_ID.")

        if template_id in self._classes and self._classes[template_id] is not template_class:
            log.warning("template_already_registered", template_id=template_id)

        self._classes[template_id] = template_class
        log.debug("template_registered", template_id=template_id)
        return template_class

    def get(self, template_id: str) -> Type[WatcherTemplate]:
        """Return the class registered as *template_id*.

        Raises:
            KeyError: Nothing is registered under that id.
        """
        try:
            return self._classes[template_id]
        except KeyError:
            raise KeyError(f"No template plugin registered as '{template_id}'") from None

    def create(self, template_id: str, options: Mapping[str, Any] | None = None) -> WatcherTemplate:
        """Instantiate a fresh template.  Never cached: one instance per resolution."""
        return self.get(template_id)(options)

    def is_registered(self, template_id: str) -> bool:
        return template_id in self._classes

    def list_ids(self) -> list[str]:
        return sorted(self._classes)

    def describe(self) -> dict[str, str]:
        return {tid: cls.DESCRIPTION for tid, cls in sorted(self._classes.items())}

    def discover_entry_points(self, group: str = ENTRY_POINT_GROUP) -> list[str]:
        """Register every template class exposed in *group*.

        A plugin that fails to import is logged and skipped.
        """
        loaded: list[str] = []
        for ep in importlib.metadata.entry_points(group=group):
            try:
                self.register(ep.load())
                loaded.append(ep.name)
            except Exception as exc:
                log.warning("template_plugin_load_failed", entry_point=ep.name, error=str(exc))
        if loaded:
            log.info("template_plugins_discovered", plugins=loaded)
        return loaded


def default_registry(load_entry_points: bool = False) -> TemplateRegistry:
    """Return a registry holding the built-in templates (plus installed plugins)."""
    registry = TemplateRegistry()
    for template_class in BUILTIN_TEMPLATES:
        registry.register(template_class)
    if load_entry_points:
        registry.discover_entry_points()
    return registry
