"""Template resolver — script title to a live WatcherTemplate.

Resolution steps:

1. ``store.find({type: "script", search: title, searchFields: ["title"]})``
2. keep the record whose ``attributes.title`` equals *title* exactly
   (the search may return near matches)
3. parse ``attributes.scriptSource`` as a declarative document::

       {"template": "threshold", "options": {"threshold": 10, "operator": "gt"}}

   JSON or YAML.  The text is data only: it is never executed.
4. instantiate the plugin registered under ``template`` with ``options``

A new instance is produced on every call; nothing is cached.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from watcher_engine.exceptions import TemplateLoadError, TemplateNotFoundError, WatcherEngineError
from watcher_engine.logging import get_logger
from watcher_engine.templates.base import WatcherTemplate
from watcher_engine.templates.registry import TemplateRegistry, default_registry
from watcher_engine.templates.store import AuthContext, ScriptQuery, ScriptStore

log = get_logger(__name__)


class ScriptSource(BaseModel):
    """Validated content of a script record's ``scriptSource``."""

    model_config = ConfigDict(extra="forbid")

    template: str = Field(min_length=1)
    options: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def parse(cls, text: str) -> "ScriptSource":
        """Parse JSON, falling back to YAML.

        Raises:
            ValueError: The text is not a mapping of the expected shape.
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            import yaml

            try:
                data = yaml.safe_load(text)
            except yaml.YAMLError as exc:
                raise ValueError(f"scriptSource is neither JSON nor YAML: {exc}") from exc
        if not isinstance(data, dict):
            raise ValueError("scriptSource must be a mapping with a 'template' key")
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"invalid scriptSource: {exc.errors(include_url=False)}") from exc


class TemplateResolver:
    """Resolves watcher templates by exact title."""

    def __init__(
        self,
        store: ScriptStore,
        registry: TemplateRegistry | None = None,
        auth: AuthContext | None = None,
    ) -> None:
        self._store = store
        self._registry = registry or default_registry()
        self._auth = auth or AuthContext()

    @property
    def registry(self) -> TemplateRegistry:
        return self._registry

    async def resolve(self, title: str) -> WatcherTemplate:
        """Return a fresh template instance for the script titled *title*.

        Raises:
            TemplateNotFoundError: No script record has exactly this title.
            TemplateLoadError:     The record exists but cannot be loaded.
        """
        query = ScriptQuery(search=title, search_fields=("title",))
        try:
            result = await self._store.find(query, self._auth)
        except WatcherEngineError:
            raise
        except Exception as exc:
            raise TemplateLoadError(title, f"script store lookup failed: {exc}") from exc

        record = next(
            (obj for obj in result.saved_objects if obj.attributes.get("title") == title),
            None,
        )
        if record is None:
            log.debug("template_no_exact_match", title=title, candidates=result.total)
            raise TemplateNotFoundError(title)

        source_text = record.attributes.get("scriptSource")
        if not isinstance(source_text, str) or not source_text.strip():
            raise TemplateLoadError(title, "script record has no scriptSource")

        try:
            source = ScriptSource.parse(source_text)
        except ValueError as exc:
            raise TemplateLoadError(title, str(exc)) from exc

        if not self._registry.is_registered(source.template):
            raise TemplateLoadError(title, f"no template plugin registered as '{source.template}'")

        try:
            template = self._registry.create(source.template, source.options)
        except (TypeError, ValueError) as exc:
            raise TemplateLoadError(title, f"invalid options for '{source.template}': {exc}") from exc

        log.debug("template_resolved", title=title, template_id=template.template_id, record_id=record.id)
        return template
