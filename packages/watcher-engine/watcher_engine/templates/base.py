"""WatcherTemplate — base class for all watcher template plugins.

A template bundles the two user-facing hooks of a custom watcher:

search(client, params, custom_params)      → backend response (async)
condition(response, params, custom_params) → bool

``params`` is the merged search params (``defaultRequest`` plus the task's
own request keys); ``custom_params`` is ``task.custom.params``.

Templates are registered classes, never code fetched at run time.  A script
record only selects a plugin by ``TEMPLATE_ID`` and supplies its
``options``.  Implementations must:
1. Set a unique ``TEMPLATE_ID``
2. Validate ``options`` in ``__init__`` (raise ValueError on bad input)
3. Keep no state between executions
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Mapping

if TYPE_CHECKING:
    from watcher_engine.search.transport import SearchClient


class WatcherTemplate(ABC):
    """Abstract base for template plugins."""

    TEMPLATE_ID: str = ""
    DESCRIPTION: str = ""

    def __init__(self, options: Mapping[str, Any] | None = None) -> None:
        self.options: dict[str, Any] = dict(options or {})

    @property
    def template_id(self) -> str:
        return self.TEMPLATE_ID or self.__class__.__name__

    def setting(self, name: str, custom_params: Mapping[str, Any], default: Any = None) -> Any:
        """Task-level ``custom_params`` win over script ``options``."""
        if name in custom_params:
            return custom_params[name]
        return self.options.get(name, default)

    @abstractmethod
    async def search(
        self,
        client: "SearchClient",
        params: Mapping[str, Any],
        custom_params: Mapping[str, Any],
    ) -> dict[str, Any]:
        """Run the watcher's search and return the backend response."""

    @abstractmethod
    def condition(
        self,
        response: Mapping[str, Any],
        params: Mapping[str, Any],
        custom_params: Mapping[str, Any],
    ) -> bool:
        """Return True when the response should trigger the watcher's actions."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(options={self.options})"
