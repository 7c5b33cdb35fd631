"""Action dispatchers — invoked with the search response when a condition holds.

Executing the actions themselves (e-mail, webhooks, ...) belongs to the
host application; it plugs in by implementing ``ActionDispatcher``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Mapping

from watcher_engine.logging import get_logger
from watcher_engine.templates.builtin import hit_total

if TYPE_CHECKING:
    from watcher_engine.models import Task

log = get_logger(__name__)


class ActionDispatcher(ABC):
    @abstractmethod
    async def dispatch(
        self,
        response: Mapping[str, Any],
        actions: Mapping[str, Any],
        task: "Task",
    ) -> None:
        """Hand the matched *response* and the task's *actions* to the action subsystem."""


class NullActionDispatcher(ActionDispatcher):
    async def dispatch(self, response, actions, task) -> None:
        pass


class LogActionDispatcher(ActionDispatcher):
    """Logs one record per action instead of executing it."""

    async def dispatch(self, response, actions, task) -> None:
        hits = hit_total(response)
        for name, action in actions.items():
            kind = next(iter(action), None) if isinstance(action, Mapping) else None
            log.info(
                "watcher_action_dispatched",
                watcher_id=task.id,
                action=name,
                action_type=kind,
                hits=hits,
            )
