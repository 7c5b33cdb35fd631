"""Watcher Engine — Exception hierarchy.

All exceptions raised by the engine inherit from WatcherEngineError so that
callers (typically an external scheduler) can catch the full family with a
single except clause.

Hierarchy:
    WatcherEngineError
    ├── ScheduleError
    │   └── InvalidScheduleError
    ├── RequestBuildError
    │   ├── FilterCompilationError
    │   └── SearchRequestError
    ├── TemplateError
    │   ├── TemplateNotFoundError
    │   ├── TemplateLoadError
    │   └── TemplateRuntimeError
    ├── SearchBackendError
    ├── ActionDispatchError
    └── FederationDetectionError
"""

from __future__ import annotations

from typing import Any


class WatcherEngineError(Exception):
    """Base exception for all Watcher Engine errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context or {}

    def relabel(self, prefix: str) -> None:
        """Prefix the message in place so the re-raised error carries it."""
        self.message = prefix + self.message
        self.args = (self.message, *self.args[1:])

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context})"


# ---------------------------------------------------------------------------
# Schedule
# ---------------------------------------------------------------------------


class ScheduleError(WatcherEngineError):
    """Base for recurrence-expression errors."""


class InvalidScheduleError(ScheduleError):
    """The recurrence expression could not be parsed.  Terminal for the run."""

    def __init__(self, expression: str, reason: str) -> None:
        super().__init__(
            f"Invalid schedule '{expression}': {reason}",
            context={"expression": expression, "reason": reason},
        )
        self.expression = expression
        self.reason = reason


# ---------------------------------------------------------------------------
# Request building
# ---------------------------------------------------------------------------


class RequestBuildError(WatcherEngineError):
    """Base for errors raised while assembling the search request."""


class FilterCompilationError(RequestBuildError):
    """A filter descriptor cannot be turned into a query clause."""

    def __init__(self, reason: str, position: int | None = None) -> None:
        where = f" (filter #{position})" if position is not None else ""
        super().__init__(
            f"Cannot compile filter{where}: {reason}",
            context={"position": position, "reason": reason},
        )
        self.position = position


class SearchRequestError(RequestBuildError):
    """The task's base search request is missing a required fragment."""


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


class TemplateError(WatcherEngineError):
    """Base for template resolution and template runtime errors."""


class TemplateNotFoundError(TemplateError):
    """No script record matches the requested title exactly."""

    def __init__(self, title: str) -> None:
        super().__init__(
            f"Could not find custom watcher type {title}",
            context={"title": title},
        )
        self.title = title


class TemplateLoadError(TemplateError):
    """The script record was found but could not be turned into a template."""

    def __init__(self, title: str, reason: str) -> None:
        super().__init__(
            f"Template '{title}' failed to load: {reason}",
            context={"title": title, "reason": reason},
        )
        self.title = title
        self.reason = reason


class TemplateRuntimeError(TemplateError):
    """A template's search or condition hook raised an unexpected error."""

    def __init__(self, template_id: str, hook: str, cause: Exception) -> None:
        super().__init__(
            f"Template '{template_id}' {hook} failed: {cause}",
            context={"template_id": template_id, "hook": hook, "cause": str(cause)},
        )
        self.template_id = template_id
        self.hook = hook
        self.cause = cause


# ---------------------------------------------------------------------------
# Search backend
# ---------------------------------------------------------------------------


class SearchBackendError(WatcherEngineError):
    """The search transport or the backend itself rejected the request."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        ctx = dict(context or {})
        if status_code is not None:
            ctx["status_code"] = status_code
        super().__init__(message, context=ctx)
        self.status_code = status_code


class ActionDispatchError(WatcherEngineError):
    """The action dispatcher rejected the matched response."""

    def __init__(self, cause: Exception) -> None:
        super().__init__(
            f"Action dispatch failed: {cause}",
            context={"cause": str(cause)},
        )
        self.cause = cause


class FederationDetectionError(WatcherEngineError):
    """Probing for the federation extension failed.  Always recoverable."""
