"""Watcher Engine — Structured logging configuration.

Uses structlog for structured, levelled logging with consistent key names
across the engine.  All log entries include:
    - timestamp (ISO-8601, UTC)
    - level
    - logger (Python logger name)
    - watcher_id / watcher_title / run_id (bound per execution when available)
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import Any

import structlog
from structlog.types import EventDict, WrappedLogger

from watcher_engine.config import LoggingConfig

# Context variables, automatically injected into log records when set.
_ctx_watcher_id: ContextVar[str | None] = ContextVar("watcher_id", default=None)
_ctx_watcher_title: ContextVar[str | None] = ContextVar("watcher_title", default=None)
_ctx_run_id: ContextVar[str | None] = ContextVar("run_id", default=None)


def bind_watcher_context(
    watcher_id: str | None = None,
    watcher_title: str | None = None,
    run_id: str | None = None,
) -> None:
    """Bind execution context to the current async task."""
    if watcher_id is not None:
        _ctx_watcher_id.set(watcher_id)
    if watcher_title is not None:
        _ctx_watcher_title.set(watcher_title)
    if run_id is not None:
        _ctx_run_id.set(run_id)


def clear_watcher_context() -> None:
    _ctx_watcher_id.set(None)
    _ctx_watcher_title.set(None)
    _ctx_run_id.set(None)


# ---------------------------------------------------------------------------
# Custom processors
# ---------------------------------------------------------------------------


def _inject_context_vars(
    _logger: WrappedLogger, _method: str, event_dict: EventDict
) -> EventDict:
    """Add ContextVar values to every log record."""
    if (watcher_id := _ctx_watcher_id.get()) is not None:
        event_dict.setdefault("watcher_id", watcher_id)
    if (watcher_title := _ctx_watcher_title.get()) is not None:
        event_dict.setdefault("watcher_title", watcher_title)
    if (run_id := _ctx_run_id.get()) is not None:
        event_dict.setdefault("run_id", run_id)
    return event_dict


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

_SHARED_PROCESSORS: list[Any] = [
    structlog.contextvars.merge_contextvars,
    _inject_context_vars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.StackInfoRenderer(),
]


def _renderer(format: str) -> Any:
    if format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def _handlers(formatter: logging.Formatter, log_file: Path | None) -> list[logging.Handler]:
    # stdout is reserved for command output (``watchers preview --json``).
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Configure structlog and stdlib logging from *config*.

    Call once at process startup.  Embedding applications that configure
    logging themselves can skip this: engine loggers then go through
    structlog's defaults.
    """
    config = config or LoggingConfig()

    structlog.configure(
        processors=[
            *_SHARED_PROCESSORS,
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_SHARED_PROCESSORS,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(config.format),
        ],
    )

    root_logger = logging.getLogger()
    root_logger.handlers = _handlers(formatter, config.file)
    root_logger.setLevel(config.level.upper())

    # httpx logs every request at INFO.
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger for *name*.

    Usage::

        log = get_logger(__name__)
        log.info("watcher_execution_started", template="threshold-v1")
    """
    return structlog.get_logger(name)
