"""Alarm sinks — where failed executions are reported.

Swap the backend by injecting a different AlarmSink implementation:
  - LogAlarmSink    → default, one structured log record per alarm
  - IndexAlarmSink  → document indexed into an alarm index on the backend
  - NullAlarmSink   → discards everything

``log_alarm`` must not raise: a sink outage is logged and swallowed so it
never masks the execution error being reported.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from watcher_engine.config import AlarmConfig
from watcher_engine.logging import get_logger
from watcher_engine.search.backend import SearchBackend
from watcher_engine.timewindow import to_iso

log = get_logger(__name__)


@dataclass(frozen=True)
class AlarmRecord:
    watcher_title: str
    message: str
    level: str = "high"
    is_error: bool = True
    context: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_document(self) -> dict[str, Any]:
        return {
            "@timestamp": to_iso(datetime.fromtimestamp(self.timestamp, tz=timezone.utc)),
            "watcher": self.watcher_title,
            "message": self.message,
            "level": self.level,
            "error": self.is_error,
            "context": self.context,
        }


class AlarmSink(ABC):
    @abstractmethod
    async def log_alarm(self, record: AlarmRecord) -> None:
        """Record *record*.  Must not raise."""


class NullAlarmSink(AlarmSink):
    async def log_alarm(self, record: AlarmRecord) -> None:
        pass


class LogAlarmSink(AlarmSink):
    """Writes alarms through the structured logger."""

    async def log_alarm(self, record: AlarmRecord) -> None:
        emit = log.error if record.is_error else log.warning
        emit(
            "watcher_alarm",
            watcher_title=record.watcher_title,
            alarm_message=record.message,
            level_name=record.level,
            context=record.context,
        )


class IndexAlarmSink(AlarmSink):
    """Indexes alarms as documents through a SearchBackend."""

    def __init__(self, backend: SearchBackend, index: str = "watcher_alarms") -> None:
        self._backend = backend
        self._index = index

    async def log_alarm(self, record: AlarmRecord) -> None:
        try:
            await self._backend.index_document(self._index, record.to_document())
        except Exception as exc:
            log.error(
                "alarm_index_failed",
                index=self._index,
                watcher_title=record.watcher_title,
                alarm_message=record.message,
                error=str(exc),
            )


def create_alarm_sink(config: AlarmConfig, backend: SearchBackend | None = None) -> AlarmSink:
    if config.sink == "null":
        return NullAlarmSink()
    if config.sink == "index":
        if backend is None:
            raise ValueError("The 'index' alarm sink needs a search backend.")
        return IndexAlarmSink(backend, config.index)
    return LogAlarmSink()
