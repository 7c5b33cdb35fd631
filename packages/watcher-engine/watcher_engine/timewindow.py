"""Time window builder — fire times to an absolute search range."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

DEFAULT_DATE_FORMAT = "date_time"


def to_iso(value: datetime) -> str:
    """Render *value* as strict ISO-8601 UTC with milliseconds: ``2024-01-01T10:05:00.000Z``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    utc = value.astimezone(timezone.utc).replace(tzinfo=None)
    return utc.isoformat(timespec="milliseconds") + "Z"


@dataclass(frozen=True)
class TimeRange:
    """Half-open ``(gt, lte]`` range over a single time field."""

    field: str
    gt: str
    lte: str
    format: str = DEFAULT_DATE_FORMAT

    def bounds(self) -> dict[str, Any]:
        return {"gt": self.gt, "lte": self.lte, "format": self.format}


def build_time_range(
    field: str,
    fire_times: tuple[datetime, datetime],
    async_mode: bool = False,
    now: datetime | None = None,
) -> TimeRange:
    """Build the search window from ``(second_most_recent, most_recent)``.

    Synchronous mode covers exactly the previous scheduled interval.
    Asynchronous mode keeps the interval's duration but ends it at *now*,
    for runs that are no longer aligned with the schedule tick.
    """
    start, end = fire_times
    if async_mode:
        duration = end - start
        end = now if now is not None else datetime.now(timezone.utc)
        start = end - duration
    return TimeRange(field=field, gt=to_iso(start), lte=to_iso(end))
