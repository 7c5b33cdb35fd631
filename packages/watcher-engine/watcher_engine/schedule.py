"""Schedule evaluator — recurrence expressions to concrete fire times.

Two forms of recurrence expression are accepted:

Text (a restricted, statically parsed grammar)::

    every [N] <unit>[s] [at HH:MM]

    unit  second|sec, minute|min, hour|hr, day, week, month
    at    only allowed for day / week / month units (default 00:00)

    "every 5 minutes"        → */5 * * * *
    "every hour"             → 0 * * * *
    "every 2 days at 06:30"  → 30 6 */2 * *

Cron — any 5-field (or 6-field, seconds last) expression understood by
``croniter``.

Text forms are translated to cron so that both forms share a single
evaluation path: steps are aligned on the unit boundary, exactly like a cron
``*/N`` field.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone

from croniter import croniter

from watcher_engine.exceptions import InvalidScheduleError

_TEXT_RE = re.compile(
    r"^every(?:\s+(?P<step>\d+))?\s+(?P<unit>[a-z]+)"
    r"(?:\s+at\s+(?P<hour>\d{1,2}):(?P<minute>\d{2}))?$"
)

_UNIT_ALIASES: dict[str, str] = {
    "second": "second", "seconds": "second", "sec": "second", "secs": "second",
    "minute": "minute", "minutes": "minute", "min": "minute", "mins": "minute",
    "hour": "hour", "hours": "hour", "hr": "hour", "hrs": "hour",
    "day": "day", "days": "day",
    "week": "week", "weeks": "week",
    "month": "month", "months": "month",
}

# Largest step that still produces a regular series inside the parent unit.
_MAX_STEP: dict[str, int] = {
    "second": 59,
    "minute": 59,
    "hour": 23,
    "day": 31,
    "week": 1,
    "month": 12,
}


def _step_field(step: int) -> str:
    return "*" if step == 1 else f"*/{step}"


def text_to_cron(expression: str) -> str:
    """Translate a text recurrence expression into a cron expression.

    Raises:
        InvalidScheduleError: The text does not match the grammar or asks for
            a series cron cannot represent.
    """
    text = " ".join(expression.lower().split())
    match = _TEXT_RE.match(text)
    if match is None:
        raise InvalidScheduleError(expression, "expected 'every [N] <unit>' or a cron expression")

    unit = _UNIT_ALIASES.get(match.group("unit"))
    if unit is None:
        raise InvalidScheduleError(expression, f"unknown unit '{match.group('unit')}'")

    step = int(match.group("step") or 1)
    if step < 1:
        raise InvalidScheduleError(expression, "step must be at least 1")
    if step > _MAX_STEP[unit]:
        raise InvalidScheduleError(
            expression, f"a step of {step} {unit}s cannot be expressed as a regular schedule"
        )

    at_hour, at_minute = 0, 0
    if match.group("hour") is not None:
        if unit not in ("day", "week", "month"):
            raise InvalidScheduleError(expression, f"'at HH:MM' is not allowed with unit '{unit}'")
        at_hour, at_minute = int(match.group("hour")), int(match.group("minute"))
        if at_hour > 23 or at_minute > 59:
            raise InvalidScheduleError(expression, f"invalid time of day {at_hour:02d}:{at_minute:02d}")

    field = _step_field(step)
    if unit == "second":
        return f"* * * * * {field}"
    if unit == "minute":
        return f"{field} * * * *"
    if unit == "hour":
        return f"0 {field} * * *"
    if unit == "day":
        return f"{at_minute} {at_hour} {field} * *"
    if unit == "week":
        return f"{at_minute} {at_hour} * * 0"
    return f"{at_minute} {at_hour} 1 {field} *"


@dataclass(frozen=True)
class RecurrenceSchedule:
    """A parsed recurrence expression."""

    expression: str
    cron: str

    @classmethod
    def parse(cls, expression: str) -> "RecurrenceSchedule":
        if not isinstance(expression, str) or not expression.strip():
            raise InvalidScheduleError(str(expression), "empty schedule")

        stripped = expression.strip()
        if stripped.lower().startswith("every"):
            cron = text_to_cron(stripped)
        else:
            cron = stripped

        if not croniter.is_valid(cron):
            raise InvalidScheduleError(expression, f"'{cron}' is not a valid cron expression")
        return cls(expression=expression, cron=cron)

    def previous(self, count: int, now: datetime | None = None) -> list[datetime]:
        """Return the *count* most recent fire times before *now*, newest first."""
        now = _utc(now)
        itr = croniter(self.cron, now)
        return [_utc(itr.get_prev(datetime)) for _ in range(count)]


def previous_fire_times(
    expression: str, now: datetime | None = None
) -> tuple[datetime, datetime]:
    """Return ``(second_most_recent, most_recent)`` fire times of *expression*.

    Both are timezone-aware UTC datetimes computed relative to *now*
    (defaults to the current time).

    Raises:
        InvalidScheduleError: *expression* is not a valid recurrence expression.
    """
    most_recent, second_most_recent = RecurrenceSchedule.parse(expression).previous(2, now)
    return second_most_recent, most_recent


def _utc(value: datetime | None) -> datetime:
    if value is None:
        return datetime.now(timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
