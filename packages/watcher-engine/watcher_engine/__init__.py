"""Watcher Engine — executes scheduled search watchers.

A watcher task names a template (``custom.type``), a base search request, a
recurrence schedule and a set of actions.  ``WatcherEngine.execute`` turns
the schedule into a time window, compiles the task's filters into a boolean
query, runs the template's search, evaluates its condition and dispatches
the actions when it holds.

Package structure
-----------------
watcher_engine/
  schedule.py    — recurrence expressions → previous fire times
  timewindow.py  — fire times → (gt, lte] time range
  filters.py     — filter descriptors → must / must_not clauses
  request.py     — search request assembly
  templates/     — template plugins, registry, script stores, resolver
  search/        — search backends and transport selection
  alarms.py      — alarm sinks
  actions.py     — action dispatchers
  engine.py      — WatcherEngine
  cli/           — ``watcher-engine`` command line
"""

from watcher_engine.engine import ExecutionStage, WatcherEngine
from watcher_engine.models import Task
from watcher_engine.results import ExecutionResult, ResultStatus, SuccessResult, WarningResult

__version__ = "0.1.0"

__all__ = [
    "ExecutionResult",
    "ExecutionStage",
    "ResultStatus",
    "SuccessResult",
    "Task",
    "WarningResult",
    "WatcherEngine",
    "__version__",
]
