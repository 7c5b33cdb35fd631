"""Execution results returned by ``WatcherEngine.execute``.

Failures are never returned: they are raised as WatcherEngineError.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar


class ResultStatus(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"


@dataclass(frozen=True)
class ExecutionResult:
    message: str
    status: ClassVar[ResultStatus]

    @property
    def ok(self) -> bool:
        return self.status is ResultStatus.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status.value, "message": self.message}


@dataclass(frozen=True)
class SuccessResult(ExecutionResult):
    """The condition held and the actions were dispatched."""

    status: ClassVar[ResultStatus] = ResultStatus.SUCCESS


@dataclass(frozen=True)
class WarningResult(ExecutionResult):
    """The search ran but no data satisfied the condition."""

    status: ClassVar[ResultStatus] = ResultStatus.WARNING
