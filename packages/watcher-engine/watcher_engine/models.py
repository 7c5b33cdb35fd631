"""Watcher task data model.

A task is the stored watcher document handed to ``WatcherEngine.execute``::

    {
        "id": "w-42",
        "title": "Open tickets",
        "custom": {"type": "threshold-v1", "params": {"threshold": 5}},
        "input": {"search": {"request": {
            "index": "tickets",
            "time": {"range": {"created_at": {}}},
            "filters": [...]
        }}},
        "trigger": {"schedule": {"later": "every 5 minutes"}},
        "impersonate": false,
        "actions": {"email_admin": {...}}
    }

Validated with Pydantic v2.  Shapes only — no business logic here.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CustomBlock(BaseModel):
    type: str = Field(description="Title of the script template that implements this watcher.")
    params: dict[str, Any] = Field(default_factory=dict)

    @field_validator("type")
    @classmethod
    def type_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("custom.type must not be blank")
        return v


class SearchInput(BaseModel):
    request: dict[str, Any]


class TaskInput(BaseModel):
    search: SearchInput


class ScheduleSpec(BaseModel):
    later: str = Field(description="Recurrence expression, e.g. 'every 5 minutes'.")


class TaskTrigger(BaseModel):
    schedule: ScheduleSpec


class Task(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    title: str
    custom: CustomBlock
    input: TaskInput
    trigger: TaskTrigger
    impersonate: bool = False
    actions: dict[str, Any] = Field(default_factory=dict)

    @property
    def schedule(self) -> str:
        return self.trigger.schedule.later

    @property
    def search_request(self) -> dict[str, Any]:
        return self.input.search.request

    @classmethod
    def from_file(cls, path: Path) -> "Task":
        """Load a task from a ``.json`` or ``.yaml`` / ``.yml`` file."""
        text = path.read_text(encoding="utf-8")
        if path.suffix in (".yaml", ".yml"):
            import yaml

            data = yaml.safe_load(text) or {}
        else:
            data = json.loads(text)
        return cls.model_validate(data)
