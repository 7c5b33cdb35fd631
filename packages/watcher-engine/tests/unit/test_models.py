"""Unit tests — Task model and execution results."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from conftest import make_task
from watcher_engine.models import Task
from watcher_engine.results import ResultStatus, SuccessResult, WarningResult


@pytest.mark.unit
class TestTask:
    def test_accessors(self) -> None:
        task = make_task()
        assert task.schedule == "every 5 minutes"
        assert task.search_request["index"] == "tickets"
        assert task.impersonate is False

    def test_unknown_keys_are_ignored(self) -> None:
        task = make_task(owner="alice", status={"last_run": 1})
        assert not hasattr(task, "owner")

    def test_blank_custom_type(self) -> None:
        with pytest.raises(ValidationError):
            make_task(custom={"type": "  ", "params": {}})

    def test_missing_trigger(self) -> None:
        data = make_task().model_dump()
        del data["trigger"]
        with pytest.raises(ValidationError):
            Task.model_validate(data)

    def test_from_json_file(self, tmp_path) -> None:
        path = tmp_path / "w.json"
        path.write_text(json.dumps(make_task().model_dump()))
        assert Task.from_file(path) == make_task()

    def test_from_yaml_file(self, tmp_path) -> None:
        path = tmp_path / "w.yml"
        path.write_text(
            "id: w-2\n"
            "title: Disk\n"
            "custom: {type: absence-v1}\n"
            "input: {search: {request: {index: disk, time: {range: {ts: {}}}}}}\n"
            "trigger: {schedule: {later: every hour}}\n"
        )
        task = Task.from_file(path)
        assert task.custom.params == {}
        assert task.actions == {}
        assert task.schedule == "every hour"


@pytest.mark.unit
class TestResults:
    def test_success(self) -> None:
        result = SuccessResult("successfully executed")
        assert result.ok
        assert result.to_dict() == {"status": "success", "message": "successfully executed"}

    def test_warning(self) -> None:
        result = WarningResult("no data satisfy condition")
        assert not result.ok
        assert result.status is ResultStatus.WARNING
        assert result != SuccessResult("no data satisfy condition")
