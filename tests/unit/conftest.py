"""Shared fixtures for TaskPulse tests."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from taskpulse.changelog.store import FileLogStore, LogStore
from taskpulse.changelog.writer import ChangeLogWriter
from taskpulse.clickup.models import CustomField, DropdownOption, Task
from taskpulse.exceptions import LogStoreError, NotFoundError

FIXED_NOW = datetime(2024, 6, 3, 14, 0, 0, 123000, tzinfo=timezone.utc)  # a Monday


def make_task(task_id: str = "t1", name: str = "Task", **overrides: Any) -> Task:
    """Build a Task with sensible defaults; keyword overrides win."""
    values: Dict[str, Any] = {"id": task_id, "name": name, "status": "to do", "status_type": "open"}
    values.update(overrides)
    return Task(**values)


def developer_field(value: Any = None) -> CustomField:
    """Developer dropdown with Jordan Lee (0), Sam (1) and Young (2)."""
    return CustomField(
        id="dev-field",
        name="Developer",
        type="drop_down",
        options=[
            DropdownOption(id="opt-jordan", name="Jordan Lee", orderindex=0),
            DropdownOption(id="opt-sam", name="Sam", orderindex=1),
            DropdownOption(id="opt-young", name="Young", orderindex=2),
        ],
        value=value,
    )


class FailingStore(LogStore):
    """Store whose every operation fails, for best-effort logging paths"""

    source = "failing"

    def __init__(self):
        super().__init__("failing")

    def append(self, text: str) -> None:
        raise LogStoreError("append failed")

    def read_all(self) -> str:
        raise LogStoreError("read failed")

    def overwrite(self, text: str) -> None:
        raise LogStoreError("overwrite failed")

    def metadata(self):
        raise LogStoreError("metadata failed")


class FakeClickUpClient:
    """In-memory stand-in for ClickUpClient that records every call"""

    def __init__(self, tasks: Optional[List[Task]] = None, custom_fields: Optional[List[CustomField]] = None):
        self.tasks = list(tasks or [])
        self.custom_fields = list(custom_fields if custom_fields is not None else [developer_field()])
        self.calls: List[tuple] = []
        self._next_id = 100

    def list_tasks(self, include_subtasks: bool = True, include_closed: bool = False) -> List[Task]:
        self.calls.append(("list_tasks", include_subtasks, include_closed))
        return list(self.tasks)

    def list_custom_fields(self) -> List[CustomField]:
        self.calls.append(("list_custom_fields",))
        return list(self.custom_fields)

    def get_task(self, task_id: str) -> Task:
        self.calls.append(("get_task", task_id))
        for task in self.tasks:
            if task.id == task_id:
                return task
        raise NotFoundError(f"task {task_id} not found")

    def create_task(self, data: Dict[str, Any]) -> Task:
        self.calls.append(("create_task", dict(data)))
        self._next_id += 1
        task = make_task(
            str(self._next_id),
            data.get("name", ""),
            status=data.get("status", "to do"),
            parent=data.get("parent"),
        )
        self.tasks.append(task)
        return task

    def update_task(self, task_id: str, data: Dict[str, Any]) -> Task:
        self.calls.append(("update_task", task_id, dict(data)))
        task = self.get_task(task_id)
        if "name" in data:
            task.name = data["name"]
        if "status" in data:
            task.status = data["status"]
        return task

    def set_custom_field(self, task_id: str, field_id: str, value: Any) -> None:
        self.calls.append(("set_custom_field", task_id, field_id, value))

    def get_task_comments(self, task_id: str) -> List[Dict[str, Any]]:
        self.calls.append(("get_task_comments", task_id))
        return []

    def list_spaces(self) -> List[Dict[str, Any]]:
        return [{"id": "s1", "name": "Engineering"}]

    def list_folders(self, space_id: str) -> List[Dict[str, Any]]:
        return [{"id": "f1", "name": "Sprints"}]

    def list_lists_in_folder(self, folder_id: str) -> List[Dict[str, Any]]:
        return [{"id": "l1", "name": "Sprint 12"}]

    def list_lists_in_space(self, space_id: str) -> List[Dict[str, Any]]:
        return [{"id": "l2", "name": "Backlog"}]

    def remote_calls(self) -> List[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def store(tmp_path) -> FileLogStore:
    return FileLogStore(tmp_path / "logs", "task-changes-test")


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def writer(store, clock) -> ChangeLogWriter:
    return ChangeLogWriter(store, clock=clock)


@pytest.fixture
def fake_client() -> FakeClickUpClient:
    return FakeClickUpClient()
