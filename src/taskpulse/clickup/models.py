"""Typed views over ClickUp task and custom-field payloads"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

MS_PER_HOUR = 1000 * 60 * 60

DEVELOPER_FIELD_KEYWORD = "developer"


def ms_to_datetime(value: Any) -> Optional[datetime]:
    """Convert ClickUp's epoch-millisecond strings to aware UTC datetimes."""
    if value in (None, ""):
        return None
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None


def datetime_to_ms(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


@dataclass
class DropdownOption:
    id: str
    name: str
    orderindex: Any = None
    color: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "DropdownOption":
        return cls(
            id=str(data.get("id") or ""),
            name=data.get("name") or "",
            orderindex=data.get("orderindex"),
            color=data.get("color"),
        )


@dataclass
class CustomField:
    """A custom field definition, with the task's value when attached to a task"""
    id: str
    name: str
    type: str = ""
    options: List[DropdownOption] = field(default_factory=list)
    value: Any = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "CustomField":
        type_config = data.get("type_config") or {}
        return cls(
            id=str(data.get("id") or ""),
            name=data.get("name") or "",
            type=data.get("type") or "",
            options=[DropdownOption.from_api(option) for option in type_config.get("options") or []],
            value=data.get("value"),
        )

    @property
    def is_developer_field(self) -> bool:
        return DEVELOPER_FIELD_KEYWORD in self.name.lower()

    @property
    def is_dropdown(self) -> bool:
        return self.type == "drop_down"

    def find_option(self, name: str) -> Optional[DropdownOption]:
        """Case-insensitive option lookup by display name."""
        wanted = name.strip().lower()
        for option in self.options:
            if option.name.lower() == wanted:
                return option
        return None


@dataclass
class Task:
    """A ClickUp task, reduced to what the dashboard and report use"""
    id: str
    name: str
    description: Optional[str] = None
    status: str = ""
    status_type: str = ""
    status_color: Optional[str] = None
    priority: Optional[str] = None
    priority_color: Optional[str] = None
    custom_fields: List[CustomField] = field(default_factory=list)
    time_estimate: Optional[int] = None  # milliseconds
    due_date: Optional[datetime] = None
    date_created: Optional[datetime] = None
    date_updated: Optional[datetime] = None
    date_done: Optional[datetime] = None
    date_closed: Optional[datetime] = None
    parent: Optional[str] = None
    archived: bool = False
    assignees: List[str] = field(default_factory=list)
    url: Optional[str] = None
    subtasks: List["Task"] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Task":
        status = data.get("status") or {}
        priority = data.get("priority") or {}
        estimate = data.get("time_estimate")
        return cls(
            id=str(data.get("id") or ""),
            name=data.get("name") or "",
            description=data.get("description") or None,
            status=status.get("status") or "",
            status_type=status.get("type") or "",
            status_color=status.get("color"),
            priority=priority.get("priority") or None,
            priority_color=priority.get("color"),
            custom_fields=[CustomField.from_api(item) for item in data.get("custom_fields") or []],
            time_estimate=int(estimate) if estimate not in (None, "") else None,
            due_date=ms_to_datetime(data.get("due_date")),
            date_created=ms_to_datetime(data.get("date_created")),
            date_updated=ms_to_datetime(data.get("date_updated")),
            date_done=ms_to_datetime(data.get("date_done")),
            date_closed=ms_to_datetime(data.get("date_closed")),
            parent=data.get("parent") or None,
            archived=bool(data.get("archived")),
            assignees=[a.get("username") or "" for a in data.get("assignees") or []],
            url=data.get("url"),
            subtasks=[cls.from_api(item) for item in data.get("subtasks") or []],
        )

    @property
    def hours(self) -> float:
        """Time estimate in hours; 0 when not estimated."""
        return self.time_estimate / MS_PER_HOUR if self.time_estimate else 0.0

    @property
    def is_in_progress(self) -> bool:
        lowered = self.status.lower()
        return "progress" in lowered or "active" in lowered

    @property
    def is_closed(self) -> bool:
        return (
            self.status_type == "closed"
            or self.status.lower() in ("closed", "done", "complete")
            or self.date_done is not None
            or self.date_closed is not None
        )

    def has_priority(self, name: str) -> bool:
        return (self.priority or "").lower() == name

    @property
    def developer_field(self) -> Optional[CustomField]:
        for custom_field in self.custom_fields:
            if custom_field.is_developer_field:
                return custom_field
        return None

    def to_dict(self, in_progress_since: Optional[str] = None) -> Dict[str, Any]:
        """Serialize for the HTTP API and CLI JSON output."""
        payload = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "statusColor": self.status_color,
            "priority": {"name": self.priority, "color": self.priority_color} if self.priority else None,
            "timeEstimate": self.time_estimate,
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "parentId": self.parent,
            "isSubtask": self.parent is not None,
            "url": self.url,
            "subtasks": [subtask.to_dict() for subtask in self.subtasks],
        }
        if in_progress_since is not None:
            payload["inProgressSince"] = in_progress_since
        return payload
