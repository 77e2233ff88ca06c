"""Format change events as log entries and append them to the store"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from loguru import logger

from taskpulse.changelog.models import (
    IN_PROGRESS_FIELD,
    INTERNAL_FIELDS,
    LogAction,
    LogEntry,
    format_timestamp,
)
from taskpulse.changelog.store import LogStore

MS_PER_HOUR = 3_600_000

MANUAL_CORRECTION_COMMENT = "Manually corrected by admin"


def format_value(value: Any) -> str:
    """Render one field value the way the log has always stored it."""
    if isinstance(value, str):
        cleaned = value.rstrip("\n")
        return f'"{cleaned}"'
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def format_entry(entry: LogEntry) -> str:
    """Render an entry as ``\\n## ACTION Task id - ts\\n  - k: v...\\n``."""
    lines = [
        f"  - {name}: {format_value(value)}"
        for name, value in entry.fields.items()
        if name not in INTERNAL_FIELDS and name != "comment"
    ]
    text = f"\n## {entry.action.value} Task {entry.task_id} - {entry.timestamp}\n"
    text += "\n".join(lines)
    if entry.comment:
        text += f"\nComment: {entry.comment}"
    return text + "\n"


def format_hours(milliseconds: float) -> str:
    hours = milliseconds / MS_PER_HOUR
    return f"{hours:g} hours"


def normalize_update_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Prepare an update payload for logging.

    Drops the manual ``inProgressSince`` override (logged on its own path),
    converts a millisecond ``time_estimate`` to hours, and records a user
    comment in the ``description`` slot.
    """
    fields = {key: value for key, value in payload.items() if key != IN_PROGRESS_FIELD}

    estimate = fields.get("time_estimate")
    if isinstance(estimate, (int, float)) and not isinstance(estimate, bool) and estimate:
        fields["time_estimate"] = format_hours(estimate)

    comment = fields.pop("comment", None)
    if isinstance(comment, str) and comment.strip():
        fields["description"] = comment

    return fields


class ChangeLogWriter:
    """Appends formatted entries to a :class:`LogStore`"""

    def __init__(self, store: LogStore, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def record(
        self,
        task_id: str,
        action: LogAction,
        fields: Mapping[str, Any],
        comment: Optional[str] = None,
    ) -> LogEntry:
        """Append one entry; store failures propagate as ``LogStoreError``."""
        entry = LogEntry(
            action=LogAction(action),
            task_id=str(task_id),
            timestamp=format_timestamp(self.clock()),
            fields={
                name: value
                for name, value in fields.items()
                if name not in INTERNAL_FIELDS and name != "comment"
            },
            comment=comment,
        )
        self.store.append(format_entry(entry))
        logger.info(f"Logged {entry.action.value} for task {entry.task_id} ({len(entry.fields)} fields)")
        return entry

    def record_manual_update(
        self,
        task_id: str,
        in_progress_since: str,
        comment: str = MANUAL_CORRECTION_COMMENT,
    ) -> LogEntry:
        """Record an administrator's correction of a task's in-progress start time."""
        return self.record(
            task_id,
            LogAction.MANUAL_UPDATE,
            {IN_PROGRESS_FIELD: in_progress_since},
            comment=comment,
        )
