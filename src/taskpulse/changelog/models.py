"""Change log entry model and the textual header format"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class LogAction(str, Enum):
    """Kinds of change recorded in the log"""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    MANUAL_UPDATE = "MANUAL_UPDATE"

    @classmethod
    def from_header(cls, text: str) -> "LogAction":
        """Map a header action token, including the legacy ``MANUAL UPDATE`` spelling."""
        return cls(re.sub(r"\s+", "_", text.strip().upper()))


# Fields that are never written to the log
INTERNAL_FIELDS = frozenset({"custom_fields", "parent"})

IN_PROGRESS_FIELD = "inProgressSince"

TIMESTAMP_PATTERN = r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?"

HEADER_RE = re.compile(
    rf"^## (?P<action>CREATE|UPDATE|MANUAL[_ ]UPDATE) Task (?P<task_id>\S+) - (?P<timestamp>{TIMESTAMP_PATTERN})[ \t]*$",
    re.MULTILINE,
)


_ISO_PARTS_RE = re.compile(
    r"^(?P<main>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(?::\d{2})?)(?:\.(?P<fraction>\d+))?(?P<offset>Z|[+-]\d{2}:?\d{2})?$"
)


def _normalize_iso(value: str) -> str:
    """Rewrite fractions to six digits and offsets to ``+HH:MM`` for ``fromisoformat``."""
    match = _ISO_PARTS_RE.match(value)
    if not match:
        return value.replace("Z", "+00:00")
    text = match.group("main")
    fraction = match.group("fraction")
    if fraction:
        text += "." + fraction[:6].ljust(6, "0")
    offset = match.group("offset")
    if offset == "Z":
        text += "+00:00"
    elif offset:
        text += offset if ":" in offset else f"{offset[:3]}:{offset[3:]}"
    return text


def format_timestamp(moment: datetime) -> str:
    """Render a datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a log timestamp into an aware UTC datetime; None when unparseable."""
    if not value:
        return None
    try:
        moment = datetime.fromisoformat(_normalize_iso(value.strip()))
    except ValueError:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


@dataclass
class LogEntry:
    """One change to one task, as written to (or read back from) the log"""
    action: LogAction
    task_id: str
    timestamp: str
    fields: Dict[str, Any] = field(default_factory=dict)
    comment: Optional[str] = None
    offset: Optional[int] = None  # Header position in the blob, parsed entries only
    body: str = ""

    @property
    def moment(self) -> Optional[datetime]:
        return parse_timestamp(self.timestamp)
