"""Read the change log back into entries and derive point-in-time facts.

The log is plain text, so every reader goes through :func:`parse_entries`.
Text that does not match the header format is skipped rather than reported:
a truncated or hand-edited log only loses the entries it damaged.
"""

from __future__ import annotations

import json
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from taskpulse.changelog.models import (
    HEADER_RE,
    IN_PROGRESS_FIELD,
    TIMESTAMP_PATTERN,
    LogAction,
    LogEntry,
    parse_timestamp,
)

DEFAULT_IN_PROGRESS_STATUS = "IN PROGRESS"

FIELD_RE = re.compile(r"^\s*- (?P<name>[A-Za-z_][\w.\-]*): (?P<value>.*)$")
COMMENT_RE = re.compile(r"^Comment: (?P<comment>.*)$")
_TIMESTAMP_RE = re.compile(TIMESTAMP_PATTERN)


def decode_value(raw: str) -> Any:
    """Invert the writer's value encoding: quoted text is a string, the rest is JSON."""
    text = raw.rstrip("\n")
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        return text[1:-1]
    try:
        return json.loads(text)
    except ValueError:
        return text


def _unix_newlines(text: str) -> str:
    return text.replace("\r\n", "\n")


def _is_open_string(raw: str) -> bool:
    """True while a quoted value has not reached its closing quote."""
    text = raw.rstrip()
    return text.startswith('"') and (len(text) == 1 or not text.endswith('"'))


def _parse_body(body: str) -> Tuple[Dict[str, Any], Optional[str]]:
    raw_fields: Dict[str, str] = {}
    comment: Optional[str] = None
    current: Optional[str] = None  # field receiving continuation lines; "" means the comment

    for line in body.split("\n"):
        if current and _is_open_string(raw_fields[current]):
            # Inside a quoted value every line is text, even one shaped like a field
            raw_fields[current] += f"\n{line}"
            continue
        if line.startswith("## "):
            # Damaged header: nothing after it belongs to this entry's values
            current = None
            continue
        if current == "":
            # The comment is always written last
            comment = f"{comment}\n{line}"
            continue
        field_match = FIELD_RE.match(line)
        if field_match:
            name = field_match.group("name")
            if name in raw_fields:
                # The writer never repeats a field; keep the first one
                current = None
                continue
            current = name
            raw_fields[current] = field_match.group("value")
            continue
        comment_match = COMMENT_RE.match(line)
        if comment_match:
            current = ""
            comment = comment_match.group("comment")
            continue
        if current is not None:
            raw_fields[current] += f"\n{line}"

    fields = {name: decode_value(raw) for name, raw in raw_fields.items()}
    if comment is not None:
        comment = comment.rstrip("\n") or None
    return fields, comment


def parse_entries(text: str) -> List[LogEntry]:
    """Return every well-formed entry in document (write) order.

    Offsets index the text after CRLF line endings are folded to LF.
    """
    if not text:
        return []

    text = _unix_newlines(text)
    matches = list(HEADER_RE.finditer(text))
    entries: List[LogEntry] = []
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(text)
        body = text[match.end():end]
        fields, comment = _parse_body(body)
        entries.append(
            LogEntry(
                action=LogAction.from_header(match.group("action")),
                task_id=match.group("task_id"),
                timestamp=match.group("timestamp"),
                fields=fields,
                comment=comment,
                offset=match.start(),
                body=body,
            )
        )
    return entries


def reconstruct_in_progress_timestamps(
    text: str,
    in_progress_status: str = DEFAULT_IN_PROGRESS_STATUS,
) -> Dict[str, str]:
    """Map each task to the last time the log shows it entering in-progress.

    Entries are scanned newest-first and the first piece of evidence per task
    wins. A ``MANUAL_UPDATE`` contributes its ``inProgressSince`` value; a
    ``CREATE``/``UPDATE`` contributes its own header timestamp when its status
    is the in-progress status. Other entries are passed over, so an older
    in-progress entry is still found behind a later unrelated update.
    """
    resolved: Dict[str, str] = {}
    for entry in reversed(parse_entries(text)):
        if entry.task_id in resolved:
            continue
        if entry.action is LogAction.MANUAL_UPDATE:
            override = entry.fields.get(IN_PROGRESS_FIELD)
            if isinstance(override, str) and override.strip():
                resolved[entry.task_id] = override.strip()
        elif entry.fields.get("status") == in_progress_status:
            resolved[entry.task_id] = entry.timestamp
    return resolved


def entries_since(text: str, start: datetime) -> str:
    """Return the log lines written at or after ``start``.

    Each ``## `` header carrying a timestamp switches capture on or off, so
    lines before the first dated header are never included.
    """
    captured: List[str] = []
    capture = False
    for line in _unix_newlines(text).split("\n"):
        if line.startswith("## "):
            match = _TIMESTAMP_RE.search(line)
            moment = parse_timestamp(match.group(0)) if match else None
            if moment is not None:
                capture = moment >= start
        if capture:
            captured.append(line)
    return "\n".join(captured)


def tail_lines(text: str, count: int = 1000) -> str:
    """Return the last ``count`` lines of the log."""
    if count <= 0:
        return ""
    return "\n".join(_unix_newlines(text).split("\n")[-count:])
