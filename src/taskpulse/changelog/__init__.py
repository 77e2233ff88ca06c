"""Append-only change log: storage, writing, parsing and reconstruction."""

from .models import LogAction, LogEntry, format_timestamp, parse_timestamp
from .parser import entries_since, parse_entries, reconstruct_in_progress_timestamps, tail_lines
from .store import (
    DatabaseLogStore,
    FileLogStore,
    LogMetadata,
    LogStore,
    build_log_store,
    log_key_for_environment,
)
from .writer import ChangeLogWriter, format_entry, normalize_update_fields

__all__ = [
    "LogAction",
    "LogEntry",
    "format_timestamp",
    "parse_timestamp",
    "entries_since",
    "parse_entries",
    "reconstruct_in_progress_timestamps",
    "tail_lines",
    "DatabaseLogStore",
    "FileLogStore",
    "LogMetadata",
    "LogStore",
    "build_log_store",
    "log_key_for_environment",
    "ChangeLogWriter",
    "format_entry",
    "normalize_update_fields",
]
