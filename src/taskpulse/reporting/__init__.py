"""Daily review reporting."""

from .developers import (
    UNASSIGNED,
    DeveloperMap,
    chat_handle,
    classify_developer_value,
    resolve_developer_name,
    task_developer,
)
from .prompts import DEFAULT_ANALYSIS_PROMPT, PromptStore
from .report_generator import DailyReport, DeveloperWorkload, LoadStatus, ReportGenerator, ReportStats
from .windows import review_window_start

__all__ = [
    "UNASSIGNED",
    "DeveloperMap",
    "chat_handle",
    "classify_developer_value",
    "resolve_developer_name",
    "task_developer",
    "DEFAULT_ANALYSIS_PROMPT",
    "PromptStore",
    "DailyReport",
    "DeveloperWorkload",
    "LoadStatus",
    "ReportGenerator",
    "ReportStats",
    "review_window_start",
]
