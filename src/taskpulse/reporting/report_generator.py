"""Daily review report: task classification, developer workload and markdown rendering"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from loguru import logger

from taskpulse.changelog.models import format_timestamp, parse_timestamp
from taskpulse.changelog.parser import entries_since, reconstruct_in_progress_timestamps, tail_lines
from taskpulse.changelog.store import LogStore
from taskpulse.clickup.models import CustomField, Task
from taskpulse.config import ReportConfig
from taskpulse.exceptions import LogStoreError, ReportGenerationError
from taskpulse.reporting.developers import UNASSIGNED, DeveloperMap, chat_handle, task_developer
from taskpulse.reporting.windows import business_time_label, review_window_start

NO_LOGS_PLACEHOLDER = "No task change logs available yet."
NO_RECENT_CHANGES = "No changes since the last review period."
SECONDS_PER_DAY = 60 * 60 * 24
WORK_DAY_HOURS = 8


class LoadStatus(str, Enum):
    """Developer load, judged on in-progress hours"""
    OVERLOADED = "Overloaded"
    BUSY = "Busy"
    AVAILABLE = "Available"

    @property
    def badge(self) -> str:
        icon = {"Overloaded": "🔴", "Busy": "🟡", "Available": "🟢"}[self.value]
        return f"{icon} {self.value.upper()}"


@dataclass
class DeveloperWorkload:
    """Hour and task totals for one developer"""
    name: str
    task_count: int = 0
    total_hours: float = 0.0
    in_progress_count: int = 0
    in_progress_hours: float = 0.0
    urgent_count: int = 0
    urgent_hours: float = 0.0
    high_count: int = 0
    high_hours: float = 0.0
    load: LoadStatus = LoadStatus.AVAILABLE

    @property
    def missing_estimates(self) -> bool:
        return self.task_count > 0 and self.total_hours == 0


@dataclass
class ReportStats:
    total_tasks: int = 0
    in_progress: int = 0
    overdue: int = 0
    stale: int = 0
    urgent: int = 0
    high_priority: int = 0
    unassigned: int = 0
    unassigned_urgent: int = 0
    unassigned_high: int = 0
    new_tasks: int = 0
    started_tasks: int = 0
    completed_tasks: int = 0

    def to_dict(self) -> Dict[str, int]:
        """Summary block of the JSON envelope."""
        return {
            "totalTasks": self.total_tasks,
            "inProgress": self.in_progress,
            "overdue": self.overdue,
            "stale": self.stale,
        }


@dataclass
class DailyReport:
    """Everything produced by one report build"""
    generated_at: datetime
    window_start: datetime
    markdown: str
    chat_message: str
    stats: ReportStats
    workloads: List[DeveloperWorkload] = field(default_factory=list)
    in_progress_since: Dict[str, str] = field(default_factory=dict)
    download_url: str = "/api/llm-report?download=true"

    @property
    def filename(self) -> str:
        return f"llm-task-report-{self.generated_at:%Y-%m-%d}.md"

    def to_envelope(self) -> dict:
        return {
            "report": self.markdown,
            "stats": self.stats.to_dict(),
            "downloadUrl": self.download_url,
        }


@dataclass
class _Classified:
    in_progress: List[Task]
    overdue: List[Task]
    urgent: List[Task]
    high: List[Task]
    stale: List[Task]
    new: List[Task]
    completed: List[Task]
    started: List[Task]


def _hours(value: float) -> str:
    return f"{value:.1f}"


def _date(moment: Optional[datetime]) -> str:
    return moment.strftime("%Y-%m-%d") if moment else "None"


def _cell(text: Optional[str]) -> str:
    return (text or "").replace("|", "\\|").replace("\r", " ").replace("\n", " ")


def _by_name(tasks: Iterable[Task]) -> List[Task]:
    return sorted(tasks, key=lambda task: (task.name.lower(), task.id))


class ReportGenerator:
    """Build the daily review report from live tasks and the change log"""

    def __init__(self, config: Optional[ReportConfig] = None, prompt: Optional[str] = None):
        """Initialize report generator

        Args:
            config: Thresholds and window settings (defaults to ``ReportConfig()``)
            prompt: Analysis prompt appended to the report; built-in instructions when None
        """
        self.config = config or ReportConfig()
        self.prompt = prompt

    # -- classification -------------------------------------------------

    def _days_since(self, moment: Optional[datetime], now: datetime) -> Optional[int]:
        if moment is None:
            return None
        return max(0, math.floor((now - moment).total_seconds() / SECONDS_PER_DAY))

    def _is_stale(self, task: Task, now: datetime) -> bool:
        if not task.is_in_progress or task.date_updated is None:
            return False
        return (now - task.date_updated).total_seconds() / SECONDS_PER_DAY > self.config.stale_after_days

    def _classify(self, tasks: Sequence[Task], now: datetime, window_start: datetime) -> _Classified:
        in_progress = [task for task in tasks if task.is_in_progress]
        return _Classified(
            in_progress=in_progress,
            overdue=[task for task in tasks if task.due_date and task.due_date < now and not task.is_closed],
            urgent=[task for task in tasks if task.has_priority("urgent")],
            high=[task for task in tasks if task.has_priority("high")],
            stale=[task for task in in_progress if self._is_stale(task, now)],
            new=[task for task in tasks if task.date_created and task.date_created >= window_start],
            completed=[task for task in tasks if task.date_done and task.date_done >= window_start],
            # Approximation: assumes the last update was the move into progress
            started=[task for task in in_progress if task.date_updated and task.date_updated >= window_start],
        )

    def _load_status(self, in_progress_hours: float) -> LoadStatus:
        if in_progress_hours > self.config.overloaded_hours:
            return LoadStatus.OVERLOADED
        if in_progress_hours > self.config.busy_hours:
            return LoadStatus.BUSY
        return LoadStatus.AVAILABLE

    def compute_workloads(self, tasks: Sequence[Task], developers: DeveloperMap) -> List[DeveloperWorkload]:
        """Aggregate per-developer totals, busiest first."""
        workloads: Dict[str, DeveloperWorkload] = {}
        for task in tasks:
            name = task_developer(task, developers)
            if name == UNASSIGNED:
                continue
            workload = workloads.setdefault(name, DeveloperWorkload(name=name))
            hours = task.hours
            workload.task_count += 1
            workload.total_hours += hours
            if task.is_in_progress:
                workload.in_progress_count += 1
                workload.in_progress_hours += hours
            if task.has_priority("urgent"):
                workload.urgent_count += 1
                workload.urgent_hours += hours
            if task.has_priority("high"):
                workload.high_count += 1
                workload.high_hours += hours

        for workload in workloads.values():
            workload.load = self._load_status(workload.in_progress_hours)

        return sorted(
            workloads.values(),
            key=lambda w: (-w.in_progress_hours, -w.total_hours, -w.in_progress_count, w.name.lower()),
        )

    # -- entry points ---------------------------------------------------

    def build_daily_report(
        self,
        tasks: Sequence[Task],
        log_text: Optional[str],
        now: Optional[datetime] = None,
        custom_fields: Iterable[CustomField] = (),
    ) -> DailyReport:
        """Build the report; ``log_text=None`` means the log could not be read."""
        try:
            return self._build(list(tasks), log_text, now, DeveloperMap.from_custom_fields(custom_fields))
        except Exception as exc:
            logger.exception(f"Failed to build daily report: {exc}")
            raise ReportGenerationError(f"Failed to build daily report: {exc}") from exc

    def generate(
        self,
        client,
        store: LogStore,
        now: Optional[datetime] = None,
    ) -> DailyReport:
        """Fetch tasks, custom fields and the log, then build the report."""
        tasks = client.list_tasks(include_subtasks=True, include_closed=False)
        custom_fields = client.list_custom_fields()
        try:
            log_text: Optional[str] = store.read_all()
        except LogStoreError as exc:
            logger.warning(f"Change log unavailable for report: {exc}")
            log_text = None
        return self.build_daily_report(tasks, log_text, now=now, custom_fields=custom_fields)

    def _build(
        self,
        tasks: List[Task],
        log_text: Optional[str],
        now: Optional[datetime],
        developers: DeveloperMap,
    ) -> DailyReport:
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        window_start = review_window_start(now, self.config.review_hour_utc)

        if log_text is None:
            recent_changes = NO_LOGS_PLACEHOLDER
            recent_history = NO_LOGS_PLACEHOLDER
            in_progress_since: Dict[str, str] = {}
        else:
            recent_changes = entries_since(log_text, window_start) or NO_RECENT_CHANGES
            recent_history = tail_lines(log_text, self.config.recent_log_lines) or NO_LOGS_PLACEHOLDER
            in_progress_since = reconstruct_in_progress_timestamps(log_text, self.config.in_progress_status)

        classified = self._classify(tasks, now, window_start)
        workloads = self.compute_workloads(tasks, developers)
        names = {task.id: task_developer(task, developers) for task in tasks}

        stats = ReportStats(
            total_tasks=len(tasks),
            in_progress=len(classified.in_progress),
            overdue=len(classified.overdue),
            stale=len(classified.stale),
            urgent=len(classified.urgent),
            high_priority=len(classified.high),
            unassigned=sum(1 for task in tasks if names[task.id] == UNASSIGNED),
            unassigned_urgent=sum(1 for task in classified.urgent if names[task.id] == UNASSIGNED),
            unassigned_high=sum(1 for task in classified.high if names[task.id] == UNASSIGNED),
            new_tasks=len(classified.new),
            started_tasks=len(classified.started),
            completed_tasks=len(classified.completed),
        )

        def days_in_progress(task: Task) -> int:
            since = parse_timestamp(in_progress_since.get(task.id)) or task.date_updated
            return self._days_since(since, now) or 0

        chat_message = self._render_chat_message(classified, names, developers)
        context = _RenderContext(
            now=now,
            window_start=window_start,
            tasks=tasks,
            classified=classified,
            names=names,
            workloads=workloads,
            stats=stats,
            days_in_progress=days_in_progress,
            recent_changes=recent_changes,
            recent_history=recent_history,
        )
        markdown = self._render_markdown(context, chat_message)

        logger.info(
            f"Built daily report: {stats.total_tasks} tasks, {stats.in_progress} in progress, "
            f"{stats.overdue} overdue, {stats.stale} stale"
        )
        return DailyReport(
            generated_at=now,
            window_start=window_start,
            markdown=markdown,
            chat_message=chat_message,
            stats=stats,
            workloads=workloads,
            in_progress_since=in_progress_since,
            download_url=self.config.download_url,
        )

    # -- rendering ------------------------------------------------------

    def _render_chat_message(
        self,
        classified: _Classified,
        names: Dict[str, str],
        developers: DeveloperMap,
    ) -> str:
        stale_ids = {task.id for task in classified.stale}
        talking_points: Dict[str, List[str]] = {}
        for task in _by_name(classified.in_progress):
            developer = names[task.id]
            if developer == UNASSIGNED:
                continue
            is_urgent = task.has_priority("urgent")
            is_stale = task.id in stale_ids
            if not (is_urgent or is_stale):
                continue
            if is_urgent and is_stale:
                tag = " (🔥 Urgent & ⏰ Stale)"
            elif is_urgent:
                tag = " (🔥 Urgent)"
            else:
                tag = " (⏰ Stale)"
            talking_points.setdefault(developer, []).append(f"- {task.name}{tag}")

        known = set(developers.names())
        message = (
            "*Good morning!* ☀️ Here is your daily review summary.\n\n"
            "Please be prepared to discuss your urgent/stale tasks:"
        )
        for developer in sorted(talking_points, key=str.lower):
            mention = f"<@{chat_handle(developer)}>" if developer in known else f"*{developer}*"
            points = "\n".join(talking_points[developer])
            message += f"\n\n{mention}:\n{points}"
        return message

    def _render_markdown(self, ctx: "_RenderContext", chat_message: str) -> str:
        tz_name = self.config.business_timezone
        now_label = business_time_label(ctx.now, tz_name)
        window_label = business_time_label(ctx.window_start, tz_name)
        now_utc = format_timestamp(ctx.now)
        window_utc = format_timestamp(ctx.window_start)

        sections = [
            f"## 📋 SLACK MESSAGE TO COPY\n```\n{chat_message}\n```\n---\n",
            (
                "# Daily Review Analysis Report\n"
                f"Generated: {now_utc}\n"
                f"Current Time ({tz_name}): {now_label}\n"
                f"Review Period Start: {window_label}\n"
            ),
            self._render_prompt(now_utc, window_utc, window_label),
            self._render_task_table(ctx),
            self._render_daily_review(ctx, now_utc, window_utc, window_label),
            self._render_executive_summary(ctx),
            self._render_detailed_analysis(ctx),
            self._render_appendices(ctx),
            (
                "## FOCUS AREAS FOR TODAY\n\n"
                f"1. **Quick summary** of changes since {window_label}\n"
                "2. **Urgent tasks stagnant 2+ days** with Task IDs and developers\n"
                "3. **Unassigned urgent work** that needs an owner now\n"
                "4. **Capacity concerns**: who is above 6 productive hours today?\n"
                "5. **Blockers and risks** that need attention\n\n"
                "---\nEND OF REPORT\n"
            ),
        ]
        return "\n".join(sections)

    def _render_prompt(self, now_utc: str, window_utc: str, window_label: str) -> str:
        header = (
            "## PROMPT FOR DAILY REVIEW ANALYSIS\n\n"
            "**IMPORTANT CONTEXT:**\n"
            f"- The report was generated at: {now_utc}\n"
            "- The review period runs from the review hour on the previous business day to now.\n"
            f"- The logs below show changes since: {window_utc}\n"
            "- All log timestamps are UTC (ISO 8601).\n"
            "- Assume developers have a capacity of 6 productive hours per day.\n"
        )
        if self.prompt:
            return f"{header}\n{self.prompt.rstrip()}\n"
        return (
            f"{header}\n"
            "Using the COMPLETE TASK TABLE and the DAILY REVIEW section, provide:\n\n"
            "### 1. DAILY REVIEW ANALYSIS\n"
            f"- What happened since {window_label}? Note completions and regressions from the log.\n"
            "- Do the in-progress tasks match current priorities?\n\n"
            "### 2. RISKS AND BLOCKERS\n"
            "- High/urgent tasks without hour estimates.\n"
            "- Overdue tasks that block other work.\n"
            "- Developers with more than 40 assigned hours.\n\n"
            "### 3. STANDUP TALKING POINTS\n"
            "5-7 short points: urgent tasks in progress 2+ days, unassigned urgent tasks, "
            "overdue tasks marked 🚨, and quick wins under 4 hours. Reference Task IDs. "
            "Do not suggest reassigning work between developers.\n"
        )

    def _render_task_table(self, ctx: "_RenderContext") -> str:
        lines = [
            f"## COMPLETE TASK TABLE (ALL {len(ctx.tasks)} TASKS)\n",
            "| Task ID | Task Name | Description | Status | Priority | Developer | Hours Est. | Due Date | Days In Progress |",
            "|---------|-----------|-------------|--------|----------|-----------|------------|----------|------------------|",
        ]
        overdue_ids = {task.id for task in ctx.classified.overdue}
        for task in _by_name(ctx.tasks):
            description = _cell(task.description)
            if not description:
                description = "No description"
            elif len(description) > 100:
                description = description[:100] + "..."
            due = _date(task.due_date) + (" 🚨" if task.id in overdue_ids else "")
            days = str(ctx.days_in_progress(task)) if task.is_in_progress else "-"
            lines.append(
                f"| {task.id} | {_cell(task.name)} | {description} | {task.status or 'Unknown'} | "
                f"{task.priority or 'None'} | **{ctx.names[task.id]}** | {_hours(task.hours)}h | {due} | {days} |"
            )
        return "\n".join(lines) + "\n"

    def _render_daily_review(self, ctx: "_RenderContext", now_utc: str, window_utc: str, window_label: str) -> str:
        c = ctx.classified
        in_progress = "\n".join(
            f"- **{task.name}** ({ctx.names[task.id]}, {_hours(task.hours)}h)" for task in _by_name(c.in_progress)
        )
        text = (
            "## DAILY REVIEW\n\n"
            "### CHANGES SINCE LAST REVIEW\n"
            f"**Review Period Start**: {window_label}\n"
            f"**Changes Tracked From**: {window_utc}\n"
            f"**Current Time (UTC)**: {now_utc}\n\n"
            f"```markdown\n{ctx.recent_changes}\n```\n\n"
            f"### CURRENTLY IN-PROGRESS TASKS ({len(c.in_progress)})\n"
            f"{in_progress}\n\n"
            "### 🚀 KEY CHANGES SINCE LAST REVIEW\n"
            f"- **New Tasks Created**: {len(c.new)}\n"
            f"- **Tasks Started (Moved to In Progress)**: {len(c.started)}\n"
            f"- **Tasks Completed**: {len(c.completed)}\n"
        )
        for title, group in (("New Tasks", c.new), ("Started Tasks", c.started), ("Completed Tasks", c.completed)):
            if group:
                listing = "\n".join(f"- {task.name}" for task in _by_name(group))
                text += f"\n**{title}:**\n{listing}\n"
        return text

    def _render_executive_summary(self, ctx: "_RenderContext") -> str:
        s = ctx.stats
        text = (
            "## EXECUTIVE SUMMARY\n\n"
            "### 🚨 Critical Metrics\n"
            f"- **Total Tasks**: {s.total_tasks}\n"
            f"- **Urgent Tasks**: {s.urgent} total ({s.unassigned_urgent} unassigned)\n"
            f"- **High Priority Tasks**: {s.high_priority} total ({s.unassigned_high} unassigned)\n"
            f"- **In Progress Tasks**: {s.in_progress}\n"
            f"- **Overdue Tasks**: {s.overdue}\n"
            f"- **Stale Tasks (>{self.config.stale_after_days} days)**: {s.stale}\n\n"
            "### 👥 HOUR-BASED DEVELOPER WORKLOAD (PRIMARY METRIC)\n\n"
        )
        blocks = []
        for w in ctx.workloads:
            warning = " ⚠️ NO TIME ESTIMATES" if w.missing_estimates else ""
            block = (
                f"#### {w.name} {w.load.badge}{warning}\n"
                "**HOURS BREAKDOWN:**\n"
                f"- **In Progress**: {_hours(w.in_progress_hours)} hours ({w.in_progress_count} tasks)\n"
                f"- **Urgent Priority**: {_hours(w.urgent_hours)} hours ({w.urgent_count} tasks)\n"
                f"- **High Priority**: {_hours(w.high_hours)} hours ({w.high_count} tasks)\n"
                f"- **Total Assigned**: {_hours(w.total_hours)} hours ({w.task_count} tasks)\n"
                f"- **Work Days**: {_hours(w.total_hours / WORK_DAY_HOURS)} days | "
                f"In-Progress Days: {_hours(w.in_progress_hours / WORK_DAY_HOURS)} days"
            )
            if w.missing_estimates:
                block += f"\n⚠️ **WARNING**: Has {w.task_count} tasks but no time estimates provided!"
            blocks.append(block)
        text += "\n\n".join(blocks) if blocks else "No developer workload recorded."
        text += (
            "\n\n### 📊 Unassigned Work\n"
            f"- Unassigned Tasks: {s.unassigned} total\n"
            f"- Unassigned Urgent: {s.unassigned_urgent} tasks\n"
            f"- Unassigned High Priority: {s.unassigned_high} tasks\n"
        )
        return text

    def _group_by_developer(self, ctx: "_RenderContext", tasks: Iterable[Task]) -> Dict[str, List[Task]]:
        grouped: Dict[str, List[Task]] = {}
        for task in _by_name(tasks):
            grouped.setdefault(ctx.names[task.id], []).append(task)
        return dict(sorted(grouped.items(), key=lambda item: item[0].lower()))

    def _render_priority_group(self, ctx: "_RenderContext", title: str, label: str, tasks: List[Task]) -> str:
        overdue_ids = {task.id for task in ctx.classified.overdue}
        blocks = []
        for developer, group in self._group_by_developer(ctx, tasks).items():
            lines = [f"#### {developer} ({len(group)} {label})"]
            for task in group:
                lines.append(f"- **{task.name}**")
                lines.append(f"  - Status: {task.status or 'Unknown'}{' (In Progress)' if task.is_in_progress else ''}")
                lines.append(f"  - Time Estimate: {_hours(task.hours)}h")
                if task.id in overdue_ids:
                    lines.append("  - 🚨 **OVERDUE**")
            blocks.append("\n".join(lines))
        return f"### {title}\n\n" + ("\n\n".join(blocks) if blocks else "None.") + "\n"

    def _render_detailed_analysis(self, ctx: "_RenderContext") -> str:
        c = ctx.classified
        overdue_ids = {task.id for task in c.overdue}
        stale_days = self.config.stale_after_days

        urgent_blocks = []
        for task in _by_name(c.urgent):
            developer = ctx.names[task.id]
            estimate = f"{_hours(task.hours)} hours" if task.time_estimate else "Not estimated"
            lines = [
                f"#### {task.name}",
                f"- **Developer**: {developer}{' ⚠️ NEEDS ASSIGNMENT' if developer == UNASSIGNED else ''}",
                f"- **Status**: {task.status or 'Unknown'}{' (In Progress)' if task.is_in_progress else ''}",
                f"- **Time Estimate**: {estimate}",
                f"- **Due Date**: {_date(task.due_date) if task.due_date else 'No due date'}",
            ]
            if task.id in overdue_ids:
                lines.append("- 🚨 **OVERDUE**")
            urgent_blocks.append("\n".join(lines))

        progress_blocks = []
        for developer, group in self._group_by_developer(ctx, c.in_progress).items():
            if developer == UNASSIGNED:
                continue
            lines = [f"#### {developer} ({len(group)} in progress)"]
            for task in group:
                days = ctx.days_in_progress(task)
                stale = days > stale_days
                lines.append(f"- {'⚠️' if stale else '✅'} **{task.name}**")
                lines.append(f"  - Priority: {task.priority or 'None'}")
                lines.append(f"  - Days in Progress: {days}{' **STALE**' if stale else ''}")
                lines.append(f"  - Time Estimate: {_hours(task.hours) + 'h' if task.time_estimate else 'Not set'}")
                if task.id in overdue_ids:
                    lines.append("  - 🚨 **OVERDUE**")
            progress_blocks.append("\n".join(lines))

        stale_lines = []
        for task in _by_name(c.stale):
            stale_lines.append(
                f"- **{task.name}** ({ctx.names[task.id]})\n"
                f"  - {ctx.days_in_progress(task)} days in progress\n"
                f"  - Priority: {task.priority or 'None'}\n"
                f"  - Last Updated: {_date(task.date_updated)}"
            )

        return (
            "## DETAILED TASK ANALYSIS\n\n"
            "### 🔥 URGENT TASKS REQUIRING IMMEDIATE ACTION\n\n"
            + ("\n\n".join(urgent_blocks) if urgent_blocks else "None.")
            + "\n\n### 📋 IN PROGRESS TASKS BY DEVELOPER\n\n"
            + ("\n\n".join(progress_blocks) if progress_blocks else "None.")
            + "\n\n"
            + self._render_priority_group(ctx, "🚨 URGENT PRIORITY TASKS BY DEVELOPER", "urgent tasks", c.urgent)
            + "\n"
            + self._render_priority_group(ctx, "📊 HIGH PRIORITY TASKS BY DEVELOPER", "high priority tasks", c.high)
            + f"\n### ⏰ STALE TASKS (In Progress >{stale_days} Days)\n\n"
            + ("\n".join(stale_lines) if stale_lines else "No stale tasks - good job keeping tasks moving!")
            + "\n"
        )

    def _render_appendices(self, ctx: "_RenderContext") -> str:
        all_tasks = "\n".join(
            f"- [{task.status or 'Unknown'}] {task.name} ({task.priority or 'None'} | {ctx.names[task.id]})"
            for task in ctx.tasks
        )
        return (
            "## ALL TASKS LIST (For Reference)\n\n"
            "<details>\n<summary>Click to expand full task list</summary>\n\n"
            f"{all_tasks}\n\n</details>\n\n"
            f"## RECENT TASK CHANGES (Last {self.config.recent_log_lines} Lines)\n\n"
            "<details>\n<summary>Click to expand recent changes log</summary>\n\n"
            f"```markdown\n{ctx.recent_history}\n```\n\n</details>\n"
        )


@dataclass
class _RenderContext:
    now: datetime
    window_start: datetime
    tasks: List[Task]
    classified: _Classified
    names: Dict[str, str]
    workloads: List[DeveloperWorkload]
    stats: ReportStats
    days_in_progress: Callable[[Task], int]
    recent_changes: str
    recent_history: str
