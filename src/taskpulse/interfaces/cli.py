"""Command line interface for TaskPulse."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Optional

from loguru import logger
from rich import box
from rich.console import Console
from rich.table import Table

from taskpulse.exceptions import TaskPulseError
from taskpulse.interfaces.context import AppContext, build_context
from taskpulse.logging import configure_logging


def command_report(
    ctx: AppContext,
    download: Optional[str] = None,
    as_json: bool = False,
    slack: bool = False,
    link: Optional[str] = None,
) -> int:
    """Build today's review report.

    Usage:
        taskpulse report                  # Print the markdown report
        taskpulse report --json           # Print the JSON envelope
        taskpulse report --download DIR   # Save llm-task-report-<date>.md
        taskpulse report --slack          # Post the chat summary to Slack
        taskpulse report --slack --link URL  # ...with the report link in a thread reply
    """

    report = ctx.build_report()

    if download:
        target = Path(download)
        if target.is_dir():
            target = target / report.filename
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(report.markdown, encoding="utf-8")
        print(f"Report saved to {target}")
    elif as_json:
        print(json.dumps(report.to_envelope(), indent=2, ensure_ascii=False))
    else:
        print(report.markdown)

    if slack:
        if ctx.slack is None:
            print("Slack is not configured (set SLACK_BOT_TOKEN and SLACK_REPORT_CHANNEL)", file=sys.stderr)
            return 1
        if not ctx.slack.post_summary(report, attach_link=link):
            print("Failed to post summary to Slack", file=sys.stderr)
            return 1
        print(f"Summary posted to {ctx.slack.channel}")
    return 0


def command_tasks(ctx: AppContext) -> int:
    """Show open tasks with their developer and in-progress start."""

    console = Console()
    tasks = ctx.service.list_tasks_for_ui()

    table = Table(title=f"Open tasks ({len(tasks)})", box=box.SIMPLE_HEAVY, expand=True)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name", overflow="fold")
    table.add_column("Status")
    table.add_column("Priority")
    table.add_column("Developer")
    table.add_column("In progress since", no_wrap=True)

    def add_row(task: dict, indent: str = "") -> None:
        priority = (task.get("priority") or {}).get("name") or "-"
        table.add_row(
            task["id"],
            f"{indent}{task['name']}",
            task.get("status") or "-",
            priority,
            task.get("developer") or "-",
            task.get("inProgressSince") or "-",
        )

    for task in tasks:
        add_row(task)
        for subtask in task.get("subtasks", []):
            add_row(subtask, indent="  └ ")

    console.print(table)
    return 0


def command_logs(ctx: AppContext, subcommand: str = "show", path: Optional[str] = None) -> int:
    """Show, replace or describe the change log."""

    if subcommand == "show":
        content = ctx.store.read_all()
        print(content if content.strip() else "No changes recorded yet.")
        return 0

    if subcommand == "edit":
        if not path:
            print("logs edit requires a FILE with the replacement content", file=sys.stderr)
            return 1
        content = Path(path).read_text(encoding="utf-8")
        ctx.store.overwrite(content)
        print(f"Log {ctx.store.key} replaced ({len(content)} chars)")
        return 0

    if subcommand == "status":
        metadata = ctx.store.metadata()
        grid = Table.grid(padding=(0, 2))
        grid.add_column(justify="right", style="bold cyan")
        grid.add_column(justify="left")
        grid.add_row("Environment", ctx.config.storage.environment)
        grid.add_row("Source", metadata.source)
        grid.add_row("Key", metadata.key)
        grid.add_row("Exists", "yes" if metadata.exists else "no")
        grid.add_row("Size", f"{metadata.size_bytes} bytes")
        grid.add_row("Updated", metadata.updated_at.isoformat() if metadata.updated_at else "-")
        Console().print(grid)
        return 0

    print(f"Unknown logs subcommand: {subcommand}", file=sys.stderr)
    return 1


def command_correct(ctx: AppContext, task_id: str, timestamp: str) -> int:
    """Record a manual in-progress start time for a task."""

    ctx.service.correct_in_progress_since(task_id, timestamp)
    print(f"Task {task_id} marked in progress since {timestamp}")
    return 0


def command_serve(ctx: AppContext, host: Optional[str] = None, port: Optional[int] = None) -> int:
    """Run the HTTP API."""

    import uvicorn

    from taskpulse.interfaces.api import create_app

    uvicorn.run(
        create_app(ctx),
        host=host or ctx.config.server.host,
        port=port or ctx.config.server.port,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Create the top-level argument parser."""

    parser = argparse.ArgumentParser(description="TaskPulse command line interface")
    parser.add_argument("--log-level", help="Override TASKPULSE_LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    report_parser = subparsers.add_parser("report", help="Build the daily review report")
    report_parser.add_argument("--download", metavar="PATH", help="Write the markdown report to a file or directory")
    report_parser.add_argument("--json", dest="as_json", action="store_true", help="Print the JSON envelope")
    report_parser.add_argument("--slack", action="store_true", help="Post the chat summary to Slack")
    report_parser.add_argument("--link", metavar="URL", help="Reply in the Slack thread with a link to the full report")

    subparsers.add_parser("tasks", help="List open tasks")

    logs_parser = subparsers.add_parser("logs", help="Show, replace or describe the change log")
    logs_parser.add_argument("subcommand", nargs="?", default="show", choices=["show", "edit", "status"])
    logs_parser.add_argument("path", nargs="?", help="Replacement content (for edit)")

    correct_parser = subparsers.add_parser("correct", help="Set a task's in-progress start time")
    correct_parser.add_argument("task_id", help="ClickUp task ID")
    correct_parser.add_argument("timestamp", help="ISO 8601 timestamp, e.g. 2024-06-03T14:00:00.000Z")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", help="Bind address")
    serve_parser.add_argument("--port", type=int, help="Bind port")

    return parser


def main(argv: Optional[list[str]] = None, ctx: Optional[AppContext] = None) -> int:
    """Main entry point for the CLI."""

    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(level=args.log_level)
    ctx = ctx or build_context()

    try:
        if args.command == "report":
            return command_report(ctx, args.download, args.as_json, args.slack, args.link)

        if args.command == "tasks":
            return command_tasks(ctx)

        if args.command == "logs":
            return command_logs(ctx, args.subcommand, args.path)

        if args.command == "correct":
            return command_correct(ctx, args.task_id, args.timestamp)

        if args.command == "serve":
            return command_serve(ctx, args.host, args.port)
    except TaskPulseError as exc:
        logger.error(f"{args.command} failed: {exc}")
        print(exc.user_message, file=sys.stderr)
        return 1

    parser.error(f"Unknown command: {args.command}")
    return 1


if __name__ == "__main__":  # pragma: no cover - manual execution
    sys.exit(main())
