"""Structured logging setup for TaskPulse.

Entry points (CLI, HTTP API) call :func:`configure_logging` once. It installs a
Rich console handler and a JSON-lines file sink on the stdlib root logger.
structlog events and loguru records both end up there, so library modules can
keep using ``from loguru import logger``.
"""

from __future__ import annotations

import logging
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import structlog
from loguru import logger as loguru_logger
from rich.console import Console
from rich.markup import escape
from structlog.contextvars import merge_contextvars

__all__ = [
    "configure_logging",
    "get_logger",
]

_CONFIGURED = False
_CONSOLE = Console(soft_wrap=True, stderr=True)
_DEFAULT_LOG_DIR = Path("data/.logs")
_PACKAGE_PREFIX = "taskpulse."

_LEVEL_STYLES: Dict[str, str] = {
    "CRITICAL": "bold white on red",
    "ERROR": "red",
    "WARNING": "yellow",
    "INFO": "white",
    "DEBUG": "cyan",
}


class DedupFilter(logging.Filter):
    """Drop repeats of the same message from the same logger within a cooldown."""

    def __init__(self, cooldown_seconds: float = 1.0) -> None:
        super().__init__()
        self.cooldown_seconds = cooldown_seconds
        self._seen: Dict[tuple[str, int, str], float] = {}

    def filter(self, record: logging.LogRecord) -> bool:
        now = time.monotonic()
        key = (record.name, record.levelno, str(record.msg))
        last = self._seen.get(key)
        self._seen[key] = now
        return last is None or (now - last) > self.cooldown_seconds


class RichConsoleHandler(logging.Handler):
    """Prints formatted records through the shared Rich console."""

    def emit(self, record: logging.LogRecord) -> None:  # pragma: no cover - thin wrapper
        try:
            _CONSOLE.print(self.format(record), markup=True, highlight=False, overflow="ignore")
        except Exception:  # pragma: no cover - logging must never raise
            self.handleError(record)


def _forward_loguru(message: Any) -> None:
    """Loguru sink: re-emit the record on the stdlib logger of the same module."""
    record = message.record
    levelno = logging.getLevelName(record["level"].name)
    if not isinstance(levelno, int):
        # loguru-only levels such as SUCCESS and TRACE
        levelno = logging.INFO
    exc_info = None
    if record["exception"] is not None:
        exc_info = (record["exception"].type, record["exception"].value, record["exception"].traceback)
    logging.getLogger(record["name"] or "taskpulse").log(levelno, record["message"], exc_info=exc_info)


def _add_environment(logger: Any, name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    event_dict.setdefault("env", os.getenv("TASKPULSE_ENV", "development"))
    return event_dict


def _format_pairs(pairs: Iterable[tuple[str, Any]]) -> str:
    formatted = []
    for key, value in pairs:
        if isinstance(value, str) and " " in value:
            formatted.append(f'{key}="{value}"')
        elif isinstance(value, (dict, list, tuple)):
            formatted.append(f"{key}={value!r}")
        else:
            formatted.append(f"{key}={value}")
    return " ".join(formatted)


def _console_renderer(logger: Any, name: str, event_dict: Dict[str, Any]) -> str:
    event_dict.pop("env", None)
    timestamp = event_dict.pop("timestamp", None)
    level = str(event_dict.pop("level", "info")).upper()
    component = str(event_dict.pop("logger", name))
    if component.startswith(_PACKAGE_PREFIX):
        component = component[len(_PACKAGE_PREFIX):]
    event = event_dict.pop("event", "")
    exception = event_dict.pop("exception", None)

    clock = timestamp[11:19] if isinstance(timestamp, str) else datetime.now().strftime("%H:%M:%S")
    style = _LEVEL_STYLES.get(level, "white")
    line = f"[dim]{clock}[/dim] | [{style}]{level:<7}[/] | [dim]{component}[/dim] | {escape(str(event))}"

    pairs = _format_pairs(sorted(event_dict.items()))
    if pairs:
        line = f"{line} {escape(pairs)}"
    if exception:
        line = f"{line}\n{escape(str(exception))}"
    return line


def _shared_processors() -> list[Any]:
    """Processors applied to structlog events and to foreign (stdlib/loguru) records alike."""
    return [
        merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        _add_environment,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def _formatter(renderer: Any) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_shared_processors(),
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )


def configure_logging(
    level: Optional[str] = None,
    log_dir: Optional[Path | str] = None,
) -> None:
    """Configure console + file logging once per process.

    Args:
        level: Log level name; defaults to ``TASKPULSE_LOG_LEVEL`` or INFO
        log_dir: Directory for the daily ``taskpulse-YYYYMMDD.jsonl`` file;
            defaults to ``TASKPULSE_LOG_DIR`` or ``./data/.logs``
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    resolved_level = (level or os.getenv("TASKPULSE_LOG_LEVEL", "INFO")).upper()
    directory = Path(log_dir or os.getenv("TASKPULSE_LOG_DIR") or _DEFAULT_LOG_DIR).expanduser().resolve()
    directory.mkdir(parents=True, exist_ok=True)

    console_handler = RichConsoleHandler()
    console_handler.setLevel(resolved_level)
    console_handler.addFilter(DedupFilter())
    console_handler.setFormatter(_formatter(_console_renderer))

    file_handler = logging.FileHandler(directory / f"taskpulse-{datetime.now():%Y%m%d}.jsonl", encoding="utf-8")
    file_handler.setLevel(resolved_level)
    file_handler.setFormatter(_formatter(structlog.processors.JSONRenderer()))

    logging.basicConfig(
        level=getattr(logging, resolved_level, logging.INFO),
        handlers=[console_handler, file_handler],
        force=True,
    )
    structlog.configure(
        processors=[*_shared_processors(), structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    loguru_logger.remove()
    loguru_logger.add(_forward_loguru, level=resolved_level, format="{message}")

    _CONFIGURED = True


def get_logger(name: Optional[str] = None, **context: Any) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to the given name and context."""
    base = structlog.get_logger(name or "taskpulse")
    if context:
        return base.bind(**context)
    return base
