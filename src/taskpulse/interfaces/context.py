"""Shared wiring for the CLI and the HTTP API."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from taskpulse.changelog.store import LogStore, build_log_store
from taskpulse.clickup.client import ClickUpClient
from taskpulse.config import Config, get_config
from taskpulse.interfaces.slack import SlackReporter
from taskpulse.reporting.prompts import PROMPT_KEY, PromptStore
from taskpulse.reporting.report_generator import DailyReport, ReportGenerator
from taskpulse.service import TaskService


@dataclass
class AppContext:
    """Holds shared resources for CLI commands and API routes.

    The ClickUp client is built on first use so that log-only commands work
    without an API token.
    """

    config: Config
    store: LogStore
    prompt_store: PromptStore
    slack: Optional[SlackReporter] = None
    _client: Optional[ClickUpClient] = field(default=None, repr=False)
    _service: Optional[TaskService] = field(default=None, repr=False)

    @property
    def client(self) -> ClickUpClient:
        if self._client is None:
            self._client = ClickUpClient.from_config(self.config.clickup)
        return self._client

    @property
    def service(self) -> TaskService:
        if self._service is None:
            if self._client is None and self.config.clickup.api_token:
                self._client = ClickUpClient.from_config(self.config.clickup)
            self._service = TaskService(
                self._client,
                self.store,
                clickup_config=self.config.clickup,
                report_config=self.config.report,
                environment=self.config.storage.environment,
            )
        return self._service

    def report_generator(self) -> ReportGenerator:
        prompt = self.prompt_store.get_prompt() if self.prompt_store.is_custom() else None
        return ReportGenerator(self.config.report, prompt=prompt)

    def build_report(self) -> DailyReport:
        return self.report_generator().generate(self.client, self.store)


def build_context(
    config: Optional[Config] = None,
    client: Optional[ClickUpClient] = None,
    store: Optional[LogStore] = None,
    prompt_store: Optional[PromptStore] = None,
) -> AppContext:
    """Create the application context from config values."""
    config = config or get_config()
    store = store or build_log_store(config.storage)
    prompt_store = prompt_store or PromptStore(build_log_store(config.storage, key=PROMPT_KEY))
    return AppContext(
        config=config,
        store=store,
        prompt_store=prompt_store,
        slack=SlackReporter.from_config(config.slack),
        _client=client,
    )
