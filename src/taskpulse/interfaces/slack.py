"""Post the daily review chat message to Slack"""

from __future__ import annotations

from typing import Optional

from loguru import logger
from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError

from taskpulse.config import SlackConfig
from taskpulse.reporting.report_generator import DailyReport


class SlackReporter:
    """Sends the chat summary of a :class:`DailyReport` to one channel"""

    def __init__(self, bot_token: str, channel: str, client: Optional[WebClient] = None):
        self.channel = channel
        self.client = client or WebClient(token=bot_token)

    @classmethod
    def from_config(cls, config: SlackConfig) -> Optional["SlackReporter"]:
        """Return a reporter, or None when Slack is not configured."""
        if not config.bot_token or not config.channel:
            return None
        return cls(config.bot_token, config.channel)

    def send_message(self, message: str, thread_ts: Optional[str] = None) -> Optional[str]:
        """Send message to the channel; returns the message ts on success"""
        try:
            response = self.client.chat_postMessage(
                channel=self.channel,
                text=message,
                thread_ts=thread_ts,
                mrkdwn=True,
            )
        except SlackApiError as e:
            logger.error(f"Failed to send message to {self.channel}: {e}")
            return None
        return response.get("ts")

    def post_summary(self, report: DailyReport, attach_link: Optional[str] = None) -> bool:
        """Post the report's chat message, optionally followed by a thread reply with the report link."""
        ts = self.send_message(report.chat_message)
        if ts is None:
            return False
        logger.info(f"Posted daily review summary to {self.channel}")
        if attach_link:
            self.send_message(f"Full report: {attach_link}", thread_ts=ts)
        return True
