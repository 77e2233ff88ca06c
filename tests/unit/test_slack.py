"""Unit tests for the Slack reporter."""

from unittest.mock import MagicMock

from slack_sdk.errors import SlackApiError

from taskpulse.config import SlackConfig
from taskpulse.interfaces.slack import SlackReporter


def make_reporter():
    client = MagicMock()
    client.chat_postMessage.return_value = {"ts": "1717400000.000100"}
    return SlackReporter("xoxb-test", "#standup", client=client), client


class TestSlackReporter:
    """Test cases for SlackReporter."""

    def test_post_summary_without_link(self):
        reporter, client = make_reporter()

        assert reporter.post_summary(MagicMock(chat_message="*Good morning!*")) is True

        client.chat_postMessage.assert_called_once_with(
            channel="#standup", text="*Good morning!*", thread_ts=None, mrkdwn=True
        )

    def test_post_summary_replies_with_link_in_thread(self):
        reporter, client = make_reporter()

        assert reporter.post_summary(MagicMock(chat_message="summary"), attach_link="https://reports/today") is True

        reply = client.chat_postMessage.call_args_list[1]
        assert reply.kwargs["text"] == "Full report: https://reports/today"
        assert reply.kwargs["thread_ts"] == "1717400000.000100"

    def test_post_summary_failure(self):
        reporter, client = make_reporter()
        client.chat_postMessage.side_effect = SlackApiError("channel_not_found", MagicMock())

        assert reporter.post_summary(MagicMock(chat_message="summary"), attach_link="https://reports/today") is False
        assert client.chat_postMessage.call_count == 1

    def test_from_config_requires_token_and_channel(self):
        assert SlackReporter.from_config(SlackConfig(SLACK_BOT_TOKEN=None, SLACK_REPORT_CHANNEL="#standup")) is None
        reporter = SlackReporter.from_config(SlackConfig(SLACK_BOT_TOKEN="xoxb-test", SLACK_REPORT_CHANNEL="#standup"))
        assert reporter.channel == "#standup"
