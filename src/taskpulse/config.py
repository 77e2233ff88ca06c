"""Configuration management"""

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

# Load .env file
load_dotenv()


class ClickUpConfig(BaseSettings):
    """ClickUp API configuration"""
    api_token: str = Field("", alias="CLICKUP_API_TOKEN")
    list_id: str = Field("", alias="CLICKUP_LIST_ID")
    team_id: str = Field("", alias="CLICKUP_TEAM_ID")
    base_url: str = "https://api.clickup.com/api/v2"
    timeout_seconds: float = 10.0
    max_retries: int = 3  # Retries on HTTP 429 only
    backoff_base_seconds: float = 1.0
    review_parent_name: str = "Review"  # Parent task that collects created subtasks
    review_parent_owner: str = "young"  # Developer option assigned to a new Review parent


class StorageConfig(BaseSettings):
    """Change log storage configuration"""
    environment: str = Field("development", alias="TASKPULSE_ENV")  # production | preview | development
    backend: str = Field("file", alias="TASKPULSE_STORAGE")  # file | database
    log_dir: Path = Field(Path("./data/logs"), alias="TASKPULSE_LOG_STORE_DIR")
    database_url: str = Field("sqlite:///./data/taskpulse.db", alias="TASKPULSE_DATABASE_URL")


class ReportConfig(BaseSettings):
    """Daily review report configuration"""
    review_hour_utc: int = 16  # 11 AM CDT; CST would be 17
    business_timezone: str = "America/Chicago"  # Display only
    stale_after_days: int = 3
    in_progress_status: str = "IN PROGRESS"  # Canonical status written to the change log
    overloaded_hours: float = 32.0
    busy_hours: float = 16.0
    recent_log_lines: int = 1000
    download_url: str = "/api/llm-report?download=true"


class SlackConfig(BaseSettings):
    """Slack posting configuration (optional)"""
    bot_token: Optional[str] = Field(None, alias="SLACK_BOT_TOKEN")
    channel: Optional[str] = Field(None, alias="SLACK_REPORT_CHANNEL")


class ServerConfig(BaseSettings):
    """HTTP API server configuration"""
    host: str = "127.0.0.1"
    port: int = 8000


class Config(BaseSettings):
    """Main configuration"""
    clickup: ClickUpConfig
    storage: StorageConfig
    report: ReportConfig
    slack: SlackConfig
    server: ServerConfig

    class Config:
        env_nested_delimiter = "__"

    def __init__(self, **data):
        super().__init__(
            clickup=data.pop("clickup", None) or ClickUpConfig(),
            storage=data.pop("storage", None) or StorageConfig(),
            report=data.pop("report", None) or ReportConfig(),
            slack=data.pop("slack", None) or SlackConfig(),
            server=data.pop("server", None) or ServerConfig(),
            **data
        )


def get_config() -> Config:
    """Get configuration instance"""
    return Config()
