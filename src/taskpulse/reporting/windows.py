"""Review window helpers for the daily report."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

REVIEW_HOUR_UTC = 16  # 11 AM America/Chicago during daylight time

MONDAY = 0
SUNDAY = 6


def review_window_start(now: Optional[datetime] = None, review_hour_utc: int = REVIEW_HOUR_UTC) -> datetime:
    """Return the start of the review period: the review hour on the previous business day.

    Monday looks back to Friday, Sunday to Friday, every other day to the day
    before. The hour is a fixed UTC offset, so it lands an hour late while
    standard time is in effect.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)

    weekday = now.weekday()
    if weekday == MONDAY:
        days_back = 3
    elif weekday == SUNDAY:
        days_back = 2
    else:
        days_back = 1

    start = now - timedelta(days=days_back)
    return start.replace(hour=review_hour_utc, minute=0, second=0, microsecond=0)


def business_time_label(moment: datetime, timezone_name: str) -> str:
    """Long human-readable rendering in the business timezone, e.g. for report headers."""
    try:
        zone = ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError):
        zone = timezone.utc
    local = moment.astimezone(zone)
    return local.strftime("%A, %B %d, %Y at %I:%M %p %Z")
