from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from activity_engine.core.config import settings


def activity_zone() -> ZoneInfo:
    return ZoneInfo(settings.ACTIVITY_TIMEZONE)


def activity_date_for(started_at: datetime) -> date:
    """Calendar day a session belongs to; naive timestamps are taken as UTC."""
    if started_at.tzinfo is None:
        started_at = started_at.replace(tzinfo=timezone.utc)
    return started_at.astimezone(activity_zone()).date()


def today() -> date:
    return datetime.now(activity_zone()).date()


def week_start(day: date) -> date:
    return day - timedelta(days=day.weekday())
