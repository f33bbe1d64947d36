from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Sequence

from sqlalchemy.orm import Session as DBSession

from activity_engine.crud import crud
from activity_engine.engine import days


def period_totals(summaries: Sequence[Any]) -> dict[str, Any]:
    total_steps = sum(s.total_steps or 0 for s in summaries)
    total_distance = sum(float(s.total_distance_meters or 0) for s in summaries)
    active_days = sum(1 for s in summaries if (s.total_steps or 0) > 0)
    divisor = active_days or 1
    return {
        "total_steps": total_steps,
        "total_distance_meters": round(total_distance, 2),
        "total_calories": sum(s.total_calories or 0 for s in summaries),
        "total_points": sum(s.total_points or 0 for s in summaries),
        "active_days": active_days,
        "avg_daily_steps": round(total_steps / divisor),
        "avg_daily_distance_meters": round(total_distance / divisor, 2),
    }


def summaries_for_range(
    db: DBSession,
    health_profile_id: str,
    start_date: date | None = None,
    end_date: date | None = None,
    default_days: int = 14,
) -> tuple[list[Any], dict[str, Any]]:
    end_date = end_date or days.today()
    start_date = start_date or end_date - timedelta(days=default_days)
    if start_date > end_date:
        start_date, end_date = end_date, start_date
    summaries = crud.get_daily_summaries_by_date_range(db, health_profile_id, start_date, end_date)
    return summaries, period_totals(summaries)


def percentage_change(current: float, previous: float) -> int:
    if previous <= 0:
        return 0
    return round(((current - previous) / previous) * 100)


def activity_stats(
    db: DBSession,
    health_profile_id: str,
    period_days: int = 14,
    today: date | None = None,
) -> dict[str, Any]:
    """Today, yesterday and trailing-period figures for a profile dashboard.

    The period is the last ``period_days`` days including today; the
    distance change compares it with the ``period_days`` days before it.
    """
    today = today or days.today()
    yesterday = today - timedelta(days=1)
    period_start = today - timedelta(days=period_days - 1)
    previous_end = period_start - timedelta(days=1)
    previous_start = period_start - timedelta(days=period_days)

    today_row = crud.get_daily_summary(db, health_profile_id, today)
    yesterday_row = crud.get_daily_summary(db, health_profile_id, yesterday)
    period = period_totals(crud.get_daily_summaries_by_date_range(db, health_profile_id, period_start, today))
    previous = period_totals(
        crud.get_daily_summaries_by_date_range(db, health_profile_id, previous_start, previous_end)
    )

    return {
        "today": {
            "date": today,
            "steps": today_row.total_steps if today_row else 0,
            "distance_km": (today_row.total_distance_meters or 0) / 1000 if today_row else 0.0,
            "calories": today_row.total_calories if today_row else 0,
            "points": today_row.total_points if today_row else 0,
        },
        "yesterday": {
            "date": yesterday,
            "distance_km": (yesterday_row.total_distance_meters or 0) / 1000 if yesterday_row else 0.0,
        },
        "period": {
            "days": period_days,
            "total_steps": period["total_steps"],
            "total_distance_km": period["total_distance_meters"] / 1000,
            "total_calories": period["total_calories"],
            "total_points": period["total_points"],
            "percentage_change": percentage_change(
                period["total_distance_meters"], previous["total_distance_meters"]
            ),
        },
    }
