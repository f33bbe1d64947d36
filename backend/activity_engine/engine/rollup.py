from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, timedelta
from typing import Any, Iterable, Sequence

from sqlalchemy.orm import Session as DBSession

from activity_engine.crud import crud
from activity_engine.engine import days


@dataclass(frozen=True)
class WeeklyStats:
    week_start: date
    total_steps: int = 0
    total_distance_meters: float = 0.0
    total_calories: int = 0
    total_points: int = 0
    total_duration_seconds: int = 0
    avg_daily_steps: float = 0.0
    avg_daily_distance_meters: float = 0.0
    active_days: int = 0

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _week_stats(start: date, summaries: Sequence[Any]) -> WeeklyStats:
    if not summaries:
        return WeeklyStats(week_start=start)

    total_steps = sum(s.total_steps or 0 for s in summaries)
    total_distance = sum(float(s.total_distance_meters or 0) for s in summaries)
    return WeeklyStats(
        week_start=start,
        total_steps=total_steps,
        total_distance_meters=round(total_distance, 2),
        total_calories=sum(s.total_calories or 0 for s in summaries),
        total_points=sum(s.total_points or 0 for s in summaries),
        total_duration_seconds=sum(s.total_duration_seconds or 0 for s in summaries),
        avg_daily_steps=round(total_steps / len(summaries), 2),
        avg_daily_distance_meters=round(total_distance / len(summaries), 2),
        active_days=sum(1 for s in summaries if (s.session_count or 0) > 0),
    )


def build_weekly_stats(summaries: Iterable[Any], window_weeks: int, today: date) -> list[WeeklyStats]:
    """Group summary rows into Monday-based weeks, newest first.

    Weeks without any rows are zero-filled so the result always spans the
    whole window.
    """
    current_week = days.week_start(today)
    starts = [current_week - timedelta(weeks=offset) for offset in range(window_weeks)]
    buckets: dict[date, list[Any]] = {start: [] for start in starts}
    for summary in summaries:
        bucket = buckets.get(days.week_start(summary.summary_date))
        if bucket is not None:
            bucket.append(summary)
    return [_week_stats(start, buckets[start]) for start in starts]


def weekly_rollup(
    db: DBSession,
    health_profile_id: str,
    window_weeks: int = 4,
    today: date | None = None,
) -> list[WeeklyStats]:
    if window_weeks < 1:
        raise ValueError("window_weeks must be at least 1")
    today = today or days.today()
    window_start = days.week_start(today) - timedelta(weeks=window_weeks - 1)
    window_end = days.week_start(today) + timedelta(days=6)
    summaries = crud.get_daily_summaries_by_date_range(db, health_profile_id, window_start, window_end)
    return build_weekly_stats(summaries, window_weeks, today)


def weekly_comparison(weeks: Sequence[WeeklyStats]) -> dict[str, Any] | None:
    if len(weeks) < 2:
        return None

    current_week, previous_week = weeks[0], weeks[1]
    previous = previous_week.avg_daily_distance_meters
    current = current_week.avg_daily_distance_meters
    change = ((current - previous) / previous) * 100 if previous > 0 else 0.0

    def _side(week: WeeklyStats) -> dict[str, Any]:
        return {
            "week_start": week.week_start,
            "avg_daily_distance_km": week.avg_daily_distance_meters / 1000,
            "total_steps": week.total_steps,
            "active_days": week.active_days,
        }

    return {
        "current_week": _side(current_week),
        "previous_week": _side(previous_week),
        "percentage_change": round(change, 1),
        "trend": "increase" if change >= 0 else "decrease",
    }
