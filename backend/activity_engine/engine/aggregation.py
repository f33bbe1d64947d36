"""Daily summary aggregation.

A summary is always rebuilt from scratch out of the live sessions of its
``(profile, date)`` key. There is no incremental path: whatever the row held
before is overwritten, so a summary that drifted for any reason is repaired
by the next write that touches its day.
"""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Iterable

from sqlalchemy.orm import Session as DBSession

from activity_engine.core.logging import get_logger
from activity_engine.crud import crud
from activity_engine.engine.points import goal_value
from activity_engine.models import models

logger = get_logger(__name__)

COUNTED_TYPES = ("walk", "run", "commute", "hike", "treadmill")


class AggregationError(RuntimeError):
    def __init__(self, health_profile_id: str, summary_date: date, reason: str):
        super().__init__(f"Failed to recompute summary for {health_profile_id} on {summary_date}: {reason}")
        self.health_profile_id = health_profile_id
        self.summary_date = summary_date


@dataclass
class DailyTotals:
    total_steps: int = 0
    total_distance_meters: float = 0.0
    total_calories: int = 0
    total_active_calories: int = 0
    total_points: int = 0
    total_duration_seconds: int = 0

    session_count: int = 0
    walk_count: int = 0
    run_count: int = 0
    commute_count: int = 0
    hike_count: int = 0
    treadmill_count: int = 0

    avg_heart_rate: int | None = None
    avg_pace_seconds_per_km: int | None = None
    avg_speed_kmh: float | None = None

    best_pace_seconds_per_km: int | None = None
    longest_activity_meters: float | None = None

    steps_goal_progress: int = 0
    distance_goal_progress: int = 0
    calories_goal_progress: int = 0
    active_minutes_goal_progress: int = 0

    data_sources: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _num(value: Any) -> Any:
    return 0 if value is None else value


def _mean(values: list[Any]) -> float | None:
    if not values:
        return None
    return sum(values) / len(values)


def _round_half_up(value: float | None) -> int | None:
    if value is None:
        return None
    return int(math.floor(value + 0.5))


def goal_progress(total: Any, target: Any) -> int:
    """Whole percent of ``target`` reached; not capped at 100."""
    if not target or target <= 0:
        return 0
    return max(0, math.floor(100 * float(_num(total)) / float(target)))


def build_daily_totals(sessions: Iterable[Any], goals: Any = None) -> DailyTotals:
    totals = DailyTotals()
    heart_rates: list[int] = []
    paces: list[int] = []
    speeds: list[float] = []
    best_paces: list[int] = []
    sources: set[str] = set()

    for session in sessions:
        if getattr(session, "deleted_at", None) is not None:
            continue

        totals.session_count += 1
        totals.total_steps += int(_num(session.steps))
        totals.total_distance_meters += float(_num(session.distance_meters))
        totals.total_calories += int(_num(session.calories_burned))
        totals.total_active_calories += int(_num(session.active_calories))
        totals.total_points += int(_num(session.points_earned))
        totals.total_duration_seconds += int(_num(session.duration_seconds))

        if session.activity_type in COUNTED_TYPES:
            count_field = f"{session.activity_type}_count"
            setattr(totals, count_field, getattr(totals, count_field) + 1)

        if session.avg_heart_rate is not None:
            heart_rates.append(session.avg_heart_rate)
        if session.avg_pace_seconds_per_km is not None:
            paces.append(session.avg_pace_seconds_per_km)
        if session.avg_speed_kmh is not None:
            speeds.append(float(session.avg_speed_kmh))

        session_best = session.best_pace_seconds_per_km
        if session_best is None:
            session_best = session.avg_pace_seconds_per_km
        if session_best is not None and session_best > 0:
            best_paces.append(session_best)

        distance = float(_num(session.distance_meters))
        if totals.longest_activity_meters is None or distance > totals.longest_activity_meters:
            totals.longest_activity_meters = distance

        if session.source:
            sources.add(session.source)

    totals.total_distance_meters = round(totals.total_distance_meters, 2)
    totals.avg_heart_rate = _round_half_up(_mean(heart_rates))
    totals.avg_pace_seconds_per_km = _round_half_up(_mean(paces))
    avg_speed = _mean(speeds)
    totals.avg_speed_kmh = round(avg_speed, 2) if avg_speed is not None else None
    totals.best_pace_seconds_per_km = min(best_paces) if best_paces else None
    totals.data_sources = sorted(sources)

    totals.steps_goal_progress = goal_progress(totals.total_steps, goal_value(goals, "daily_steps_goal"))
    totals.distance_goal_progress = goal_progress(
        totals.total_distance_meters, goal_value(goals, "daily_distance_meters")
    )
    totals.calories_goal_progress = goal_progress(totals.total_calories, goal_value(goals, "daily_calories_goal"))
    totals.active_minutes_goal_progress = goal_progress(
        totals.total_duration_seconds // 60, goal_value(goals, "daily_active_minutes")
    )
    return totals


def recompute_daily_summary(
    db: DBSession,
    health_profile_id: str,
    summary_date: date,
    goals: Any = None,
) -> models.DailySummary:
    """Rebuild and upsert the summary for one ``(profile, date)`` key.

    The caller must hold the key's lock and owns the transaction. Any
    failure is raised as AggregationError so the triggering write can be
    rolled back with it.
    """
    try:
        if goals is None:
            goals = crud.get_goals(db, health_profile_id)
        sessions = crud.get_live_sessions_for_day(db, health_profile_id, summary_date)
        totals = build_daily_totals(sessions, goals)

        summary = crud.get_daily_summary(db, health_profile_id, summary_date, for_update=True)
        created = summary is None
        if created:
            summary = models.DailySummary(
                health_profile_id=health_profile_id,
                summary_date=summary_date,
                credited_points=0,
            )
            db.add(summary)

        for key, value in totals.as_dict().items():
            setattr(summary, key, value)
        db.flush()
    except AggregationError:
        raise
    except Exception as exc:
        logger.error(
            "daily_summary_recompute_failed",
            health_profile_id=health_profile_id,
            summary_date=summary_date.isoformat(),
            error=str(exc),
        )
        raise AggregationError(health_profile_id, summary_date, str(exc)) from exc

    logger.info(
        "daily_summary_recomputed",
        health_profile_id=health_profile_id,
        summary_date=summary_date.isoformat(),
        created=created,
        session_count=totals.session_count,
        total_steps=totals.total_steps,
        total_points=totals.total_points,
    )
    return summary
