from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Mapping

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession

from activity_engine.core.logging import get_logger
from activity_engine.crud import crud
from activity_engine.engine.points import goal_value
from activity_engine.models import models

logger = get_logger(__name__)

# Cumulative XP needed to reach level N is LEVEL_THRESHOLDS[N - 1].
LEVEL_THRESHOLDS = (
    0,
    500,
    1500,
    3000,
    5000,
    7500,
    10500,
    14000,
    18000,
    22500,
    27500,
    33000,
    39000,
    45500,
    52500,
)
MAX_LEVEL = len(LEVEL_THRESHOLDS)

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class StreakState:
    current: int
    longest: int
    last_date: date | None


def level_for_xp(total_xp: int) -> int:
    return max(1, bisect_right(LEVEL_THRESHOLDS, max(0, total_xp or 0)))


def xp_to_next_level(total_xp: int) -> int | None:
    level = level_for_xp(total_xp)
    if level >= MAX_LEVEL:
        return None
    return LEVEL_THRESHOLDS[level] - max(0, total_xp or 0)


def advance_streak(state: StreakState, day: date, target_met: bool) -> StreakState:
    """Apply one day's evaluation to a streak.

    ``last_date`` is the most recent day that met the target. A day that has
    not met its target yet only breaks the streak once a gap is visible,
    since later sessions on the same day may still get it there.
    """
    current, longest, last = state.current, state.longest, state.last_date

    if last is None:
        if target_met:
            current, last = 1, day
    elif day <= last:
        pass
    elif day == last + ONE_DAY:
        if target_met:
            current, last = current + 1, day
    else:
        if target_met:
            current, last = 1, day
        else:
            current = 0

    return StreakState(current=current, longest=max(longest, current), last_date=last)


def rebuild_streak(evaluated: Mapping[date, bool], longest: int = 0) -> StreakState:
    """Recount a streak from every evaluated day.

    Walks back from the newest qualifying day while the previous calendar
    day also qualified. An evaluated day more than one day past it means
    the run was already broken. ``longest`` is kept as a high-water mark.
    """
    qualifying = [day for day, met in evaluated.items() if met]
    if not qualifying:
        return StreakState(current=0, longest=longest, last_date=None)

    last = max(qualifying)
    current = 0
    check_day = last
    while evaluated.get(check_day):
        current += 1
        check_day -= ONE_DAY

    if max(evaluated) > last + ONE_DAY:
        current = 0
    return StreakState(current=current, longest=max(longest, current), last_date=last)


def effective_streak(current: int, last_date: date | None, today: date) -> int:
    """Streak as seen on ``today``: broken once yesterday went unqualified."""
    if last_date is None or last_date < today - ONE_DAY:
        return 0
    return current


def ensure_goals(db: DBSession, health_profile_id: str) -> models.ActivityGoals:
    """Return the profile's goals row, creating it with defaults if missing.

    The insert runs in a savepoint; when a concurrent writer created the row
    first the unique constraint rejects ours and the existing row is used.
    """
    goals = crud.get_goals(db, health_profile_id, for_update=True)
    if goals is not None:
        return goals

    goals = models.ActivityGoals(health_profile_id=health_profile_id)
    try:
        with db.begin_nested():
            db.add(goals)
            db.flush()
    except IntegrityError:
        logger.info("activity_goals_create_lost_race", health_profile_id=health_profile_id)
        goals = crud.get_goals(db, health_profile_id, for_update=True)
        if goals is None:
            raise
        return goals

    logger.info("activity_goals_created", health_profile_id=health_profile_id)
    return goals


def steps_target_met(summary: Any, goals: Any) -> bool:
    return (summary.total_steps or 0) >= goal_value(goals, "daily_steps_goal")


def active_target_met(summary: Any, goals: Any) -> bool:
    return (summary.total_duration_seconds or 0) // 60 >= goal_value(goals, "daily_active_minutes")


def update_streaks(
    db: DBSession,
    health_profile_id: str,
    day: date,
    summary: models.DailySummary,
    goals: models.ActivityGoals | None = None,
) -> models.ActivityGoals:
    if goals is None:
        goals = ensure_goals(db, health_profile_id)

    steps_state = StreakState(
        current=goals.current_steps_streak or 0,
        longest=goals.longest_steps_streak or 0,
        last_date=goals.last_steps_streak_date,
    )
    active_state = StreakState(
        current=goals.current_active_streak or 0,
        longest=goals.longest_active_streak or 0,
        last_date=goals.last_active_streak_date,
    )

    # Only a day newer than everything evaluated so far can be applied
    # forward; backfills and edits to older days recount from the summaries.
    rebuild = crud.has_daily_summary_after(db, health_profile_id, day) or any(
        state.last_date is not None and day <= state.last_date for state in (steps_state, active_state)
    )
    if rebuild:
        summaries = crud.get_daily_summaries_for_profile(db, health_profile_id)
        steps = rebuild_streak(
            {s.summary_date: steps_target_met(s, goals) for s in summaries}, steps_state.longest
        )
        active = rebuild_streak(
            {s.summary_date: active_target_met(s, goals) for s in summaries}, active_state.longest
        )
    else:
        steps = advance_streak(steps_state, day, steps_target_met(summary, goals))
        active = advance_streak(active_state, day, active_target_met(summary, goals))

    goals.current_steps_streak = steps.current
    goals.longest_steps_streak = steps.longest
    goals.last_steps_streak_date = steps.last_date
    goals.current_active_streak = active.current
    goals.longest_active_streak = active.longest
    goals.last_active_streak_date = active.last_date
    if goals.last_streak_date is None or day > goals.last_streak_date:
        goals.last_streak_date = day

    xp_delta = (summary.total_points or 0) - (summary.credited_points or 0)
    goals.total_xp = max(0, (goals.total_xp or 0) + xp_delta)
    summary.credited_points = summary.total_points or 0
    previous_level = goals.level or 1
    goals.level = level_for_xp(goals.total_xp)
    db.flush()

    logger.info(
        "streaks_updated",
        health_profile_id=health_profile_id,
        day=day.isoformat(),
        recounted=rebuild,
        steps_streak=steps.current,
        active_streak=active.current,
        xp_delta=xp_delta,
        total_xp=goals.total_xp,
        level=goals.level,
    )
    if goals.level != previous_level:
        logger.info(
            "level_changed",
            health_profile_id=health_profile_id,
            previous_level=previous_level,
            level=goals.level,
        )
    return goals
