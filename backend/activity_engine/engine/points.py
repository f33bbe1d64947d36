from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class GoalDefaults:
    daily_steps_goal: int = 10000
    daily_distance_meters: int = 8000
    daily_calories_goal: int = 500
    daily_active_minutes: int = 30

    weekly_steps_goal: int = 70000
    weekly_distance_meters: int = 50000
    weekly_active_days: int = 5

    points_per_1000_steps: int = 10
    points_per_km: int = 20
    points_per_calorie: Decimal = Decimal("0.1")


DEFAULT_GOALS = GoalDefaults()

TARGET_FIELDS = (
    "daily_steps_goal",
    "daily_distance_meters",
    "daily_calories_goal",
    "daily_active_minutes",
    "weekly_steps_goal",
    "weekly_distance_meters",
    "weekly_active_days",
)
WEIGHT_FIELDS = ("points_per_1000_steps", "points_per_km", "points_per_calorie")


def _decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal(0)
    if isinstance(value, Decimal):
        return value
    # str() keeps 0.1 as 0.1 instead of its binary expansion
    return Decimal(str(value))


def goal_value(goals: Any, field: str) -> Any:
    """Read ``field`` from a goals row, falling back to the system default.

    ``goals`` may be None, an ORM row, or any object exposing the attribute.
    A column that was never flushed reads as None and also falls back.
    """
    value = getattr(goals, field, None) if goals is not None else None
    if value is None:
        return getattr(DEFAULT_GOALS, field)
    return value


def compute_points(steps: Any, distance_km: Any, calories: Any, goals: Any = None) -> int:
    per_thousand_steps = _decimal(goal_value(goals, "points_per_1000_steps"))
    per_km = _decimal(goal_value(goals, "points_per_km"))
    per_calorie = _decimal(goal_value(goals, "points_per_calorie"))

    steps_points = math.floor(_decimal(steps) / 1000 * per_thousand_steps)
    distance_points = math.floor(_decimal(distance_km) * per_km)
    calorie_points = math.floor(_decimal(calories) * per_calorie)
    return int(steps_points + distance_points + calorie_points)


def compute_session_points(session: Any, goals: Any = None) -> int:
    distance_km = _decimal(session.distance_meters) / 1000
    return compute_points(session.steps, distance_km, session.calories_burned, goals)
