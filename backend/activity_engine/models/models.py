from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Index,
)
from sqlalchemy.sql import func
from activity_engine.core.database import Base

SOURCES = ("app", "apple_health", "google_fit", "garmin", "fitbit", "strava", "manual")
ACTIVITY_TYPES = ("walk", "run", "commute", "hike", "treadmill")


class ActivitySession(Base):
    __tablename__ = "activity_sessions"
    __table_args__ = (
        # NULL external ids never collide, so manual entries always insert.
        UniqueConstraint("health_profile_id", "external_id", "source", name="uq_activity_sessions_dedupe"),
        Index("ix_activity_sessions_profile_date", "health_profile_id", "activity_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    health_profile_id = Column(String(64), index=True, nullable=False)

    external_id = Column(String(255), nullable=True)
    source = Column(String(50), nullable=False, default="app")

    activity_type = Column(String(30), nullable=False, default="walk")
    activity_name = Column(String(200), nullable=True)

    started_at = Column(DateTime(timezone=True), nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=False)
    activity_date = Column(Date, index=True, nullable=False)
    duration_seconds = Column(Integer, nullable=False, default=0)

    distance_meters = Column(Float, nullable=False, default=0.0)
    steps = Column(Integer, nullable=False, default=0)

    calories_burned = Column(Integer, nullable=False, default=0)
    active_calories = Column(Integer, nullable=True, default=0)
    points_earned = Column(Integer, nullable=False, default=0)

    avg_heart_rate = Column(Integer, nullable=True)
    max_heart_rate = Column(Integer, nullable=True)
    min_heart_rate = Column(Integer, nullable=True)

    avg_pace_seconds_per_km = Column(Integer, nullable=True)
    max_pace_seconds_per_km = Column(Integer, nullable=True)
    avg_speed_kmh = Column(Float, nullable=True)
    max_speed_kmh = Column(Float, nullable=True)

    elevation_gain_meters = Column(Float, nullable=True, default=0.0)
    elevation_loss_meters = Column(Float, nullable=True, default=0.0)

    avg_cadence = Column(Integer, nullable=True)
    max_cadence = Column(Integer, nullable=True)

    is_indoor = Column(Boolean, nullable=False, default=False)

    route_coordinates = Column(JSON, nullable=False, default=list)
    splits = Column(JSON, nullable=False, default=list)
    pace_samples = Column(JSON, nullable=False, default=list)
    heart_rate_samples = Column(JSON, nullable=False, default=list)

    best_pace_seconds_per_km = Column(Integer, nullable=True)
    best_split_index = Column(Integer, nullable=True)
    worst_split_index = Column(Integer, nullable=True)

    notes = Column(Text, nullable=True)
    tags = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class DailySummary(Base):
    __tablename__ = "daily_activity_summaries"
    __table_args__ = (
        UniqueConstraint("health_profile_id", "summary_date", name="uq_daily_summaries_profile_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    health_profile_id = Column(String(64), index=True, nullable=False)
    summary_date = Column(Date, index=True, nullable=False)

    total_steps = Column(Integer, nullable=False, default=0)
    total_distance_meters = Column(Float, nullable=False, default=0.0)
    total_calories = Column(Integer, nullable=False, default=0)
    total_active_calories = Column(Integer, nullable=False, default=0)
    total_points = Column(Integer, nullable=False, default=0)
    total_duration_seconds = Column(Integer, nullable=False, default=0)

    session_count = Column(Integer, nullable=False, default=0)
    walk_count = Column(Integer, nullable=False, default=0)
    run_count = Column(Integer, nullable=False, default=0)
    commute_count = Column(Integer, nullable=False, default=0)
    hike_count = Column(Integer, nullable=False, default=0)
    treadmill_count = Column(Integer, nullable=False, default=0)

    avg_heart_rate = Column(Integer, nullable=True)
    avg_pace_seconds_per_km = Column(Integer, nullable=True)
    avg_speed_kmh = Column(Float, nullable=True)

    steps_goal_progress = Column(Integer, nullable=False, default=0)
    distance_goal_progress = Column(Integer, nullable=False, default=0)
    calories_goal_progress = Column(Integer, nullable=False, default=0)
    active_minutes_goal_progress = Column(Integer, nullable=False, default=0)

    best_pace_seconds_per_km = Column(Integer, nullable=True)
    longest_activity_meters = Column(Float, nullable=True)

    data_sources = Column(JSON, nullable=False, default=list)

    # Points of this day already added to the profile's XP.
    credited_points = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class ActivityGoals(Base):
    __tablename__ = "activity_goals"

    id = Column(Integer, primary_key=True, index=True)
    health_profile_id = Column(String(64), unique=True, index=True, nullable=False)

    daily_steps_goal = Column(Integer, nullable=False, default=10000)
    daily_distance_meters = Column(Integer, nullable=False, default=8000)
    daily_calories_goal = Column(Integer, nullable=False, default=500)
    daily_active_minutes = Column(Integer, nullable=False, default=30)

    weekly_steps_goal = Column(Integer, nullable=False, default=70000)
    weekly_distance_meters = Column(Integer, nullable=False, default=50000)
    weekly_active_days = Column(Integer, nullable=False, default=5)

    points_per_1000_steps = Column(Integer, nullable=False, default=10)
    points_per_km = Column(Integer, nullable=False, default=20)
    points_per_calorie = Column(Numeric(4, 2), nullable=False, default=0.1)

    current_steps_streak = Column(Integer, nullable=False, default=0)
    longest_steps_streak = Column(Integer, nullable=False, default=0)
    last_steps_streak_date = Column(Date, nullable=True)
    current_active_streak = Column(Integer, nullable=False, default=0)
    longest_active_streak = Column(Integer, nullable=False, default=0)
    last_active_streak_date = Column(Date, nullable=True)
    last_streak_date = Column(Date, nullable=True)

    level = Column(Integer, nullable=False, default=1)
    total_xp = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
