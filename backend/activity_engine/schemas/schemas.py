from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, model_validator
from datetime import date, datetime
from typing import Any, Optional, List


class ActivitySource(str, Enum):
    app = "app"
    apple_health = "apple_health"
    google_fit = "google_fit"
    garmin = "garmin"
    fitbit = "fitbit"
    strava = "strava"
    manual = "manual"


class ActivityType(str, Enum):
    walk = "walk"
    run = "run"
    commute = "commute"
    hike = "hike"
    treadmill = "treadmill"


# --- Opaque route / analytics payloads ---
class RoutePoint(BaseModel):
    model_config = ConfigDict(extra="allow")

    lat: float
    lng: float
    alt: Optional[float] = None
    ts: Optional[datetime] = None


class Split(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    distance_meters: float = Field(..., ge=0)
    duration_seconds: float = Field(..., ge=0)
    pace_seconds_per_km: Optional[int] = None
    elevation_gain: Optional[float] = None
    elevation_loss: Optional[float] = None
    avg_heart_rate: Optional[int] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


# --- Activity Session Schemas ---
class ActivitySessionBase(BaseModel):
    external_id: Optional[str] = None
    source: ActivitySource = ActivitySource.app
    activity_type: ActivityType = ActivityType.walk
    activity_name: Optional[str] = Field(None, max_length=200)

    started_at: datetime
    ended_at: datetime
    duration_seconds: Optional[int] = Field(None, ge=0)

    distance_meters: float = Field(0.0, ge=0)
    steps: int = Field(0, ge=0)
    calories_burned: int = Field(0, ge=0)
    active_calories: Optional[int] = Field(0, ge=0)

    avg_heart_rate: Optional[int] = Field(None, gt=0)
    max_heart_rate: Optional[int] = Field(None, gt=0)
    min_heart_rate: Optional[int] = Field(None, gt=0)

    avg_pace_seconds_per_km: Optional[int] = Field(None, gt=0)
    max_pace_seconds_per_km: Optional[int] = Field(None, gt=0)
    avg_speed_kmh: Optional[float] = Field(None, ge=0)
    max_speed_kmh: Optional[float] = Field(None, ge=0)

    elevation_gain_meters: Optional[float] = Field(0.0, ge=0)
    elevation_loss_meters: Optional[float] = Field(0.0, ge=0)

    avg_cadence: Optional[int] = Field(None, ge=0)
    max_cadence: Optional[int] = Field(None, ge=0)

    is_indoor: bool = False

    route_coordinates: List[RoutePoint] = Field(default_factory=list)
    splits: List[Split] = Field(default_factory=list)
    pace_samples: List[dict[str, Any]] = Field(default_factory=list)
    heart_rate_samples: List[dict[str, Any]] = Field(default_factory=list)

    notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class ActivitySessionCreate(ActivitySessionBase):
    @model_validator(mode="after")
    def _check_timing(self):
        if self.ended_at < self.started_at:
            raise ValueError("ended_at must not be before started_at")
        if self.duration_seconds is None:
            self.duration_seconds = int((self.ended_at - self.started_at).total_seconds())
        if self.external_id is not None:
            self.external_id = self.external_id.strip() or None
        return self


class ActivitySessionUpdate(BaseModel):
    activity_type: Optional[ActivityType] = None
    activity_name: Optional[str] = Field(None, max_length=200)

    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_seconds: Optional[int] = Field(None, ge=0)

    distance_meters: Optional[float] = Field(None, ge=0)
    steps: Optional[int] = Field(None, ge=0)
    calories_burned: Optional[int] = Field(None, ge=0)
    active_calories: Optional[int] = Field(None, ge=0)

    avg_heart_rate: Optional[int] = Field(None, gt=0)
    max_heart_rate: Optional[int] = Field(None, gt=0)
    min_heart_rate: Optional[int] = Field(None, gt=0)

    avg_pace_seconds_per_km: Optional[int] = Field(None, gt=0)
    max_pace_seconds_per_km: Optional[int] = Field(None, gt=0)
    avg_speed_kmh: Optional[float] = Field(None, ge=0)
    max_speed_kmh: Optional[float] = Field(None, ge=0)

    elevation_gain_meters: Optional[float] = Field(None, ge=0)
    elevation_loss_meters: Optional[float] = Field(None, ge=0)

    is_indoor: Optional[bool] = None
    splits: Optional[List[Split]] = None
    notes: Optional[str] = None
    tags: Optional[List[str]] = None

    @model_validator(mode="after")
    def _check_timing(self):
        if self.started_at and self.ended_at and self.ended_at < self.started_at:
            raise ValueError("ended_at must not be before started_at")
        return self


class ActivitySessionResponse(ActivitySessionBase):
    id: int
    health_profile_id: str
    activity_date: date
    duration_seconds: int = 0
    points_earned: int = 0
    best_pace_seconds_per_km: Optional[int] = None
    best_split_index: Optional[int] = None
    worst_split_index: Optional[int] = None

    # stored rows are trusted as-is
    distance_meters: float = 0.0
    steps: int = 0
    calories_burned: int = 0
    active_calories: Optional[int] = None
    route_coordinates: List[dict[str, Any]] = Field(default_factory=list)
    splits: List[dict[str, Any]] = Field(default_factory=list)

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ActivitySyncRequest(BaseModel):
    activities: List[ActivitySessionCreate] = Field(default_factory=list, max_length=500)


class ActivitySyncItemResponse(BaseModel):
    external_id: Optional[str] = None
    source: Optional[str] = None
    session_id: Optional[int] = None
    action: str
    activity_date: Optional[date] = None
    error: Optional[str] = None


class ActivitySyncResponse(BaseModel):
    received_count: int
    created_count: int
    updated_count: int
    failed_count: int
    items: List[ActivitySyncItemResponse] = []


# --- Daily Summary Schemas ---
class DailySummaryResponse(BaseModel):
    health_profile_id: str
    summary_date: date

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

    avg_heart_rate: Optional[int] = None
    avg_pace_seconds_per_km: Optional[int] = None
    avg_speed_kmh: Optional[float] = None

    steps_goal_progress: int = 0
    distance_goal_progress: int = 0
    calories_goal_progress: int = 0
    active_minutes_goal_progress: int = 0

    best_pace_seconds_per_km: Optional[int] = None
    longest_activity_meters: Optional[float] = None
    data_sources: List[str] = []

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PeriodTotalsResponse(BaseModel):
    total_steps: int = 0
    total_distance_meters: float = 0.0
    total_calories: int = 0
    total_points: int = 0
    active_days: int = 0
    avg_daily_steps: int = 0
    avg_daily_distance_meters: float = 0.0


class DailySummaryRangeResponse(BaseModel):
    start_date: date
    end_date: date
    summaries: List[DailySummaryResponse] = []
    totals: PeriodTotalsResponse


# --- Weekly Rollup Schemas ---
class WeeklyStatsResponse(BaseModel):
    week_start: date
    total_steps: int = 0
    total_distance_meters: float = 0.0
    total_calories: int = 0
    total_points: int = 0
    total_duration_seconds: int = 0
    avg_daily_steps: float = 0.0
    avg_daily_distance_meters: float = 0.0
    active_days: int = 0


class WeeklyComparisonSide(BaseModel):
    week_start: date
    avg_daily_distance_km: float
    total_steps: int
    active_days: int


class WeeklyComparisonResponse(BaseModel):
    current_week: WeeklyComparisonSide
    previous_week: WeeklyComparisonSide
    percentage_change: float
    trend: str


class WeeklyRollupResponse(BaseModel):
    health_profile_id: str
    window_weeks: int
    weeks: List[WeeklyStatsResponse] = []
    comparison: Optional[WeeklyComparisonResponse] = None


# --- Stats Schemas ---
class TodayStatsResponse(BaseModel):
    date: date
    steps: int = 0
    distance_km: float = 0.0
    calories: int = 0
    points: int = 0


class YesterdayStatsResponse(BaseModel):
    date: date
    distance_km: float = 0.0


class PeriodStatsResponse(BaseModel):
    days: int
    total_steps: int = 0
    total_distance_km: float = 0.0
    total_calories: int = 0
    total_points: int = 0
    percentage_change: int = 0


class ActivityStatsResponse(BaseModel):
    today: TodayStatsResponse
    yesterday: YesterdayStatsResponse
    period: PeriodStatsResponse


# --- Goal Schemas ---
class ActivityGoalsUpdate(BaseModel):
    daily_steps_goal: Optional[int] = Field(None, gt=0)
    daily_distance_meters: Optional[int] = Field(None, gt=0)
    daily_calories_goal: Optional[int] = Field(None, gt=0)
    daily_active_minutes: Optional[int] = Field(None, gt=0)

    weekly_steps_goal: Optional[int] = Field(None, gt=0)
    weekly_distance_meters: Optional[int] = Field(None, gt=0)
    weekly_active_days: Optional[int] = Field(None, ge=1, le=7)

    points_per_1000_steps: Optional[int] = Field(None, ge=0)
    points_per_km: Optional[int] = Field(None, ge=0)
    points_per_calorie: Optional[float] = Field(None, ge=0, le=99)


class ActivityGoalsResponse(BaseModel):
    health_profile_id: str
    is_default: bool = False

    daily_steps_goal: int
    daily_distance_meters: int
    daily_calories_goal: int
    daily_active_minutes: int

    weekly_steps_goal: int
    weekly_distance_meters: int
    weekly_active_days: int

    points_per_1000_steps: int
    points_per_km: int
    points_per_calorie: float

    current_steps_streak: int = 0
    longest_steps_streak: int = 0
    last_steps_streak_date: Optional[date] = None
    current_active_streak: int = 0
    longest_active_streak: int = 0
    last_active_streak_date: Optional[date] = None
    last_streak_date: Optional[date] = None

    level: int = 1
    total_xp: int = 0
    xp_to_next_level: Optional[int] = None

    class Config:
        from_attributes = True
