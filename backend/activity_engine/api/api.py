from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date, timedelta
from activity_engine.core.config import settings
from activity_engine.core.database import get_db
from activity_engine.engine import days
from activity_engine.engine.aggregation import AggregationError
from activity_engine.engine.rollup import weekly_comparison, weekly_rollup
from activity_engine.engine.stats import activity_stats, summaries_for_range
from activity_engine.schemas import schemas
from activity_engine.services.activity_service import (
    ActivityService,
    GoalsConflictError,
    SessionNotFoundError,
    SummaryNotFoundError,
)

router = APIRouter()


def _not_found(exc: SessionNotFoundError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(exc))


def _aggregation_failed(exc: AggregationError) -> HTTPException:
    return HTTPException(status_code=500, detail=f"{exc} (write rolled back)")

# --- Activity Sessions ---
@router.post("/profiles/{profile_id}/activities", response_model=schemas.ActivitySessionResponse)
def create_activity(
    profile_id: str,
    payload: schemas.ActivitySessionCreate,
    response: Response,
    db: Session = Depends(get_db),
):
    """Store a session; a known (external_id, source) pair updates the existing one."""
    service = ActivityService(db)
    try:
        session, created = service.create_or_update(profile_id, payload)
    except AggregationError as exc:
        raise _aggregation_failed(exc) from exc
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return session

@router.post("/profiles/{profile_id}/activities/sync", response_model=schemas.ActivitySyncResponse)
def sync_activities(profile_id: str, payload: schemas.ActivitySyncRequest, db: Session = Depends(get_db)):
    """Batch import from a wearable or health platform."""
    return ActivityService(db).sync(profile_id, payload)

@router.get("/profiles/{profile_id}/activities", response_model=List[schemas.ActivitySessionResponse])
def list_activities(
    profile_id: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    activity_type: Optional[schemas.ActivityType] = Query(default=None, alias="type"),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    include_deleted: bool = False,
    db: Session = Depends(get_db),
):
    return ActivityService(db).list_sessions(
        profile_id,
        start_date=start_date,
        end_date=end_date,
        activity_type=activity_type.value if activity_type else None,
        limit=limit,
        offset=offset,
        include_deleted=include_deleted,
    )

@router.get("/activities/{session_id}", response_model=schemas.ActivitySessionResponse)
def read_activity(session_id: int, include_deleted: bool = False, db: Session = Depends(get_db)):
    try:
        return ActivityService(db).get_session(session_id, include_deleted=include_deleted)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc

@router.patch("/activities/{session_id}", response_model=schemas.ActivitySessionResponse)
def update_activity(session_id: int, patch: schemas.ActivitySessionUpdate, db: Session = Depends(get_db)):
    """Edit a session and recompute the day(s) it touches."""
    try:
        return ActivityService(db).update(session_id, patch)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except AggregationError as exc:
        raise _aggregation_failed(exc) from exc

@router.delete("/activities/{session_id}")
def delete_activity(session_id: int, db: Session = Depends(get_db)):
    """Soft delete a session."""
    try:
        session = ActivityService(db).soft_delete(session_id)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc
    except AggregationError as exc:
        raise _aggregation_failed(exc) from exc
    return {"ok": True, "deleted_at": session.deleted_at}

@router.post("/activities/{session_id}/restore", response_model=schemas.ActivitySessionResponse)
def restore_activity(session_id: int, db: Session = Depends(get_db)):
    try:
        return ActivityService(db).restore(session_id)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc
    except AggregationError as exc:
        raise _aggregation_failed(exc) from exc

# --- Daily Summaries ---
@router.get("/profiles/{profile_id}/summaries/{summary_date}", response_model=schemas.DailySummaryResponse)
def read_daily_summary(profile_id: str, summary_date: date, db: Session = Depends(get_db)):
    summary = ActivityService(db).get_summary(profile_id, summary_date)
    if not summary:
        raise HTTPException(status_code=404, detail="Summary not found")
    return summary

@router.get("/profiles/{profile_id}/summaries", response_model=schemas.DailySummaryRangeResponse)
def read_daily_summaries(
    profile_id: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
):
    """Daily summaries in a range (default: the last two weeks) with period totals."""
    end_date = end_date or days.today()
    start_date = start_date or end_date - timedelta(days=settings.DEFAULT_SUMMARY_DAYS)
    start_date, end_date = min(start_date, end_date), max(start_date, end_date)
    summaries, totals = summaries_for_range(db, profile_id, start_date, end_date)
    return schemas.DailySummaryRangeResponse(
        start_date=start_date,
        end_date=end_date,
        summaries=summaries,
        totals=schemas.PeriodTotalsResponse(**totals),
    )

@router.post("/profiles/{profile_id}/summaries/{summary_date}/recompute", response_model=schemas.DailySummaryResponse)
def recompute_daily_summary(profile_id: str, summary_date: date, db: Session = Depends(get_db)):
    """Rebuild a day's summary from its live sessions."""
    try:
        return ActivityService(db).recompute(profile_id, summary_date)
    except SummaryNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except AggregationError as exc:
        raise _aggregation_failed(exc) from exc

# --- Weekly Rollup / Stats ---
@router.get("/profiles/{profile_id}/weekly", response_model=schemas.WeeklyRollupResponse)
def read_weekly_rollup(
    profile_id: str,
    weeks: int = Query(default=settings.DEFAULT_ROLLUP_WEEKS, ge=1, le=52),
    db: Session = Depends(get_db),
):
    rollup = weekly_rollup(db, profile_id, window_weeks=weeks)
    comparison = weekly_comparison(rollup)
    return schemas.WeeklyRollupResponse(
        health_profile_id=profile_id,
        window_weeks=weeks,
        weeks=[schemas.WeeklyStatsResponse(**week.as_dict()) for week in rollup],
        comparison=schemas.WeeklyComparisonResponse(**comparison) if comparison else None,
    )

@router.get("/profiles/{profile_id}/stats", response_model=schemas.ActivityStatsResponse)
def read_activity_stats(
    profile_id: str,
    period_days: int = Query(default=settings.DEFAULT_STATS_DAYS, ge=1, le=365, alias="days"),
    db: Session = Depends(get_db),
):
    return schemas.ActivityStatsResponse(**activity_stats(db, profile_id, period_days=period_days))

# --- Goals ---
@router.get("/profiles/{profile_id}/goals", response_model=schemas.ActivityGoalsResponse)
def read_goals(profile_id: str, db: Session = Depends(get_db)):
    """Goals for a profile, or the system defaults when none are stored."""
    return schemas.ActivityGoalsResponse(**ActivityService(db).goals_view(profile_id))

@router.put("/profiles/{profile_id}/goals", response_model=schemas.ActivityGoalsResponse)
def upsert_goals(profile_id: str, patch: schemas.ActivityGoalsUpdate, db: Session = Depends(get_db)):
    service = ActivityService(db)
    try:
        service.upsert_goals(profile_id, patch)
    except GoalsConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return schemas.ActivityGoalsResponse(**service.goals_view(profile_id))
