from sqlalchemy.orm import Session as DBSession
from activity_engine.models import models
from datetime import date
from typing import List, Optional

# Nothing in this module commits; the service layer owns the transaction so
# a session write and the summary it affects land together.

# --- Activity Sessions ---
def get_session(db: DBSession, session_id: int, include_deleted: bool = False) -> Optional[models.ActivitySession]:
    query = db.query(models.ActivitySession).filter(models.ActivitySession.id == session_id)
    if not include_deleted:
        query = query.filter(models.ActivitySession.deleted_at.is_(None))
    return query.first()

def get_session_by_dedupe_key(
    db: DBSession, health_profile_id: str, external_id: str, source: str
) -> Optional[models.ActivitySession]:
    return db.query(models.ActivitySession).filter(
        models.ActivitySession.health_profile_id == health_profile_id,
        models.ActivitySession.external_id == external_id,
        models.ActivitySession.source == source,
    ).first()

def list_sessions(
    db: DBSession,
    health_profile_id: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    activity_type: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    include_deleted: bool = False,
) -> List[models.ActivitySession]:
    query = db.query(models.ActivitySession).filter(
        models.ActivitySession.health_profile_id == health_profile_id
    )
    if not include_deleted:
        query = query.filter(models.ActivitySession.deleted_at.is_(None))
    if start_date is not None:
        query = query.filter(models.ActivitySession.activity_date >= start_date)
    if end_date is not None:
        query = query.filter(models.ActivitySession.activity_date <= end_date)
    if activity_type:
        query = query.filter(models.ActivitySession.activity_type == activity_type)
    return query.order_by(
        models.ActivitySession.started_at.desc(),
        models.ActivitySession.id.desc(),
    ).offset(offset).limit(limit).all()

def get_live_sessions_for_day(db: DBSession, health_profile_id: str, day: date) -> List[models.ActivitySession]:
    return db.query(models.ActivitySession).filter(
        models.ActivitySession.health_profile_id == health_profile_id,
        models.ActivitySession.activity_date == day,
        models.ActivitySession.deleted_at.is_(None),
    ).order_by(
        models.ActivitySession.started_at.asc(),
        models.ActivitySession.id.asc(),
    ).all()

def add_session(db: DBSession, session: models.ActivitySession) -> models.ActivitySession:
    db.add(session)
    db.flush()
    return session

# --- Daily Summaries ---
def get_daily_summary(
    db: DBSession, health_profile_id: str, day: date, for_update: bool = False
) -> Optional[models.DailySummary]:
    query = db.query(models.DailySummary).filter(
        models.DailySummary.health_profile_id == health_profile_id,
        models.DailySummary.summary_date == day,
    )
    if for_update:
        query = query.with_for_update()
    return query.first()

def get_daily_summaries_by_date_range(
    db: DBSession, health_profile_id: str, start_date: date, end_date: date
) -> List[models.DailySummary]:
    return db.query(models.DailySummary).filter(
        models.DailySummary.health_profile_id == health_profile_id,
        models.DailySummary.summary_date >= start_date,
        models.DailySummary.summary_date <= end_date,
    ).order_by(models.DailySummary.summary_date.desc()).all()

def get_daily_summaries_for_profile(db: DBSession, health_profile_id: str) -> List[models.DailySummary]:
    return db.query(models.DailySummary).filter(
        models.DailySummary.health_profile_id == health_profile_id
    ).order_by(models.DailySummary.summary_date.asc()).all()

def has_daily_summary_after(db: DBSession, health_profile_id: str, day: date) -> bool:
    return db.query(models.DailySummary.id).filter(
        models.DailySummary.health_profile_id == health_profile_id,
        models.DailySummary.summary_date > day,
    ).first() is not None

# --- Activity Goals ---
def get_goals(db: DBSession, health_profile_id: str, for_update: bool = False) -> Optional[models.ActivityGoals]:
    query = db.query(models.ActivityGoals).filter(
        models.ActivityGoals.health_profile_id == health_profile_id
    )
    if for_update:
        query = query.with_for_update()
    return query.first()
