from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from activity_engine.core.logging import get_logger
from activity_engine.crud import crud
from activity_engine.engine import days
from activity_engine.engine.aggregation import AggregationError, recompute_daily_summary
from activity_engine.engine.locks import summary_key, summary_locks
from activity_engine.engine.points import DEFAULT_GOALS, TARGET_FIELDS, WEIGHT_FIELDS, compute_session_points
from activity_engine.engine.splits import split_stats
from activity_engine.engine.streaks import effective_streak, update_streaks, xp_to_next_level
from activity_engine.models import models
from activity_engine.schemas import schemas

logger = get_logger(__name__)

JSON_LIST_FIELDS = ("route_coordinates", "splits")
METRIC_FIELDS = {"steps", "distance_meters", "calories_burned"}
# Columns a patch may not null out; an explicit null is ignored for these.
REQUIRED_FIELDS = {
    "activity_type",
    "started_at",
    "ended_at",
    "duration_seconds",
    "distance_meters",
    "steps",
    "calories_burned",
    "is_indoor",
    "splits",
    "tags",
}


class SessionNotFoundError(LookupError):
    def __init__(self, session_id: int):
        super().__init__(f"Activity session {session_id} not found")
        self.session_id = session_id


class SummaryNotFoundError(LookupError):
    def __init__(self, health_profile_id: str, summary_date: date):
        super().__init__(f"No summary or sessions for {health_profile_id} on {summary_date}")
        self.health_profile_id = health_profile_id
        self.summary_date = summary_date


class GoalsConflictError(RuntimeError):
    pass


def _goals_key(health_profile_id: str) -> tuple[str, str]:
    return (health_profile_id, "goals")


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps, including the ones SQLite hands back, are UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _session_values(data: dict[str, Any], payload: Any) -> dict[str, Any]:
    """Turn a dumped pydantic payload into column values."""
    values = {key: value for key, value in data.items() if value is not None or key not in REQUIRED_FIELDS}
    for name in ("source", "activity_type"):
        if values.get(name) is not None:
            values[name] = getattr(values[name], "value", values[name])
    for name in ("started_at", "ended_at"):
        if values.get(name) is not None:
            values[name] = _as_utc(values[name])
    for name in JSON_LIST_FIELDS:
        if values.get(name) is not None:
            values[name] = [item.model_dump(mode="json", exclude_none=True) for item in getattr(payload, name)]
    return values


class ActivityService:
    """Write path and read models for activity sessions.

    Every write commits together with the summaries it affects, or not at all.
    """

    def __init__(self, db: DBSession):
        self.db = db

    # --- write helpers ---
    def _derive_fields(self, session: models.ActivitySession, goals: Any, recompute_points: bool = True) -> None:
        session.activity_date = days.activity_date_for(session.started_at)
        stats = split_stats(session.splits)
        session.best_pace_seconds_per_km = stats.best_pace_seconds_per_km
        session.best_split_index = stats.best_split_index
        session.worst_split_index = stats.worst_split_index
        if recompute_points:
            session.points_earned = compute_session_points(session, goals)

    def _apply_reimport(
        self, session: models.ActivitySession, values: dict[str, Any], goals: Any
    ) -> models.ActivitySession:
        for key, value in values.items():
            setattr(session, key, value)
        session.deleted_at = None
        self._derive_fields(session, goals)
        self.db.flush()
        return session

    def _refresh_days(self, health_profile_id: str, affected: Iterable[date]) -> list[models.DailySummary]:
        goals = crud.get_goals(self.db, health_profile_id, for_update=True)
        summaries = []
        for day in sorted(set(affected)):
            summary = recompute_daily_summary(self.db, health_profile_id, day, goals=goals)
            goals = update_streaks(self.db, health_profile_id, day, summary, goals=goals)
            summaries.append(summary)
        return summaries

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

    # --- sessions ---
    def create_or_update(
        self, health_profile_id: str, payload: schemas.ActivitySessionCreate
    ) -> tuple[models.ActivitySession, bool]:
        values = _session_values(payload.model_dump(), payload)
        if values["source"] == schemas.ActivitySource.manual.value:
            # Manual entries are always distinct sessions.
            values["external_id"] = None

        new_day = days.activity_date_for(payload.started_at)
        with summary_locks.hold(_goals_key(health_profile_id)):
            try:
                existing = None
                if values["external_id"]:
                    existing = crud.get_session_by_dedupe_key(
                        self.db, health_profile_id, values["external_id"], values["source"]
                    )
                affected = {new_day}
                if existing is not None:
                    affected.add(existing.activity_date)

                with summary_locks.hold_many(summary_key(health_profile_id, d) for d in affected):
                    goals = crud.get_goals(self.db, health_profile_id)
                    if existing is not None:
                        session = self._apply_reimport(existing, values, goals)
                        created = False
                    else:
                        session = models.ActivitySession(health_profile_id=health_profile_id, **values)
                        self._derive_fields(session, goals)
                        created = True
                        try:
                            with self.db.begin_nested():
                                crud.add_session(self.db, session)
                        except IntegrityError:
                            # Another writer inserted the same dedupe key first.
                            existing = crud.get_session_by_dedupe_key(
                                self.db, health_profile_id, values["external_id"], values["source"]
                            )
                            if existing is None:
                                raise
                            logger.info(
                                "session_insert_lost_race",
                                health_profile_id=health_profile_id,
                                external_id=values["external_id"],
                                source=values["source"],
                            )
                            affected.add(existing.activity_date)
                            session = self._apply_reimport(existing, values, goals)
                            created = False

                    self._refresh_days(health_profile_id, affected)
                    self._commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(session)
        logger.info(
            "session_upserted",
            health_profile_id=health_profile_id,
            session_id=session.id,
            source=session.source,
            external_id=session.external_id,
            created=created,
            activity_date=session.activity_date.isoformat(),
            points_earned=session.points_earned,
        )
        return session, created

    def sync(self, health_profile_id: str, request: schemas.ActivitySyncRequest) -> schemas.ActivitySyncResponse:
        created_count = 0
        updated_count = 0
        failed_count = 0
        items: list[schemas.ActivitySyncItemResponse] = []

        for payload in request.activities:
            try:
                session, created = self.create_or_update(health_profile_id, payload)
            except (SQLAlchemyError, AggregationError) as exc:
                failed_count += 1
                logger.warning(
                    "session_sync_item_failed",
                    health_profile_id=health_profile_id,
                    external_id=payload.external_id,
                    error=str(exc),
                )
                items.append(
                    schemas.ActivitySyncItemResponse(
                        external_id=payload.external_id,
                        source=payload.source.value,
                        action="failed",
                        error=str(exc),
                    )
                )
                continue

            if created:
                created_count += 1
            else:
                updated_count += 1
            items.append(
                schemas.ActivitySyncItemResponse(
                    external_id=session.external_id,
                    source=session.source,
                    session_id=session.id,
                    action="created" if created else "updated",
                    activity_date=session.activity_date,
                )
            )

        logger.info(
            "sessions_synced",
            health_profile_id=health_profile_id,
            received=len(request.activities),
            created=created_count,
            updated=updated_count,
            failed=failed_count,
        )
        return schemas.ActivitySyncResponse(
            received_count=len(request.activities),
            created_count=created_count,
            updated_count=updated_count,
            failed_count=failed_count,
            items=items,
        )

    def _require_session(self, session_id: int, include_deleted: bool) -> models.ActivitySession:
        session = crud.get_session(self.db, session_id, include_deleted=include_deleted)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def update(self, session_id: int, patch: schemas.ActivitySessionUpdate) -> models.ActivitySession:
        session = self._require_session(session_id, include_deleted=False)
        health_profile_id = session.health_profile_id

        with summary_locks.hold(_goals_key(health_profile_id)):
            try:
                self.db.refresh(session)
                if session.deleted_at is not None:
                    raise SessionNotFoundError(session_id)

                changes = _session_values(patch.model_dump(exclude_unset=True), patch)
                started_at = _as_utc(changes.get("started_at", session.started_at))
                ended_at = _as_utc(changes.get("ended_at", session.ended_at))
                if ended_at < started_at:
                    raise ValueError("ended_at must not be before started_at")

                old_day = session.activity_date
                new_day = days.activity_date_for(started_at)
                affected = {old_day, new_day}

                with summary_locks.hold_many(summary_key(health_profile_id, d) for d in affected):
                    for key, value in changes.items():
                        setattr(session, key, value)
                    if ("started_at" in changes or "ended_at" in changes) and "duration_seconds" not in changes:
                        session.duration_seconds = int((ended_at - started_at).total_seconds())
                    goals = crud.get_goals(self.db, health_profile_id)
                    self._derive_fields(session, goals, recompute_points=bool(METRIC_FIELDS & changes.keys()))
                    self.db.flush()

                    self._refresh_days(health_profile_id, affected)
                    self._commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(session)
        logger.info(
            "session_updated",
            session_id=session_id,
            health_profile_id=health_profile_id,
            fields=sorted(changes),
            moved_day=old_day != new_day,
        )
        return session

    def _set_deleted(self, session_id: int, deleted: bool) -> models.ActivitySession:
        session = crud.get_session(self.db, session_id, include_deleted=True)
        if session is None:
            raise SessionNotFoundError(session_id)
        health_profile_id = session.health_profile_id

        with summary_locks.hold(_goals_key(health_profile_id)):
            try:
                self.db.refresh(session)
                if (session.deleted_at is not None) == deleted:
                    raise SessionNotFoundError(session_id)
                day = session.activity_date
                with summary_locks.hold(summary_key(health_profile_id, day)):
                    session.deleted_at = datetime.now(timezone.utc) if deleted else None
                    self.db.flush()
                    self._refresh_days(health_profile_id, {day})
                    self._commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(session)
        logger.info(
            "session_soft_deleted" if deleted else "session_restored",
            session_id=session_id,
            health_profile_id=health_profile_id,
            activity_date=session.activity_date.isoformat(),
        )
        return session

    def soft_delete(self, session_id: int) -> models.ActivitySession:
        return self._set_deleted(session_id, True)

    def restore(self, session_id: int) -> models.ActivitySession:
        return self._set_deleted(session_id, False)

    def get_session(self, session_id: int, include_deleted: bool = False) -> models.ActivitySession:
        return self._require_session(session_id, include_deleted=include_deleted)

    def list_sessions(self, health_profile_id: str, **filters: Any) -> list[models.ActivitySession]:
        return crud.list_sessions(self.db, health_profile_id, **filters)

    # --- summaries ---
    def get_summary(self, health_profile_id: str, summary_date: date) -> Optional[models.DailySummary]:
        return crud.get_daily_summary(self.db, health_profile_id, summary_date)

    def recompute(self, health_profile_id: str, summary_date: date) -> models.DailySummary:
        with summary_locks.hold(_goals_key(health_profile_id)):
            with summary_locks.hold(summary_key(health_profile_id, summary_date)):
                try:
                    # Summaries are only created by session writes.
                    if crud.get_daily_summary(self.db, health_profile_id, summary_date) is None and not (
                        crud.get_live_sessions_for_day(self.db, health_profile_id, summary_date)
                    ):
                        raise SummaryNotFoundError(health_profile_id, summary_date)
                    summary = self._refresh_days(health_profile_id, {summary_date})[0]
                    self._commit()
                except Exception:
                    self.db.rollback()
                    raise
        self.db.refresh(summary)
        return summary

    # --- goals ---
    def goals_view(self, health_profile_id: str, today: Optional[date] = None) -> dict[str, Any]:
        today = today or days.today()
        goals = crud.get_goals(self.db, health_profile_id)
        view: dict[str, Any] = {"health_profile_id": health_profile_id}
        if goals is None:
            view["is_default"] = True
            for name in TARGET_FIELDS + WEIGHT_FIELDS:
                view[name] = getattr(DEFAULT_GOALS, name)
            view["points_per_calorie"] = float(view["points_per_calorie"])
            view["xp_to_next_level"] = xp_to_next_level(0)
            return view

        view["is_default"] = False
        for column in models.ActivityGoals.__table__.columns.keys():
            view[column] = getattr(goals, column)
        view["current_steps_streak"] = effective_streak(
            goals.current_steps_streak or 0, goals.last_steps_streak_date, today
        )
        view["current_active_streak"] = effective_streak(
            goals.current_active_streak or 0, goals.last_active_streak_date, today
        )
        view["points_per_calorie"] = float(goals.points_per_calorie)
        view["xp_to_next_level"] = xp_to_next_level(goals.total_xp or 0)
        return view

    def upsert_goals(self, health_profile_id: str, patch: schemas.ActivityGoalsUpdate) -> models.ActivityGoals:
        changes = patch.model_dump(exclude_unset=True, exclude_none=True)
        with summary_locks.hold(_goals_key(health_profile_id)):
            try:
                goals = crud.get_goals(self.db, health_profile_id, for_update=True)
                if goals is None:
                    goals = models.ActivityGoals(health_profile_id=health_profile_id, **changes)
                    try:
                        with self.db.begin_nested():
                            self.db.add(goals)
                            self.db.flush()
                    except IntegrityError:
                        # Another writer created the row first; apply ours as an update.
                        logger.info("activity_goals_create_lost_race", health_profile_id=health_profile_id)
                        goals = crud.get_goals(self.db, health_profile_id, for_update=True)
                        if goals is None:
                            raise GoalsConflictError(
                                f"Goals for {health_profile_id} could not be created or loaded"
                            )
                        for key, value in changes.items():
                            setattr(goals, key, value)
                else:
                    for key, value in changes.items():
                        setattr(goals, key, value)
                self._commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(goals)
        logger.info("activity_goals_saved", health_profile_id=health_profile_id, fields=sorted(changes))
        return goals
