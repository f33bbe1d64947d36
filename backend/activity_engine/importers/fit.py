from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import fitdecode
import fitparse

from activity_engine.schemas import schemas

SESSION_FIELDS = (
    "start_time",
    "total_elapsed_time",
    "total_timer_time",
    "total_distance",
    "total_ascent",
    "total_descent",
    "total_calories",
    "total_strides",
    "total_steps",
    "avg_heart_rate",
    "max_heart_rate",
    "min_heart_rate",
    "avg_speed",
    "enhanced_avg_speed",
    "max_speed",
    "enhanced_max_speed",
    "avg_running_cadence",
    "max_running_cadence",
    "sport",
    "sub_sport",
)
LAP_FIELDS = (
    "start_time",
    "total_elapsed_time",
    "total_timer_time",
    "total_distance",
    "total_ascent",
    "total_descent",
    "avg_heart_rate",
)


class UnsupportedSportError(ValueError):
    pass


def map_sport_to_type(sport: Any, sub_sport: Any) -> str | None:
    sport = str(sport).lower() if sport else ""
    sub_sport = str(sub_sport).lower() if sub_sport else ""

    if sport == "running":
        if sub_sport in ("treadmill", "indoor_running"):
            return "treadmill"
        if sub_sport == "trail":
            return "hike"
        return "run"
    if sport == "walking":
        if sub_sport == "indoor_walking":
            return "treadmill"
        return "walk"
    if sport == "hiking" or sub_sport == "hiking":
        return "hike"
    if sport == "generic":
        if sub_sport == "treadmill":
            return "treadmill"
        if sub_sport in ("road", "street"):
            return "run"
        return "walk"
    return None


def _pick(message: dict[str, Any], *names: str) -> Any:
    for name in names:
        value = message.get(name)
        if value is not None:
            return value
    return None


def extract_with_fitparse(filepath: str) -> dict[str, Any]:
    fitfile = fitparse.FitFile(filepath)
    session_msg = None
    for record in fitfile.get_messages("session"):
        session_msg = record
        break

    if not session_msg:
        raise ValueError("No session message found")

    session = {name: session_msg.get_value(name) for name in SESSION_FIELDS}
    laps = [
        {name: lap.get_value(name) for name in LAP_FIELDS}
        for lap in fitfile.get_messages("lap")
    ]
    return {"session": session, "laps": laps, "parser": "fitparse"}


def extract_with_fitdecode(filepath: str) -> dict[str, Any]:
    session: dict[str, Any] = {}
    laps: list[dict[str, Any]] = []
    with fitdecode.FitReader(filepath) as fit:
        for frame in fit:
            if not isinstance(frame, fitdecode.FitDataMessage):
                continue
            if frame.name == "session" and not session:
                session = {field.name: field.value for field in frame.fields if field.name in SESSION_FIELDS}
            elif frame.name == "lap":
                laps.append({field.name: field.value for field in frame.fields if field.name in LAP_FIELDS})

    if not session:
        raise ValueError("No session message found")

    return {"session": session, "laps": laps, "parser": "fitdecode"}


def extract_fit(filepath: str) -> dict[str, Any]:
    try:
        return extract_with_fitparse(filepath)
    except Exception:
        return extract_with_fitdecode(filepath)


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def laps_to_splits(laps: list[dict[str, Any]]) -> list[dict[str, Any]]:
    splits = []
    for index, lap in enumerate(laps, start=1):
        distance = lap.get("total_distance")
        duration = _pick(lap, "total_timer_time", "total_elapsed_time")
        if not distance or not duration:
            continue
        start_time = lap.get("start_time")
        split = {
            "id": index,
            "distance_meters": round(float(distance), 2),
            "duration_seconds": round(float(duration), 1),
            "pace_seconds_per_km": int(round(float(duration) / (float(distance) / 1000))),
            "elevation_gain": lap.get("total_ascent"),
            "elevation_loss": lap.get("total_descent"),
            "avg_heart_rate": lap.get("avg_heart_rate"),
        }
        if start_time is not None:
            start_time = _utc(start_time)
            split["start_time"] = start_time
            split["end_time"] = start_time + timedelta(seconds=float(_pick(lap, "total_elapsed_time") or duration))
        splits.append(split)
    return splits


def build_session_payload(extracted: dict[str, Any], external_id: str) -> schemas.ActivitySessionCreate:
    """Map a decoded FIT session onto an ingestion payload.

    Raises UnsupportedSportError for sports this service does not track and
    ValueError when the file lacks a start time or duration.
    """
    session = extracted["session"]
    activity_type = map_sport_to_type(session.get("sport"), session.get("sub_sport"))
    if activity_type is None:
        raise UnsupportedSportError(f"Unsupported sport: {session.get('sport')}/{session.get('sub_sport')}")

    start_time = session.get("start_time")
    elapsed = _pick(session, "total_elapsed_time", "total_timer_time")
    if not start_time or not elapsed:
        raise ValueError("Missing start time or duration")
    start_time = _utc(start_time)

    steps = session.get("total_steps")
    if steps is None and session.get("total_strides") is not None:
        # FIT counts running strides as step pairs
        steps = int(session["total_strides"]) * 2

    avg_speed = _pick(session, "enhanced_avg_speed", "avg_speed")
    max_speed = _pick(session, "enhanced_max_speed", "max_speed")
    avg_pace = int(round(1000 / float(avg_speed))) if avg_speed else None
    cadence = session.get("avg_running_cadence")
    max_cadence = session.get("max_running_cadence")

    return schemas.ActivitySessionCreate(
        external_id=external_id,
        source=schemas.ActivitySource.garmin,
        activity_type=activity_type,
        started_at=start_time,
        ended_at=start_time + timedelta(seconds=float(elapsed)),
        duration_seconds=int(elapsed),
        distance_meters=round(float(session.get("total_distance") or 0), 2),
        steps=int(steps or 0),
        calories_burned=int(session.get("total_calories") or 0),
        avg_heart_rate=session.get("avg_heart_rate"),
        max_heart_rate=session.get("max_heart_rate"),
        min_heart_rate=session.get("min_heart_rate"),
        avg_pace_seconds_per_km=avg_pace,
        avg_speed_kmh=round(float(avg_speed) * 3.6, 2) if avg_speed else None,
        max_speed_kmh=round(float(max_speed) * 3.6, 2) if max_speed else None,
        elevation_gain_meters=float(session.get("total_ascent") or 0),
        elevation_loss_meters=float(session.get("total_descent") or 0),
        avg_cadence=int(cadence) * 2 if cadence else None,
        max_cadence=int(max_cadence) * 2 if max_cadence else None,
        is_indoor=activity_type == "treadmill",
        splits=laps_to_splits(extracted.get("laps") or []),
        notes=f"Imported from {external_id} ({extracted.get('parser')})",
    )
