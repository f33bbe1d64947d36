from __future__ import annotations

import unittest
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from activity_engine.core.database import Base, configure_sqlite
from activity_engine.models import models  # noqa: F401  (registers tables)
from activity_engine.schemas import schemas

PROFILE = "profile-1"
OTHER_PROFILE = "profile-2"
DAY = date(2026, 3, 10)


def session_payload(
    *,
    day: date = DAY,
    hour: int = 7,
    minutes: int = 30,
    steps: int = 0,
    distance_meters: float = 0.0,
    calories: int = 0,
    **overrides,
) -> schemas.ActivitySessionCreate:
    started_at = datetime.combine(day, time(hour, 0), tzinfo=timezone.utc)
    values = {
        "activity_type": "walk",
        "source": "app",
        "started_at": started_at,
        "ended_at": started_at + timedelta(minutes=minutes),
        "steps": steps,
        "distance_meters": distance_meters,
        "calories_burned": calories,
    }
    values.update(overrides)
    return schemas.ActivitySessionCreate(**values)


class DatabaseTestCase(unittest.TestCase):
    """Fresh in-memory database per test."""

    def setUp(self):
        self.engine = create_engine(
            "sqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        configure_sqlite(self.engine)
        Base.metadata.create_all(bind=self.engine)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        self.db = self.SessionLocal()

    def tearDown(self):
        self.db.close()
        Base.metadata.drop_all(bind=self.engine)
        self.engine.dispose()
