from __future__ import annotations

import unittest
from datetime import timedelta
from unittest import mock

from fastapi import HTTPException, Response

from support import DAY, PROFILE, DatabaseTestCase, session_payload

from activity_engine.api import api
from activity_engine.engine.aggregation import AggregationError
from activity_engine.schemas import schemas
from activity_engine.services import activity_service


class TestActivityRoutes(DatabaseTestCase):
    def create(self, payload):
        response = Response()
        session = api.create_activity(PROFILE, payload, response, db=self.db)
        return session, response.status_code

    def test_create_then_reimport_status_codes(self):
        session, status_code = self.create(session_payload(steps=4000, external_id="W1", source="fitbit"))
        self.assertEqual(status_code, 201)
        again, status_code = self.create(session_payload(steps=4200, external_id="W1", source="fitbit"))
        self.assertEqual(status_code, 200)
        self.assertEqual(session.id, again.id)

        body = schemas.ActivitySessionResponse.model_validate(again)
        self.assertEqual(body.steps, 4200)
        self.assertEqual(body.activity_date, DAY)
        self.assertEqual(body.points_earned, 42)

    def test_list_filters_by_type_and_hides_deleted(self):
        walk, _ = self.create(session_payload(steps=1000))
        self.create(session_payload(hour=9, steps=3000, activity_type="run"))
        api.delete_activity(walk.id, db=self.db)

        sessions = api.list_activities(
            PROFILE,
            start_date=None,
            end_date=None,
            activity_type=None,
            limit=50,
            offset=0,
            include_deleted=False,
            db=self.db,
        )
        self.assertEqual([s.activity_type for s in sessions], ["run"])

        walks = api.list_activities(
            PROFILE,
            start_date=DAY,
            end_date=DAY,
            activity_type=schemas.ActivityType.walk,
            limit=50,
            offset=0,
            include_deleted=True,
            db=self.db,
        )
        self.assertEqual([s.id for s in walks], [walk.id])

    def test_delete_and_restore(self):
        session, _ = self.create(session_payload(steps=1000))
        result = api.delete_activity(session.id, db=self.db)
        self.assertTrue(result["ok"])
        self.assertIsNotNone(result["deleted_at"])

        with self.assertRaises(HTTPException) as ctx:
            api.read_activity(session.id, include_deleted=False, db=self.db)
        self.assertEqual(ctx.exception.status_code, 404)

        restored = api.restore_activity(session.id, db=self.db)
        self.assertIsNone(restored.deleted_at)

    def test_patch_errors(self):
        with self.assertRaises(HTTPException) as ctx:
            api.update_activity(404, schemas.ActivitySessionUpdate(steps=10), db=self.db)
        self.assertEqual(ctx.exception.status_code, 404)

        session, _ = self.create(session_payload(steps=1000))
        with self.assertRaises(HTTPException) as ctx:
            api.update_activity(
                session.id,
                schemas.ActivitySessionUpdate(ended_at=session.started_at - timedelta(minutes=5)),
                db=self.db,
            )
        self.assertEqual(ctx.exception.status_code, 422)

    def test_aggregation_failure_maps_to_500(self):
        with mock.patch.object(
            activity_service,
            "recompute_daily_summary",
            side_effect=AggregationError(PROFILE, DAY, "disk full"),
        ):
            with self.assertRaises(HTTPException) as ctx:
                self.create(session_payload(steps=1000))
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertIn("rolled back", ctx.exception.detail)

    def test_sync_route(self):
        request = schemas.ActivitySyncRequest(
            activities=[
                session_payload(steps=1000, external_id="a", source="google_fit"),
                session_payload(hour=12, steps=2000, external_id="b", source="google_fit"),
            ]
        )
        result = api.sync_activities(PROFILE, request, db=self.db)
        self.assertEqual(result.created_count, 2)
        self.assertEqual(result.failed_count, 0)


class TestSummaryRoutes(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        api.create_activity(PROFILE, session_payload(steps=5000, distance_meters=3000.0), Response(), db=self.db)
        api.create_activity(
            PROFILE,
            session_payload(day=DAY - timedelta(days=2), steps=1000, distance_meters=700.0),
            Response(),
            db=self.db,
        )

    def test_read_summary(self):
        summary = api.read_daily_summary(PROFILE, DAY, db=self.db)
        body = schemas.DailySummaryResponse.model_validate(summary)
        self.assertEqual(body.total_steps, 5000)
        self.assertEqual(body.data_sources, ["app"])

    def test_missing_summary_is_404(self):
        with self.assertRaises(HTTPException) as ctx:
            api.read_daily_summary(PROFILE, DAY + timedelta(days=30), db=self.db)
        self.assertEqual(ctx.exception.status_code, 404)

    def test_range_with_totals(self):
        result = api.read_daily_summaries(PROFILE, start_date=DAY - timedelta(days=7), end_date=DAY, db=self.db)
        self.assertEqual([s.summary_date for s in result.summaries], [DAY, DAY - timedelta(days=2)])
        self.assertEqual(result.totals.total_steps, 6000)
        self.assertEqual(result.totals.active_days, 2)

    def test_recompute_route(self):
        summary = api.recompute_daily_summary(PROFILE, DAY, db=self.db)
        self.assertEqual(summary.total_steps, 5000)

    def test_recompute_empty_date_is_404(self):
        empty_day = DAY - timedelta(days=1)
        with self.assertRaises(HTTPException) as ctx:
            api.recompute_daily_summary(PROFILE, empty_day, db=self.db)
        self.assertEqual(ctx.exception.status_code, 404)
        with self.assertRaises(HTTPException):
            api.read_daily_summary(PROFILE, empty_day, db=self.db)

    def test_weekly_and_stats_shapes(self):
        rollup = api.read_weekly_rollup(PROFILE, weeks=3, db=self.db)
        self.assertEqual(len(rollup.weeks), 3)
        self.assertIsNotNone(rollup.comparison)

        stats = api.read_activity_stats(PROFILE, period_days=7, db=self.db)
        self.assertEqual(stats.period.days, 7)


class TestGoalRoutes(DatabaseTestCase):
    def test_defaults_then_upsert(self):
        defaults = api.read_goals(PROFILE, db=self.db)
        self.assertTrue(defaults.is_default)
        self.assertEqual(defaults.points_per_calorie, 0.1)
        self.assertEqual(defaults.xp_to_next_level, 500)

        saved = api.upsert_goals(
            PROFILE, schemas.ActivityGoalsUpdate(daily_steps_goal=7000, points_per_calorie=0.25), db=self.db
        )
        self.assertFalse(saved.is_default)
        self.assertEqual(saved.daily_steps_goal, 7000)
        self.assertEqual(saved.points_per_calorie, 0.25)
        self.assertEqual(saved.daily_calories_goal, 500)

    def test_conflict_maps_to_409(self):
        with mock.patch.object(
            activity_service.ActivityService,
            "upsert_goals",
            side_effect=activity_service.GoalsConflictError("gone"),
        ):
            with self.assertRaises(HTTPException) as ctx:
                api.upsert_goals(PROFILE, schemas.ActivityGoalsUpdate(daily_steps_goal=7000), db=self.db)
        self.assertEqual(ctx.exception.status_code, 409)


if __name__ == "__main__":
    unittest.main()
