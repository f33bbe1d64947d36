from __future__ import annotations

import unittest
from dataclasses import dataclass
from datetime import date, timedelta

from support import DAY, PROFILE, DatabaseTestCase, session_payload

from activity_engine.engine.rollup import build_weekly_stats, weekly_comparison, weekly_rollup
from activity_engine.engine.stats import activity_stats, percentage_change, period_totals, summaries_for_range
from activity_engine.services.activity_service import ActivityService


@dataclass
class FakeSummary:
    summary_date: date
    total_steps: int = 0
    total_distance_meters: float = 0.0
    total_calories: int = 0
    total_points: int = 0
    total_duration_seconds: int = 0
    session_count: int = 0


class TestWeeklyStats(unittest.TestCase):
    def setUp(self):
        # Wednesday; its week starts on Monday 2026-03-16
        self.today = date(2026, 3, 18)
        self.summaries = [
            FakeSummary(date(2026, 3, 17), total_steps=4000, total_distance_meters=3000.0, session_count=1),
            FakeSummary(date(2026, 3, 16), total_steps=2000, total_distance_meters=1000.0, session_count=1),
            FakeSummary(date(2026, 3, 11), session_count=0),
            FakeSummary(date(2026, 3, 10), total_steps=6000, total_distance_meters=5000.0, session_count=2),
            FakeSummary(date(2026, 2, 1), total_steps=9999, session_count=1),
        ]

    def test_weeks_are_monday_based_and_newest_first(self):
        weeks = build_weekly_stats(self.summaries, 4, self.today)
        self.assertEqual(
            [w.week_start for w in weeks],
            [date(2026, 3, 16), date(2026, 3, 9), date(2026, 3, 2), date(2026, 2, 23)],
        )

    def test_week_totals_and_averages(self):
        current, previous = build_weekly_stats(self.summaries, 2, self.today)
        self.assertEqual(current.total_steps, 6000)
        self.assertEqual(current.total_distance_meters, 4000.0)
        self.assertEqual(current.avg_daily_steps, 3000)
        self.assertEqual(current.avg_daily_distance_meters, 2000.0)
        self.assertEqual(current.active_days, 2)

        # the decayed Wednesday row counts towards the average, not towards active days
        self.assertEqual(previous.total_steps, 6000)
        self.assertEqual(previous.avg_daily_distance_meters, 2500.0)
        self.assertEqual(previous.active_days, 1)

    def test_empty_weeks_are_zero_filled(self):
        weeks = build_weekly_stats(self.summaries, 4, self.today)
        self.assertEqual(weeks[2].total_steps, 0)
        self.assertEqual(weeks[3].active_days, 0)
        self.assertEqual(weeks[3].avg_daily_steps, 0.0)

    def test_comparison(self):
        comparison = weekly_comparison(build_weekly_stats(self.summaries, 4, self.today))
        self.assertEqual(comparison["percentage_change"], -20.0)
        self.assertEqual(comparison["trend"], "decrease")
        self.assertEqual(comparison["current_week"]["avg_daily_distance_km"], 2.0)
        self.assertEqual(comparison["previous_week"]["week_start"], date(2026, 3, 9))

    def test_comparison_needs_two_weeks(self):
        self.assertIsNone(weekly_comparison(build_weekly_stats(self.summaries, 1, self.today)))

    def test_comparison_against_an_empty_week(self):
        weeks = build_weekly_stats(self.summaries[:2], 2, self.today)
        comparison = weekly_comparison(weeks)
        self.assertEqual(comparison["percentage_change"], 0.0)
        self.assertEqual(comparison["trend"], "increase")


class TestPeriodTotals(unittest.TestCase):
    def test_averages_over_active_days(self):
        rows = [
            FakeSummary(DAY, total_steps=1000, total_distance_meters=800.0, total_points=26),
            FakeSummary(DAY - timedelta(days=1)),
            FakeSummary(DAY - timedelta(days=2), total_steps=3000, total_distance_meters=2200.0, total_points=74),
        ]
        totals = period_totals(rows)
        self.assertEqual(totals["total_steps"], 4000)
        self.assertEqual(totals["active_days"], 2)
        self.assertEqual(totals["avg_daily_steps"], 2000)
        self.assertEqual(totals["avg_daily_distance_meters"], 1500.0)
        self.assertEqual(totals["total_points"], 100)

    def test_no_rows(self):
        totals = period_totals([])
        self.assertEqual(totals["active_days"], 0)
        self.assertEqual(totals["avg_daily_steps"], 0)

    def test_percentage_change(self):
        self.assertEqual(percentage_change(150, 100), 50)
        self.assertEqual(percentage_change(100, 0), 0)


class TestStoredViews(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.service = ActivityService(self.db)
        self.service.create_or_update(
            PROFILE, session_payload(steps=5000, distance_meters=3000.0, calories=200)
        )
        self.service.create_or_update(
            PROFILE, session_payload(day=DAY - timedelta(days=1), steps=2500, distance_meters=2000.0)
        )
        self.service.create_or_update(
            PROFILE, session_payload(day=DAY - timedelta(days=3), steps=3000, distance_meters=2500.0)
        )

    def test_activity_stats(self):
        stats = activity_stats(self.db, PROFILE, period_days=2, today=DAY)
        self.assertEqual(stats["today"]["steps"], 5000)
        self.assertEqual(stats["today"]["distance_km"], 3.0)
        self.assertEqual(stats["today"]["points"], 130)
        self.assertEqual(stats["yesterday"]["date"], DAY - timedelta(days=1))
        self.assertEqual(stats["yesterday"]["distance_km"], 2.0)
        self.assertEqual(stats["period"]["total_distance_km"], 5.0)
        self.assertEqual(stats["period"]["percentage_change"], 100)

    def test_activity_stats_without_data(self):
        stats = activity_stats(self.db, "nobody", today=DAY)
        self.assertEqual(stats["today"]["steps"], 0)
        self.assertEqual(stats["period"]["percentage_change"], 0)

    def test_summaries_for_range_swaps_reversed_bounds(self):
        rows, totals = summaries_for_range(self.db, PROFILE, DAY, DAY - timedelta(days=3))
        self.assertEqual([r.summary_date for r in rows], [DAY, DAY - timedelta(days=1), DAY - timedelta(days=3)])
        self.assertEqual(totals["total_steps"], 10500)

    def test_weekly_rollup(self):
        # DAY is a Tuesday; DAY - 3 falls in the previous week
        weeks = weekly_rollup(self.db, PROFILE, window_weeks=2, today=DAY)
        self.assertEqual(weeks[0].week_start, date(2026, 3, 9))
        self.assertEqual(weeks[0].total_steps, 7500)
        self.assertEqual(weeks[0].active_days, 2)
        self.assertEqual(weeks[1].total_steps, 3000)

    def test_weekly_rollup_rejects_empty_window(self):
        with self.assertRaises(ValueError):
            weekly_rollup(self.db, PROFILE, window_weeks=0, today=DAY)


if __name__ == "__main__":
    unittest.main()
