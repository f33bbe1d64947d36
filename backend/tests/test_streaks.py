from __future__ import annotations

import unittest
from datetime import date, timedelta

from activity_engine.engine.streaks import (
    LEVEL_THRESHOLDS,
    MAX_LEVEL,
    StreakState,
    advance_streak,
    effective_streak,
    level_for_xp,
    rebuild_streak,
    xp_to_next_level,
)

D1 = date(2026, 3, 1)


def day(n: int) -> date:
    return D1 + timedelta(days=n - 1)


class TestAdvanceStreak(unittest.TestCase):
    def test_first_qualifying_day_starts_streak(self):
        state = advance_streak(StreakState(0, 0, None), day(1), True)
        self.assertEqual(state, StreakState(1, 1, day(1)))

    def test_first_day_without_target_stays_empty(self):
        state = advance_streak(StreakState(0, 0, None), day(1), False)
        self.assertEqual(state, StreakState(0, 0, None))

    def test_consecutive_days_extend(self):
        state = StreakState(0, 0, None)
        for n in (1, 2, 3):
            state = advance_streak(state, day(n), True)
        self.assertEqual(state.current, 3)
        self.assertEqual(state.longest, 3)
        self.assertEqual(state.last_date, day(3))

    def test_same_day_reaggregation_is_a_no_op(self):
        state = StreakState(2, 5, day(2))
        self.assertEqual(advance_streak(state, day(2), True), state)
        self.assertEqual(advance_streak(state, day(2), False), state)

    def test_next_day_not_yet_met_keeps_streak_open(self):
        state = StreakState(2, 2, day(2))
        pending = advance_streak(state, day(3), False)
        self.assertEqual(pending, state)
        # a later session the same day meets the target
        self.assertEqual(advance_streak(pending, day(3), True), StreakState(3, 3, day(3)))

    def test_gap_resets(self):
        state = StreakState(3, 3, day(3))
        self.assertEqual(advance_streak(state, day(5), True), StreakState(1, 3, day(5)))
        self.assertEqual(advance_streak(state, day(5), False), StreakState(0, 3, day(3)))

    def test_historical_day_does_not_change_streak(self):
        state = StreakState(3, 4, day(5))
        self.assertEqual(advance_streak(state, day(1), True), state)

    def test_longest_is_a_high_water_mark(self):
        state = StreakState(0, 0, None)
        for n in (1, 2, 3, 5, 6):
            state = advance_streak(state, day(n), True)
        self.assertEqual(state.current, 2)
        self.assertEqual(state.longest, 3)


class TestRebuildStreak(unittest.TestCase):
    def test_insertion_order_does_not_matter(self):
        evaluated = {day(3): True, day(1): True, day(2): True}
        self.assertEqual(rebuild_streak(evaluated), StreakState(3, 3, day(3)))

    def test_unmet_middle_day_splits_the_run(self):
        evaluated = {day(1): True, day(2): False, day(3): True}
        self.assertEqual(rebuild_streak(evaluated, longest=3), StreakState(1, 3, day(3)))

    def test_pending_next_day_keeps_run_open(self):
        evaluated = {day(1): True, day(2): True, day(3): False}
        self.assertEqual(rebuild_streak(evaluated), StreakState(2, 2, day(2)))

    def test_unmet_days_past_the_gap_break_the_run(self):
        evaluated = {day(1): True, day(2): True, day(4): False}
        self.assertEqual(rebuild_streak(evaluated, longest=5), StreakState(0, 5, day(2)))

    def test_nothing_qualifies(self):
        self.assertEqual(rebuild_streak({day(1): False}, longest=4), StreakState(0, 4, None))
        self.assertEqual(rebuild_streak({}), StreakState(0, 0, None))


class TestEffectiveStreak(unittest.TestCase):
    def test_alive_through_yesterday(self):
        self.assertEqual(effective_streak(4, day(9), day(10)), 4)
        self.assertEqual(effective_streak(4, day(10), day(10)), 4)

    def test_broken_after_missed_day(self):
        self.assertEqual(effective_streak(4, day(8), day(10)), 0)
        self.assertEqual(effective_streak(4, None, day(10)), 0)


class TestLevels(unittest.TestCase):
    def test_level_table(self):
        self.assertEqual(level_for_xp(0), 1)
        self.assertEqual(level_for_xp(499), 1)
        self.assertEqual(level_for_xp(500), 2)
        self.assertEqual(level_for_xp(1500), 3)
        self.assertEqual(level_for_xp(-20), 1)
        self.assertEqual(level_for_xp(10 ** 9), MAX_LEVEL)

    def test_xp_to_next_level(self):
        self.assertEqual(xp_to_next_level(0), 500)
        self.assertEqual(xp_to_next_level(1200), 300)
        self.assertIsNone(xp_to_next_level(LEVEL_THRESHOLDS[-1]))


if __name__ == "__main__":
    unittest.main()
