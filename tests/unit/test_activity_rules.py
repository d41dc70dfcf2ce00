"""Activity mapping, study-session XP and streak transition tests."""

from datetime import date

import pytest

from mastery.db.models import CUMULATIVE_FIELDS, DAILY_METRICS
from mastery.gamification.activity import ACTIONS, XP_VALUES, action_xp, study_session_xp
from mastery.gamification.streak_service import next_streak


class TestStudySessionXP:
    @pytest.mark.parametrize(
        ("minutes", "xp"),
        [(0, 0), (2, 0), (3, 1), (14, 4), (15, 10), (24, 10), (25, 15), (45, 25), (59, 25), (60, 35), (240, 35)],
    )
    def test_tiers(self, minutes, xp):
        assert study_session_xp(minutes) == xp


class TestActionTable:
    def test_daily_metrics_known(self):
        for name, spec in ACTIONS.items():
            if spec.daily is not None:
                assert spec.daily in DAILY_METRICS, name

    def test_cumulative_fields_known(self):
        for name, spec in ACTIONS.items():
            assert set(spec.cumulative) <= set(CUMULATIVE_FIELDS), name

    def test_action_xp(self):
        assert action_xp("note_created", 3) == 3 * XP_VALUES["CREATE_NOTE"]
        assert action_xp("task_completed", 1) == XP_VALUES["COMPLETE_TASK"]
        assert action_xp("focus_session", 30) == XP_VALUES["STUDY_SESSION_25MIN"]
        assert action_xp("task_uncompleted", 1) == 0

    def test_undo_never_counts_for_streak(self):
        assert ACTIONS["task_uncompleted"].undo
        assert not ACTIONS["task_uncompleted"].counts_for_streak


class TestStreakTransition:
    today = date(2026, 6, 15)

    def test_same_day_unchanged(self):
        assert next_streak(4, 9, self.today, self.today) == (4, 9, False)

    def test_consecutive_day_increments(self):
        assert next_streak(4, 9, date(2026, 6, 14), self.today) == (5, 9, True)

    def test_consecutive_day_raises_longest(self):
        assert next_streak(9, 9, date(2026, 6, 14), self.today) == (10, 10, True)

    def test_gap_resets(self):
        assert next_streak(4, 9, date(2026, 6, 12), self.today) == (1, 9, True)

    def test_future_last_active_resets(self):
        assert next_streak(4, 9, date(2026, 6, 20), self.today) == (1, 9, True)

    def test_never_active_starts_at_one(self):
        assert next_streak(0, 0, None, self.today) == (1, 1, True)
