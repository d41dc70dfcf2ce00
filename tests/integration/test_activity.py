"""ActivityRecorder tests — one action through counters, XP, streak and achievements."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from mastery.gamification.achievement_service import AchievementEngine
from mastery.gamification.activity import ActivityRecorder, UnknownActionError
from mastery.gamification.xp_service import get_progress
from mastery.outcome import Outcome
from mastery.progress.ledger import get_daily

USER = "activity-user"
NOON = datetime(2026, 5, 20, 12, 0, tzinfo=timezone.utc)


class TestRecord:
    @pytest.mark.asyncio
    async def test_first_note(self, engine, db_session):
        result = await ActivityRecorder(engine).record(USER, "note_created", now=NOON)

        assert [a.key for a in result.achievements_unlocked] == ["first-note"]
        assert result.xp_gained == 5 + 10
        assert result.errors == []
        assert not result.leveled_up

        progress = await get_progress(db_session, USER)
        assert progress.total_notes_created == 1
        assert progress.total_xp == 15
        assert progress.current_streak == 1
        assert (await get_daily(db_session, USER, NOON)).notes_created == 1

    @pytest.mark.asyncio
    async def test_repeat_does_not_reunlock(self, engine):
        recorder = ActivityRecorder(engine)
        await recorder.record(USER, "note_created", now=NOON)
        result = await recorder.record(USER, "note_created", now=NOON)
        assert result.achievements_unlocked == []
        assert result.xp_gained == 5

    @pytest.mark.asyncio
    async def test_level_up_reported(self, engine):
        # 60 min focus: 35 XP + first-study-session 15 XP; then 600 min crosses study-hours-10
        recorder = ActivityRecorder(engine)
        await recorder.record(USER, "focus_session", 60, now=NOON)
        result = await recorder.record(USER, "focus_session", 540, now=NOON)

        assert [a.key for a in result.achievements_unlocked] == ["study-hours-10"]
        assert result.xp_gained == 35 + 100
        assert (result.old_level, result.new_level, result.leveled_up) == (1, 2, True)

    @pytest.mark.asyncio
    async def test_task_uncompleted_keeps_xp_and_lifetime(self, engine, db_session):
        recorder = ActivityRecorder(engine)
        await recorder.record(USER, "task_completed", now=NOON)
        before = (await get_progress(db_session, USER)).total_xp

        result = await recorder.record(USER, "task_uncompleted", now=NOON)
        assert result.xp_gained == 0

        progress = await get_progress(db_session, USER)
        assert progress.total_xp == before
        assert progress.total_tasks_completed == 1
        assert (await get_daily(db_session, USER, NOON)).tasks_completed == 0

    @pytest.mark.asyncio
    async def test_early_completion_counts_twice(self, engine, db_session):
        await ActivityRecorder(engine).record(USER, "task_completed_early", now=NOON)
        progress = await get_progress(db_session, USER)
        assert progress.total_tasks_completed == 1
        assert progress.early_task_completions == 1

    @pytest.mark.asyncio
    async def test_card_reviews_track_consecutive_correct(self, engine, db_session):
        recorder = ActivityRecorder(engine)
        await recorder.record(USER, "card_reviewed", 3, now=NOON)
        await recorder.record(USER, "card_failed", now=NOON)
        await recorder.record(USER, "card_reviewed", now=NOON)

        progress = await get_progress(db_session, USER)
        assert progress.total_cards_reviewed == 5
        assert progress.current_review_streak == 1
        assert (await get_daily(db_session, USER, NOON)).cards_reviewed == 5

    @pytest.mark.asyncio
    async def test_bug_report_does_not_touch_streak(self, engine, db_session):
        result = await ActivityRecorder(engine).record(USER, "bug_reported", now=NOON)
        assert [a.key for a in result.achievements_unlocked] == ["bug-reporter"]
        assert (await get_progress(db_session, USER)).last_active_date is None

    @pytest.mark.asyncio
    async def test_night_activity(self, engine):
        late = NOON.replace(hour=23, minute=15)
        result = await ActivityRecorder(engine).record(USER, "note_updated", now=late)
        assert [a.key for a in result.achievements_unlocked] == ["night-owl"]

    @pytest.mark.asyncio
    async def test_daily_challenge(self, engine):
        recorder = ActivityRecorder(engine)
        await recorder.record(USER, "task_completed", 9, now=NOON)
        result = await recorder.record(USER, "task_completed", now=NOON)
        assert "productivity-sprint" in [a.key for a in result.achievements_unlocked]
        assert "tasks-completed-10" in [a.key for a in result.achievements_unlocked]

    @pytest.mark.asyncio
    async def test_unknown_action(self, engine):
        with pytest.raises(UnknownActionError):
            await ActivityRecorder(engine).record(USER, "juggled")

    @pytest.mark.asyncio
    async def test_negative_amount(self, engine):
        with pytest.raises(ValueError):
            await ActivityRecorder(engine).record(USER, "note_created", -2)

    @pytest.mark.asyncio
    async def test_failed_step_is_collected(self, engine, db_session, monkeypatch):
        async def _failing(*_args, **_kwargs):
            return Outcome.failure("increment_daily: OperationalError")

        monkeypatch.setattr("mastery.progress.ledger.increment_daily", _failing)
        result = await ActivityRecorder(engine).record(USER, "note_created", now=NOON)

        assert result.errors == ["increment_daily: OperationalError"]
        assert (await get_progress(db_session, USER)).total_notes_created == 1
        assert result.xp_gained == 15


async def _storage_down(*_args, **_kwargs):
    raise OperationalError("SELECT", {}, Exception("database is locked"))


class TestZeroAmount:
    @pytest.mark.asyncio
    async def test_zero_amount_is_not_activity(self, engine, db_session):
        recorder = ActivityRecorder(engine)
        late = NOON.replace(hour=23, minute=30)
        results = [
            await recorder.record(USER, "card_reviewed", 0, now=late),
            await recorder.record(USER, "focus_session", 0, now=NOON + timedelta(days=1)),
            await recorder.record(USER, "task_completed", 0, now=NOON + timedelta(days=2)),
        ]

        assert all(r.achievements_unlocked == [] for r in results)
        assert all(r.xp_gained == 0 for r in results)
        assert await get_progress(db_session, USER) is None

    @pytest.mark.asyncio
    async def test_zero_amount_keeps_existing_streak_day(self, engine, db_session):
        recorder = ActivityRecorder(engine)
        await recorder.record(USER, "note_created", now=NOON)
        await recorder.record(USER, "note_created", 0, now=NOON + timedelta(days=1))

        progress = await get_progress(db_session, USER)
        assert progress.current_streak == 1
        assert progress.last_active_date == NOON.date()


class TestStorageFailures:
    @pytest.mark.asyncio
    async def test_achievement_reads_failing_do_not_raise(self, engine, db_session, monkeypatch):
        monkeypatch.setattr(AchievementEngine, "unlocked_keys", _storage_down)

        result = await ActivityRecorder(engine).record(USER, "note_created", now=NOON)

        assert result.achievements_unlocked == []
        assert result.errors
        assert all(e.endswith("OperationalError") for e in result.errors)
        progress = await get_progress(db_session, USER)
        assert progress.total_notes_created == 1
        assert progress.total_xp == 5

    @pytest.mark.asyncio
    async def test_progress_read_failing_is_collected(self, engine, monkeypatch):
        monkeypatch.setattr("mastery.gamification.activity.get_progress", _storage_down)

        result = await ActivityRecorder(engine).record(USER, "note_created", now=NOON)

        assert "read progress: OperationalError" in result.errors
        assert result.old_level == 1
        assert [a.key for a in result.achievements_unlocked] == ["first-note"]


class TestContextChecks:
    @pytest.mark.asyncio
    async def test_first_day(self, engine):
        result = await ActivityRecorder(engine).record(USER, "note_created", 5, now=NOON, account_created=NOON)
        assert {"first-day", "first-note"} <= {a.key for a in result.achievements_unlocked}

    @pytest.mark.asyncio
    async def test_first_day_only_on_creation_day(self, engine):
        result = await ActivityRecorder(engine).record(
            USER, "note_created", 5, now=NOON, account_created=NOON - timedelta(days=1)
        )
        assert "first-day" not in [a.key for a in result.achievements_unlocked]

    @pytest.mark.asyncio
    async def test_note_links(self, engine):
        result = await ActivityRecorder(engine).record(USER, "note_updated", now=NOON, link_count=5)
        assert [a.key for a in result.achievements_unlocked] == ["knowledge-connector"]

    @pytest.mark.asyncio
    async def test_priority_coverage(self, engine):
        result = await ActivityRecorder(engine).record(
            USER, "task_completed", now=NOON, completed_priorities=["low", "medium", "high"]
        )
        assert [a.key for a in result.achievements_unlocked] == ["priority-master"]


class TestExamResult:
    @pytest.mark.asyncio
    async def test_perfect_exam_with_every_question_type(self, engine, db_session):
        result = await ActivityRecorder(engine).record_exam(
            USER,
            100,
            question_types=["multiple_choice", "select_all", "true_false"],
            questions_answered=5,
            now=NOON,
        )

        assert {a.key for a in result.achievements_unlocked} == {"first-exam", "perfect-exam", "variety-expert"}
        # 20 completion + 20 first-exam + 50 perfect bonus + 100 perfect-exam + 75 variety-expert
        assert result.xp_gained == 265
        assert (result.old_level, result.new_level, result.leveled_up) == (1, 2, True)

        progress = await get_progress(db_session, USER)
        assert progress.total_xp == 265
        assert progress.total_exams_completed == 1
        daily = await get_daily(db_session, USER, NOON)
        assert daily.exams_completed == 1
        assert daily.questions_answered == 5

    @pytest.mark.asyncio
    async def test_ordinary_exam(self, engine):
        result = await ActivityRecorder(engine).record_exam(USER, 80, question_types=["true_false"], now=NOON)
        assert [a.key for a in result.achievements_unlocked] == ["first-exam"]
        assert result.xp_gained == 40


class TestAccountEvents:
    @pytest.mark.asyncio
    async def test_welcome_once(self, engine):
        recorder = ActivityRecorder(engine)
        first = await recorder.record_event(USER, "welcome")
        second = await recorder.record_event(USER, "welcome")

        assert [a.key for a in first.achievements_unlocked] == ["welcome"]
        assert first.xp_gained == 10
        assert second.achievements_unlocked == []
        assert second.xp_gained == 0

    @pytest.mark.asyncio
    async def test_unknown_event(self, engine):
        with pytest.raises(UnknownActionError):
            await ActivityRecorder(engine).record_event(USER, "first-note")
