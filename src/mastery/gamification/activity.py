"""Activity recorder: one entry point for "the user just did X".

Maps each action to its daily metric, lifetime counters, XP and streak
effect, then runs the achievement checks. Every step is best-effort: a
failed step is recorded in ``GamificationResult.errors`` and the rest
still run. Runs inside the caller's transaction; committing is the caller's job.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime

from mastery.gamification.achievement_service import AchievementEngine
from mastery.gamification.catalog import AchievementDefinition
from mastery.gamification.checkers import (
    EVENT_KEYS,
    PERFECT_SCORE,
    check_compound_achievements,
    check_counter_achievements,
    check_daily_challenges,
    check_event,
    check_exam_result,
    check_first_day,
    check_note_links,
    check_priority_coverage,
    check_question_variety,
    check_time_of_day,
)
from mastery.gamification.results import GamificationResult, add_award, add_unlocks, merge_results
from mastery.gamification.streak_service import update_streak
from mastery.gamification.xp_service import award_xp, get_progress
from mastery.outcome import Outcome, guarded
from mastery.progress import ledger
from mastery.progress.day import utc_now

logger = logging.getLogger(__name__)

XP_VALUES = {
    "CREATE_NOTE": 5,
    "UPDATE_NOTE": 2,
    "CREATE_TASK": 3,
    "COMPLETE_TASK": 10,
    "CREATE_FLASHCARD": 2,
    "REVIEW_FLASHCARD": 2,
    "REVIEW_FLASHCARD_CORRECT": 3,
    "CREATE_DECK": 5,
    "STUDY_SESSION_15MIN": 10,
    "STUDY_SESSION_25MIN": 15,
    "STUDY_SESSION_45MIN": 25,
    "STUDY_SESSION_60MIN": 35,
    "CREATE_EXAM": 8,
    "COMPLETE_EXAM": 20,
    "PERFECT_EXAM": 50,
    "CREATE_FOLDER": 3,
    "TAG_ITEM": 1,
}


def study_session_xp(minutes: int) -> int:
    """XP for a focus session: tiered at 15/25/45/60 minutes, 1 XP per 3 minutes below."""
    if minutes >= 60:
        return XP_VALUES["STUDY_SESSION_60MIN"]
    if minutes >= 45:
        return XP_VALUES["STUDY_SESSION_45MIN"]
    if minutes >= 25:
        return XP_VALUES["STUDY_SESSION_25MIN"]
    if minutes >= 15:
        return XP_VALUES["STUDY_SESSION_15MIN"]
    return max(minutes, 0) // 3


@dataclass(frozen=True)
class ActionSpec:
    daily: str | None = None
    cumulative: tuple[str, ...] = ()
    xp: int = 0
    counts_for_streak: bool = True
    undo: bool = False
    review: bool | None = None  # True/False: correct/failed flashcard review


ACTIONS: dict[str, ActionSpec] = {
    "note_created": ActionSpec("notes_created", ("total_notes_created",), XP_VALUES["CREATE_NOTE"]),
    "note_updated": ActionSpec("notes_updated", (), XP_VALUES["UPDATE_NOTE"]),
    "folder_created": ActionSpec(None, ("total_folders_created",), XP_VALUES["CREATE_FOLDER"]),
    "tag_used": ActionSpec(None, ("total_tags_used",), XP_VALUES["TAG_ITEM"]),
    "link_created": ActionSpec(None, ("total_links_created",)),
    "task_created": ActionSpec(None, ("total_tasks_created",), XP_VALUES["CREATE_TASK"]),
    "task_completed": ActionSpec("tasks_completed", ("total_tasks_completed",), XP_VALUES["COMPLETE_TASK"]),
    "task_completed_early": ActionSpec(
        "tasks_completed", ("total_tasks_completed", "early_task_completions"), XP_VALUES["COMPLETE_TASK"]
    ),
    "task_uncompleted": ActionSpec("tasks_completed", counts_for_streak=False, undo=True),
    "deck_created": ActionSpec(None, ("total_decks_created",), XP_VALUES["CREATE_DECK"]),
    "card_reviewed": ActionSpec("cards_reviewed", (), XP_VALUES["REVIEW_FLASHCARD_CORRECT"], review=True),
    "card_failed": ActionSpec("cards_reviewed", (), XP_VALUES["REVIEW_FLASHCARD"], review=False),
    "focus_session": ActionSpec("focus_minutes", ("total_study_minutes",)),
    "exam_created": ActionSpec(None, ("total_exams_created",), XP_VALUES["CREATE_EXAM"]),
    "exam_completed": ActionSpec("exams_completed", ("total_exams_completed",), XP_VALUES["COMPLETE_EXAM"]),
    "question_created": ActionSpec("questions_created", ("total_questions_created",)),
    "question_answered": ActionSpec("questions_answered", ()),
    "bug_reported": ActionSpec(None, ("total_bugs_reported",), counts_for_streak=False),
}


class UnknownActionError(ValueError):
    """Action id not in ACTIONS."""


def action_xp(action: str, amount: int) -> int:
    """XP an action is worth. For focus sessions ``amount`` is the session length in minutes."""
    if action == "focus_session":
        return study_session_xp(amount)
    return ACTIONS[action].xp * amount



class ActivityRecorder:
    def __init__(self, engine: AchievementEngine) -> None:
        self.engine = engine
        self.db = engine.db

    async def record(
        self,
        user_id: str,
        action: str,
        amount: int = 1,
        now: datetime | None = None,
        *,
        account_created: date | datetime | None = None,
        link_count: int | None = None,
        completed_priorities: Iterable[object] | None = None,
    ) -> GamificationResult:
        """Apply one action to the user's progress.

        ``amount`` 0 records nothing and is not activity: no streak day,
        no time-of-day unlock. The keyword arguments carry caller-side
        facts some achievements need (account creation date for
        first-day, links in the saved note, priorities of completed
        tasks); each check runs only when its fact is supplied.
        """
        spec = ACTIONS.get(action)
        if spec is None:
            raise UnknownActionError(f"Unknown action: {action!r}")
        if amount < 0:
            msg = f"amount must be >= 0, got {amount}"
            raise ValueError(msg)
        if now is None:
            now = utc_now()

        result = GamificationResult()
        result.old_level = await self._level(result, user_id)
        result.new_level = result.old_level
        if amount == 0:
            return result

        if spec.daily is not None:
            if spec.undo:
                self._collect(result, await ledger.decrement_daily(self.db, user_id, spec.daily, amount, now))
            else:
                self._collect(result, await ledger.increment_daily(self.db, user_id, spec.daily, amount, now))
        for counter in spec.cumulative:
            self._collect(result, await ledger.increment_cumulative(self.db, user_id, counter, amount))
        if spec.review is not None:
            self._collect(result, await ledger.record_review_result(self.db, user_id, spec.review, amount))

        if spec.undo:
            # Undoing a completion keeps XP and lifetime counters.
            return result

        xp = await award_xp(self.db, user_id, action_xp(action, amount), self.engine.redis)
        self._collect(result, xp)
        add_award(result, xp.value)
        action_xp_gained = xp.value.xp_gained if xp.value else 0

        if spec.counts_for_streak:
            streak = await update_streak(self.engine, user_id, now)
            self._collect(result, streak)
            if streak.value is not None:
                add_unlocks(result, streak.value.achievements_unlocked)
            await self._check(result, "time-of-day achievements", lambda: check_time_of_day(self.engine, user_id, now))
            if account_created is not None:
                await self._check(
                    result, "first-day achievement",
                    lambda: check_first_day(self.engine, user_id, account_created, now),
                )

        if link_count is not None:
            await self._check(result, "note link achievements", lambda: check_note_links(self.engine, user_id, link_count))
        if completed_priorities is not None:
            priorities = list(completed_priorities)
            await self._check(
                result, "priority achievements",
                lambda: check_priority_coverage(self.engine, user_id, priorities),
            )

        await self._check(result, "counter achievements", lambda: check_counter_achievements(self.engine, user_id))
        await self._check(result, "daily challenges", lambda: check_daily_challenges(self.engine, user_id, now))
        await self._check(result, "compound achievements", lambda: check_compound_achievements(self.engine, user_id))

        await self._finish(result, user_id, action_xp_gained)
        logger.info(
            "activity user=%s action=%s amount=%d xp=%d unlocked=%d",
            user_id, action, amount, result.xp_gained, len(result.achievements_unlocked),
        )
        return result

    async def record_exam(
        self,
        user_id: str,
        score: float,
        question_types: Iterable[str] = (),
        questions_answered: int = 0,
        now: datetime | None = None,
    ) -> GamificationResult:
        """A finished exam attempt: completion, answered questions, perfect-score bonus."""
        if now is None:
            now = utc_now()
        question_types = list(question_types)

        results = [await self.record(user_id, "exam_completed", 1, now)]
        if questions_answered > 0:
            results.append(await self.record(user_id, "question_answered", questions_answered, now))

        bonus = GamificationResult()
        bonus_xp = 0
        if score >= PERFECT_SCORE:
            xp = await award_xp(self.db, user_id, XP_VALUES["PERFECT_EXAM"], self.engine.redis)
            self._collect(bonus, xp)
            bonus_xp = xp.value.xp_gained if xp.value else 0
        await self._check(bonus, "exam score achievements", lambda: check_exam_result(self.engine, user_id, score))
        await self._check(
            bonus, "question variety achievements",
            lambda: check_question_variety(self.engine, user_id, question_types),
        )
        await self._check(bonus, "counter achievements", lambda: check_counter_achievements(self.engine, user_id))
        await self._finish(bonus, user_id, bonus_xp)

        return merge_results(*results, bonus)

    async def record_event(self, user_id: str, key: str) -> GamificationResult:
        """A one-off account event (welcome, avatar-upload, complete-profile)."""
        if key not in EVENT_KEYS:
            raise UnknownActionError(f"Unknown event: {key!r}")
        result = GamificationResult()
        result.old_level = await self._level(result, user_id)
        await self._check(result, f"event {key}", lambda: check_event(self.engine, user_id, key))
        await self._finish(result, user_id, 0)
        return result

    async def _check(
        self,
        result: GamificationResult,
        operation: str,
        fn: Callable[[], Awaitable[list[AchievementDefinition]]],
    ) -> None:
        outcome = await guarded(self.db, operation, fn)
        self._collect(result, outcome)
        add_unlocks(result, outcome.value or [])

    async def _level(self, result: GamificationResult, user_id: str) -> int:
        outcome = await guarded(self.db, "read progress", lambda: get_progress(self.db, user_id))
        self._collect(result, outcome)
        return outcome.value.level if outcome.value is not None else 1

    async def _finish(self, result: GamificationResult, user_id: str, base_xp: int) -> None:
        result.xp_gained = base_xp + sum(a.xp_reward for a in result.achievements_unlocked)
        result.new_level = await self._level(result, user_id)
        if result.old_level is not None:
            result.new_level = max(result.new_level, result.old_level)
        result.leveled_up = result.old_level is not None and result.new_level > result.old_level

    @staticmethod
    def _collect(result: GamificationResult, outcome: Outcome) -> None:
        if not outcome.ok and outcome.error is not None:
            result.errors.append(outcome.error)
