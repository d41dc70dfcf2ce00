"""Daily activity streaks.

The streak row is written with a compare-and-set on ``last_active_date``,
so two requests landing on the same day's first activity cannot both
advance it. The loser re-reads the row and finds nothing left to do.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from mastery.config import get_settings
from mastery.db.models import UserProgress
from mastery.gamification.achievement_service import AchievementEngine
from mastery.gamification.catalog import AchievementDefinition
from mastery.gamification.checkers import check_threshold
from mastery.gamification.xp_service import get_or_create_progress, get_progress
from mastery.outcome import Outcome, guarded
from mastery.progress.day import day_diff, today as utc_today, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreakUpdate:
    current_streak: int
    longest_streak: int
    changed: bool
    achievements_unlocked: list[AchievementDefinition] = field(default_factory=list)


def next_streak(current: int, longest: int, last_active: date | None, today: date) -> tuple[int, int, bool]:
    """Streak transition for activity on ``today``. Returns (current, longest, changed).

    Same day: unchanged. Next day: +1. A gap, a last-active date in the
    future, or no activity at all: restart at 1.
    """
    if last_active is not None:
        gap = day_diff(today, last_active)
        if gap == 0:
            return current, longest, False
        if gap == 1:
            current += 1
            return current, max(longest, current), True
    return 1, max(longest, 1), True


async def _advance(db: AsyncSession, user_id: str, today: date, retries: int) -> StreakUpdate | None:
    await get_or_create_progress(db, user_id)

    for attempt in range(1, retries + 1):
        progress = await get_progress(db, user_id)
        if progress is None:
            return None
        previous = progress.last_active_date
        current, longest, changed = next_streak(
            progress.current_streak, progress.longest_streak, previous, today
        )
        if not changed:
            return StreakUpdate(current, longest, changed=False)

        guard = (
            UserProgress.last_active_date.is_(None)
            if previous is None
            else UserProgress.last_active_date == previous
        )
        result = await db.execute(
            update(UserProgress)
            .where(UserProgress.user_id == user_id, guard)
            .values(
                current_streak=current,
                longest_streak=longest,
                last_active_date=today,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            logger.info("streak user=%s current=%d longest=%d", user_id, current, longest)
            return StreakUpdate(current, longest, changed=True)

        logger.info("streak update lost race user=%s attempt=%d", user_id, attempt)

    return None


async def update_streak(
    engine: AchievementEngine,
    user_id: str,
    now: datetime | None = None,
    retries: int | None = None,
) -> Outcome[StreakUpdate]:
    """Record activity for today and advance the user's streak.

    Only this function moves ``last_active_date``; XP grants do not.
    After a change, streak achievements the new length satisfies are unlocked.
    """
    today = utc_today(now)
    if retries is None:
        retries = get_settings().streak_update_retries

    outcome = await guarded(engine.db, "update_streak", lambda: _advance(engine.db, user_id, today, retries))
    if not outcome.ok:
        return outcome
    if outcome.value is None:
        logger.warning("streak update gave up after %d attempts user=%s", retries, user_id)
        return Outcome.failure("update_streak: retries exhausted")

    streak = outcome.value
    if not streak.changed:
        return outcome

    checked = await guarded(
        engine.db,
        "streak achievements",
        lambda: check_threshold(engine, user_id, "current_streak", streak.current_streak),
    )
    if not checked.ok:
        return Outcome(value=streak, error=checked.error)
    return Outcome.success(replace(streak, achievements_unlocked=checked.value or []))
