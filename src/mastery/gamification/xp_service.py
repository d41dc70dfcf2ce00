"""XP grants with atomic accumulation and level-up detection."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mastery.db.dialect import upsert_insert
from mastery.db.models import UserProgress
from mastery.gamification.levels import compute_level
from mastery.outcome import Outcome, guarded
from mastery.progress.day import utc_now
from mastery.redis_client import LEVEL_UP_CHANNEL, publish_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class XPAward:
    xp_gained: int
    leveled_up: bool
    old_level: int
    new_level: int
    total_xp: int

    @classmethod
    def nothing(cls, total_xp: int = 0) -> XPAward:
        level = compute_level(total_xp)
        return cls(xp_gained=0, leveled_up=False, old_level=level, new_level=level, total_xp=total_xp)


async def get_progress(db: AsyncSession, user_id: str) -> UserProgress | None:
    """Fetch the user's progress row, bypassing stale identity-map state."""
    result = await db.execute(
        select(UserProgress)
        .where(UserProgress.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_or_create_progress(db: AsyncSession, user_id: str) -> UserProgress:
    """Get or create the progress row for a user (insert-if-absent, race-safe)."""
    stmt = upsert_insert(db, UserProgress).values(user_id=user_id, updated_at=utc_now())
    await db.execute(stmt.on_conflict_do_nothing(index_elements=["user_id"]))
    progress = await get_progress(db, user_id)
    if progress is None:
        msg = f"user_progress row for {user_id} vanished after insert"
        raise RuntimeError(msg)
    return progress


async def grant_xp(db: AsyncSession, user_id: str, amount: int) -> XPAward:
    """Add XP to a user and recompute the level.

    1. Upsert-and-increment total_xp in one statement (RETURNING the new total)
    2. Derive old/new level from old/new totals
    3. Raise the stored level only upward

    Runs inside the caller's transaction and raises on storage errors.
    Amounts <= 0 are a no-op: XP is never reduced.
    Does not touch last_active_date; only the streak tracker moves it.
    """
    if amount <= 0:
        return XPAward.nothing()

    stmt = upsert_insert(db, UserProgress).values(
        user_id=user_id, total_xp=amount, updated_at=utc_now()
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id"],
        set_={"total_xp": UserProgress.total_xp + amount, "updated_at": utc_now()},
    ).returning(UserProgress.total_xp)
    new_total = (await db.execute(stmt)).scalar_one()
    old_total = new_total - amount

    old_level = compute_level(old_total)
    new_level = compute_level(new_total)

    await db.execute(
        update(UserProgress)
        .where(UserProgress.user_id == user_id, UserProgress.level < new_level)
        .values(level=new_level)
        .execution_options(synchronize_session=False)
    )

    return XPAward(
        xp_gained=amount,
        leveled_up=new_level > old_level,
        old_level=old_level,
        new_level=new_level,
        total_xp=new_total,
    )


async def award_xp(
    db: AsyncSession,
    user_id: str,
    amount: int,
    redis: object = None,
) -> Outcome[XPAward]:
    """Best-effort XP grant: storage failures come back as a failed Outcome."""
    if amount <= 0:
        return Outcome.success(XPAward.nothing())

    outcome = await guarded(db, "award_xp", lambda: grant_xp(db, user_id, amount))
    if outcome.ok and outcome.value is not None and outcome.value.leveled_up:
        await publish_level_up(redis, user_id, outcome.value)
    return outcome


async def publish_level_up(redis: object, user_id: str, award: XPAward) -> None:
    """Broadcast a level-up for live UI celebration. Best-effort."""
    logger.info("level up user=%s %d -> %d", user_id, award.old_level, award.new_level)
    await publish_event(redis, LEVEL_UP_CHANNEL, {
        "user_id": user_id,
        "old_level": award.old_level,
        "new_level": award.new_level,
        "total_xp": award.total_xp,
    })
