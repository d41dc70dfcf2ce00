"""Achievement unlocks with duplicate prevention, coupled XP and notification."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mastery.db.dialect import upsert_insert
from mastery.db.models import UserAchievement
from mastery.gamification.catalog import AchievementCatalog, AchievementDefinition
from mastery.gamification.xp_service import XPAward, grant_xp, publish_level_up
from mastery.outcome import guarded
from mastery.progress.day import utc_now
from mastery.redis_client import ACHIEVEMENT_UNLOCKED_CHANNEL, publish_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnlockResult:
    unlocked: bool
    achievement: AchievementDefinition | None = None
    xp_gained: int = 0
    xp_award: XPAward | None = None
    error: str | None = None


class AchievementEngine:
    """Unlocks catalog achievements for users.

    Deciding whether a user qualifies is the caller's job (see checkers);
    the engine only guarantees that each (user, achievement) pair is
    recorded and rewarded at most once.
    """

    def __init__(self, db: AsyncSession, catalog: AchievementCatalog, redis: object = None) -> None:
        self.db = db
        self.catalog = catalog
        self.redis = redis

    async def check_and_unlock(self, user_id: str, key: str) -> UnlockResult:
        """Unlock ``key`` for ``user_id`` if not already unlocked.

        1. Insert into user_achievements (UNIQUE(user_id, achievement_key), DO NOTHING)
        2. No row inserted -> already unlocked, nothing else happens
        3. Grant the achievement's XP in the same savepoint
        4. Publish achievement_unlocked (and level_up) notifications

        Never raises for storage errors; they come back in ``error`` with the
        savepoint rolled back, so a retry is safe.
        """
        definition = self.catalog.get(key)
        if definition is None:
            logger.warning("Achievement key not in catalog (data integrity): %s", key)
            return UnlockResult(unlocked=False)

        async def _unlock() -> XPAward | None:
            stmt = upsert_insert(self.db, UserAchievement).values(
                user_id=user_id,
                achievement_key=key,
                unlocked_at=utc_now(),
                seen=False,
            )
            stmt = stmt.on_conflict_do_nothing(
                index_elements=["user_id", "achievement_key"]
            ).returning(UserAchievement.id)
            inserted = (await self.db.execute(stmt)).scalar_one_or_none()
            if inserted is None:
                return None
            return await grant_xp(self.db, user_id, definition.xp_reward)

        outcome = await guarded(self.db, f"unlock {key}", _unlock)
        if not outcome.ok:
            return UnlockResult(unlocked=False, achievement=definition, error=outcome.error)

        award = outcome.value
        if award is None:
            return UnlockResult(unlocked=False, achievement=definition)

        logger.info("achievement unlocked user=%s key=%s xp=%d", user_id, key, award.xp_gained)
        await self._emit_unlocked(user_id, definition)
        if award.leveled_up:
            await publish_level_up(self.redis, user_id, award)

        return UnlockResult(
            unlocked=True,
            achievement=definition,
            xp_gained=award.xp_gained,
            xp_award=award,
        )

    async def unlock_many(self, user_id: str, keys: Iterable[str]) -> list[UnlockResult]:
        return [await self.check_and_unlock(user_id, key) for key in keys]

    async def unlocked_keys(self, user_id: str) -> set[str]:
        result = await self.db.execute(
            select(UserAchievement.achievement_key).where(UserAchievement.user_id == user_id)
        )
        return set(result.scalars().all())

    async def unlocked(self, user_id: str) -> list[UserAchievement]:
        result = await self.db.execute(
            select(UserAchievement)
            .where(UserAchievement.user_id == user_id)
            .order_by(UserAchievement.unlocked_at.asc(), UserAchievement.id.asc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def unseen(self, user_id: str) -> list[UserAchievement]:
        """Unlocks the user has not acknowledged yet, oldest first."""
        result = await self.db.execute(
            select(UserAchievement)
            .where(UserAchievement.user_id == user_id, UserAchievement.seen.is_(False))
            .order_by(UserAchievement.unlocked_at.asc(), UserAchievement.id.asc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def mark_seen(self, user_id: str, keys: Iterable[str] | None = None) -> int:
        """Acknowledge unlocks (all of them when ``keys`` is None). Returns rows changed."""
        stmt = update(UserAchievement).where(
            UserAchievement.user_id == user_id, UserAchievement.seen.is_(False)
        )
        if keys is not None:
            stmt = stmt.where(UserAchievement.achievement_key.in_(list(keys)))
        result = await self.db.execute(
            stmt.values(seen=True).execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def _emit_unlocked(self, user_id: str, definition: AchievementDefinition) -> None:
        await publish_event(self.redis, ACHIEVEMENT_UNLOCKED_CHANNEL, {
            "user_id": user_id,
            "key": definition.key,
            "name": definition.name,
            "icon": definition.icon,
            "tier": definition.tier,
            "xp_reward": definition.xp_reward,
        })
