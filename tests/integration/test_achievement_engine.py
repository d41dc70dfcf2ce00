"""AchievementEngine tests — exactly-once unlocks, coupled XP, unseen tracking."""

from __future__ import annotations

import json
import logging

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError

from mastery.db.models import UserAchievement
from mastery.gamification.achievement_service import AchievementEngine
from mastery.gamification.xp_service import get_progress, grant_xp
from mastery.progress.day import utc_now

USER = "ach-user"


async def _count_unlocks(db, user_id: str = USER) -> int:
    result = await db.execute(
        select(func.count()).select_from(UserAchievement).where(UserAchievement.user_id == user_id)
    )
    return result.scalar_one()


class TestCheckAndUnlock:
    @pytest.mark.asyncio
    async def test_unlock_grants_xp(self, engine, db_session):
        result = await engine.check_and_unlock(USER, "first-note")
        assert result.unlocked
        assert result.achievement.key == "first-note"
        assert result.xp_gained == 10

        progress = await get_progress(db_session, USER)
        assert progress.total_xp == 10
        assert await _count_unlocks(db_session) == 1

    @pytest.mark.asyncio
    async def test_second_unlock_is_noop(self, engine, db_session):
        await engine.check_and_unlock(USER, "first-note")
        again = await engine.check_and_unlock(USER, "first-note")

        assert not again.unlocked
        assert again.error is None
        assert (await get_progress(db_session, USER)).total_xp == 10
        assert await _count_unlocks(db_session) == 1

    @pytest.mark.asyncio
    async def test_separate_sessions_unlock_once(self, db_session, other_session, catalog):
        first = await AchievementEngine(db_session, catalog).check_and_unlock(USER, "first-deck")
        await db_session.commit()
        second = await AchievementEngine(other_session, catalog).check_and_unlock(USER, "first-deck")
        await other_session.commit()

        assert first.unlocked
        assert not second.unlocked
        assert (await get_progress(db_session, USER)).total_xp == 10

    @pytest.mark.asyncio
    async def test_unique_constraint_rejects_duplicates(self, engine, db_session):
        await engine.check_and_unlock(USER, "first-task")
        with pytest.raises(IntegrityError):
            async with db_session.begin_nested():
                db_session.add(UserAchievement(user_id=USER, achievement_key="first-task", unlocked_at=utc_now()))
                await db_session.flush()

    @pytest.mark.asyncio
    async def test_unknown_key(self, engine, db_session, caplog):
        with caplog.at_level(logging.WARNING, logger="mastery.gamification.achievement_service"):
            result = await engine.check_and_unlock(USER, "does-not-exist")
        assert not result.unlocked
        assert result.achievement is None
        assert "does-not-exist" in caplog.text
        assert await _count_unlocks(db_session) == 0

    @pytest.mark.asyncio
    async def test_storage_failure_rolls_back_unlock(self, engine, db_session, monkeypatch):
        async def _broken_grant(*_args, **_kwargs):
            raise OperationalError("UPDATE user_progress", {}, Exception("disk I/O error"))

        monkeypatch.setattr("mastery.gamification.achievement_service.grant_xp", _broken_grant)
        result = await engine.check_and_unlock(USER, "first-note")

        assert not result.unlocked
        assert result.error is not None
        assert await _count_unlocks(db_session) == 0

        monkeypatch.undo()
        retry = await engine.check_and_unlock(USER, "first-note")
        assert retry.unlocked

    @pytest.mark.asyncio
    async def test_publishes_unlock(self, db_session, catalog, mock_redis):
        engine = AchievementEngine(db_session, catalog, mock_redis)
        await engine.check_and_unlock(USER, "bug-reporter")

        channel, payload = mock_redis.publish.await_args_list[0].args
        assert channel == "pubsub:achievement_unlocked"
        data = json.loads(payload)
        assert data["key"] == "bug-reporter"
        assert data["xp_reward"] == 50

    @pytest.mark.asyncio
    async def test_unlock_xp_can_level_up(self, db_session, catalog, mock_redis):
        await grant_xp(db_session, USER, 90)
        engine = AchievementEngine(db_session, catalog, mock_redis)

        result = await engine.check_and_unlock(USER, "first-deck")
        assert result.xp_award.leveled_up
        channels = [call.args[0] for call in mock_redis.publish.await_args_list]
        assert channels == ["pubsub:achievement_unlocked", "pubsub:level_up"]

    @pytest.mark.asyncio
    async def test_unlock_many(self, engine):
        results = await engine.unlock_many(USER, ["first-note", "first-note", "first-tag"])
        assert [r.unlocked for r in results] == [True, False, True]
        assert await engine.unlocked_keys(USER) == {"first-note", "first-tag"}


class TestUnseen:
    @pytest.mark.asyncio
    async def test_new_unlocks_are_unseen(self, engine):
        await engine.unlock_many(USER, ["first-note", "first-task"])
        unseen = await engine.unseen(USER)
        assert [u.achievement_key for u in unseen] == ["first-note", "first-task"]

    @pytest.mark.asyncio
    async def test_mark_some_seen(self, engine):
        await engine.unlock_many(USER, ["first-note", "first-task"])
        assert await engine.mark_seen(USER, ["first-note"]) == 1
        assert [u.achievement_key for u in await engine.unseen(USER)] == ["first-task"]

    @pytest.mark.asyncio
    async def test_mark_all_seen(self, engine):
        await engine.unlock_many(USER, ["first-note", "first-task"])
        assert await engine.mark_seen(USER) == 2
        assert await engine.unseen(USER) == []
        assert await engine.mark_seen(USER) == 0

    @pytest.mark.asyncio
    async def test_other_users_untouched(self, engine):
        await engine.check_and_unlock(USER, "first-note")
        await engine.check_and_unlock("someone-else", "first-note")
        await engine.mark_seen(USER)
        assert len(await engine.unseen("someone-else")) == 1
