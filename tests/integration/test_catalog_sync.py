"""Catalog sync/validate tests — the storage mirror of the static catalog."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select, update

from mastery.db.models import AchievementDefinitionRow
from mastery.gamification.catalog import AchievementCatalog
from mastery.gamification.seed import CatalogMismatchError, sync_catalog, validate_catalog


async def _stored_count(db) -> int:
    return (await db.execute(select(func.count()).select_from(AchievementDefinitionRow))).scalar_one()


class TestSyncCatalog:
    @pytest.mark.asyncio
    async def test_writes_every_definition(self, db_session, catalog):
        synced = await sync_catalog(db_session, catalog)
        assert synced == len(catalog)
        assert await _stored_count(db_session) == len(catalog)

    @pytest.mark.asyncio
    async def test_idempotent(self, db_session, catalog):
        await sync_catalog(db_session, catalog)
        await sync_catalog(db_session, catalog)
        assert await _stored_count(db_session) == len(catalog)

    @pytest.mark.asyncio
    async def test_overwrites_drifted_rows(self, db_session, catalog):
        await sync_catalog(db_session, catalog)
        await db_session.execute(
            update(AchievementDefinitionRow).where(AchievementDefinitionRow.key == "first-note").values(xp_reward=999)
        )
        await db_session.commit()

        await sync_catalog(db_session, catalog)
        row = (
            await db_session.execute(
                select(AchievementDefinitionRow)
                .where(AchievementDefinitionRow.key == "first-note")
                .execution_options(populate_existing=True)
            )
        ).scalar_one()
        assert row.xp_reward == 10
        assert row.catalog_version == catalog.version


class TestValidateCatalog:
    @pytest.mark.asyncio
    async def test_passes_after_sync(self, db_session, catalog):
        await sync_catalog(db_session, catalog)
        await validate_catalog(db_session, catalog)

    @pytest.mark.asyncio
    async def test_empty_storage_reports_missing(self, db_session, catalog):
        with pytest.raises(CatalogMismatchError) as excinfo:
            await validate_catalog(db_session, catalog)
        assert set(excinfo.value.missing) == set(catalog.keys())

    @pytest.mark.asyncio
    async def test_changed_definition(self, db_session, catalog):
        await sync_catalog(db_session, catalog)
        await db_session.execute(
            update(AchievementDefinitionRow).where(AchievementDefinitionRow.key == "streak-7").values(requirement=8)
        )
        with pytest.raises(CatalogMismatchError) as excinfo:
            await validate_catalog(db_session, catalog)
        assert excinfo.value.changed == ["streak-7"]
        assert excinfo.value.missing == []

    @pytest.mark.asyncio
    async def test_extra_stored_definition(self, db_session, catalog):
        await sync_catalog(db_session, catalog)
        smaller = AchievementCatalog([d for d in catalog if d.key != "welcome"], version=catalog.version)
        with pytest.raises(CatalogMismatchError) as excinfo:
            await validate_catalog(db_session, smaller)
        assert excinfo.value.extra == ["welcome"]
