"""Startup step that mirrors the static achievement catalog into storage."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mastery.db.dialect import upsert_insert
from mastery.db.models import AchievementDefinitionRow
from mastery.gamification.catalog import AchievementCatalog, AchievementDefinition

logger = logging.getLogger(__name__)

_MIRRORED_FIELDS = (
    "name", "description", "icon", "category", "tier",
    "requirement", "xp_reward", "counter", "scope", "permanence",
)


class CatalogMismatchError(RuntimeError):
    """Stored achievement definitions disagree with the static catalog."""

    def __init__(self, missing: list[str], extra: list[str], changed: list[str]) -> None:
        parts = []
        if missing:
            parts.append(f"missing={missing}")
        if extra:
            parts.append(f"extra={extra}")
        if changed:
            parts.append(f"changed={changed}")
        super().__init__("Achievement catalog out of sync: " + ", ".join(parts))
        self.missing = missing
        self.extra = extra
        self.changed = changed


def _row_values(definition: AchievementDefinition, version: str) -> dict:
    values = {field: getattr(definition, field) for field in _MIRRORED_FIELDS}
    values["key"] = definition.key
    values["catalog_version"] = version
    return values


async def sync_catalog(db: AsyncSession, catalog: AchievementCatalog) -> int:
    """Upsert every catalog definition. Returns number of definitions written.

    Rows for keys no longer in the catalog are left alone; unlocks that
    reference them stay readable.
    """
    synced = 0
    for definition in catalog:
        stmt = upsert_insert(db, AchievementDefinitionRow).values(
            **_row_values(definition, catalog.version)
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["key"],
            set_={field: getattr(stmt.excluded, field) for field in (*_MIRRORED_FIELDS, "catalog_version")},
        )
        await db.execute(stmt)
        synced += 1

    await db.commit()
    logger.info("Synced %d achievement definitions (catalog %s)", synced, catalog.version)
    return synced


async def validate_catalog(db: AsyncSession, catalog: AchievementCatalog) -> None:
    """Fail fast if stored definitions differ from the static catalog."""
    result = await db.execute(select(AchievementDefinitionRow))
    stored = {row.key: row for row in result.scalars()}

    missing = sorted(key for key in catalog.keys() if key not in stored)
    extra = sorted(key for key in stored if key not in catalog)
    changed = sorted(
        definition.key
        for definition in catalog
        if definition.key in stored
        and any(getattr(stored[definition.key], f) != getattr(definition, f) for f in _MIRRORED_FIELDS)
    )

    if missing or extra or changed:
        raise CatalogMismatchError(missing, extra, changed)
    logger.info("Achievement catalog %s matches storage (%d definitions)", catalog.version, len(catalog))
