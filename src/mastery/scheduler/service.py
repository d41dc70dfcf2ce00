"""Card schedule persistence: create-with-defaults, optimistic review write-back, due queries."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mastery.db.dialect import upsert_insert
from mastery.db.models import CardSchedule as CardScheduleRow
from mastery.progress.day import start_of_day, today as utc_today, utc_now
from mastery.scheduler.sm2 import DEFAULT_EASE_FACTOR, CardSchedule, review, validate_quality

logger = logging.getLogger(__name__)


class ScheduleNotFoundError(LookupError):
    """No schedule exists for the card."""


class StaleScheduleError(RuntimeError):
    """The schedule changed between read and write-back; re-read and retry."""

    def __init__(self, card_id: str, expected_version: int) -> None:
        super().__init__(f"Schedule for card {card_id} is no longer at version {expected_version}")
        self.card_id = card_id
        self.expected_version = expected_version


def to_snapshot(row: CardScheduleRow) -> CardSchedule:
    return CardSchedule(
        ease_factor=row.ease_factor,
        interval=row.interval,
        repetitions=row.repetitions,
        last_reviewed=row.last_reviewed,
        next_review=row.next_review,
    )


async def ensure_schedule(db: AsyncSession, user_id: str, card_id: str) -> CardScheduleRow:
    """Create the card's schedule with SM-2 defaults if it does not exist yet."""
    stmt = upsert_insert(db, CardScheduleRow).values(
        card_id=card_id,
        user_id=user_id,
        ease_factor=DEFAULT_EASE_FACTOR,
        interval=0,
        repetitions=0,
        version=0,
        created_at=utc_now(),
    )
    await db.execute(stmt.on_conflict_do_nothing(index_elements=["card_id"]))
    row = await get_schedule(db, card_id)
    if row is None:
        raise ScheduleNotFoundError(card_id)
    return row


async def get_schedule(db: AsyncSession, card_id: str) -> CardScheduleRow | None:
    result = await db.execute(
        select(CardScheduleRow)
        .where(CardScheduleRow.card_id == card_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def apply_review(
    db: AsyncSession,
    card_id: str,
    quality: int,
    now: datetime | None = None,
    expected_version: int | None = None,
) -> CardScheduleRow:
    """Review a card and write the new schedule back with a version check.

    ``expected_version`` lets a caller that already showed the user a snapshot
    insist on that snapshot; otherwise the version read here is used.
    Raises StaleScheduleError if another review landed in between.
    """
    quality = validate_quality(quality)
    if now is None:
        now = utc_now()

    row = await get_schedule(db, card_id)
    if row is None:
        raise ScheduleNotFoundError(card_id)

    version = row.version if expected_version is None else expected_version
    if version != row.version:
        raise StaleScheduleError(card_id, version)

    updated = review(to_snapshot(row), quality, now)

    result = await db.execute(
        update(CardScheduleRow)
        .where(CardScheduleRow.card_id == card_id, CardScheduleRow.version == version)
        .values(
            ease_factor=updated.ease_factor,
            interval=updated.interval,
            repetitions=updated.repetitions,
            last_reviewed=updated.last_reviewed,
            next_review=updated.next_review,
            version=version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise StaleScheduleError(card_id, version)

    logger.info(
        "card reviewed card=%s quality=%d interval=%d reps=%d ease=%.2f",
        card_id, quality, updated.interval, updated.repetitions, updated.ease_factor,
    )
    refreshed = await get_schedule(db, card_id)
    if refreshed is None:
        raise ScheduleNotFoundError(card_id)
    return refreshed


async def due_cards(
    db: AsyncSession,
    user_id: str,
    today: date | None = None,
    limit: int | None = None,
) -> list[CardScheduleRow]:
    """Cards never scheduled or scheduled on/before ``today``. Never-scheduled first."""
    if today is None:
        today = utc_today()
    cutoff = start_of_day(today) + timedelta(days=1)

    stmt = (
        select(CardScheduleRow)
        .where(
            CardScheduleRow.user_id == user_id,
            (CardScheduleRow.next_review.is_(None)) | (CardScheduleRow.next_review < cutoff),
        )
        .order_by(
            CardScheduleRow.next_review.is_not(None),
            CardScheduleRow.next_review.asc(),
            CardScheduleRow.created_at.asc(),
        )
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())
