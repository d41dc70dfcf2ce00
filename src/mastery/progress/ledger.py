"""Progress ledger: daily and cumulative counters.

Every write is a single atomic statement (INSERT ... ON CONFLICT DO UPDATE
SET col = col + n, or a clamped UPDATE), never read-compute-write, so
concurrent first activities on the same day cannot lose an increment and an
undo racing an increment serializes on the same row lock.

The public functions are best-effort side effects: they run in a savepoint
and return an ``Outcome`` instead of raising storage errors. Increments are
NOT idempotent; a caller retrying after an ambiguous failure must check
whether the increment landed first.
"""

from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mastery.db.dialect import upsert_insert
from mastery.db.models import CUMULATIVE_FIELDS, DAILY_METRICS, DailyProgress, UserProgress
from mastery.outcome import Outcome, guarded
from mastery.progress.day import day_floor, today as utc_today, utc_now

logger = logging.getLogger(__name__)


def _check_amount(amount: int) -> None:
    if amount < 0:
        msg = f"amount must be >= 0, got {amount}"
        raise ValueError(msg)


def _check_metric(metric: str) -> None:
    if metric not in DAILY_METRICS:
        msg = f"Unknown daily metric: {metric!r}"
        raise ValueError(msg)


def _check_field(field: str) -> None:
    if field not in CUMULATIVE_FIELDS:
        msg = f"Unknown cumulative field: {field!r}"
        raise ValueError(msg)


def _resolve_day(day: date | datetime | None) -> date:
    return utc_today() if day is None else day_floor(day)


# ---------------------------------------------------------------------------
# Raw statements (raise on storage errors; run inside the caller's transaction)
# ---------------------------------------------------------------------------


async def add_daily(db: AsyncSession, user_id: str, metric: str, amount: int, day: date) -> int:
    """Create-if-absent and increment one daily metric. Returns the new value."""
    column = getattr(DailyProgress, metric)
    stmt = upsert_insert(db, DailyProgress).values(
        user_id=user_id, day=day, updated_at=utc_now(), **{metric: amount}
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "day"],
        set_={metric: column + amount, "updated_at": utc_now()},
    ).returning(column)
    result = await db.execute(stmt)
    return result.scalar_one()


async def subtract_daily(db: AsyncSession, user_id: str, metric: str, amount: int, day: date) -> int | None:
    """Clamped decrement of one daily metric. Returns the new value, None if no row."""
    column = getattr(DailyProgress, metric)
    result = await db.execute(
        update(DailyProgress)
        .where(DailyProgress.user_id == user_id, DailyProgress.day == day)
        .values({metric: case((column > amount, column - amount), else_=0), "updated_at": utc_now()})
        .returning(column)
        .execution_options(synchronize_session=False)
    )
    return result.scalar_one_or_none()


async def add_cumulative(db: AsyncSession, user_id: str, field: str, amount: int) -> int:
    """Create-if-absent and increment one cumulative counter. Returns the new value."""
    column = getattr(UserProgress, field)
    stmt = upsert_insert(db, UserProgress).values(
        user_id=user_id, updated_at=utc_now(), **{field: amount}
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id"],
        set_={field: column + amount, "updated_at": utc_now()},
    ).returning(column)
    result = await db.execute(stmt)
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Best-effort public API
# ---------------------------------------------------------------------------


async def increment_daily(
    db: AsyncSession,
    user_id: str,
    metric: str,
    amount: int = 1,
    day: date | datetime | None = None,
) -> Outcome[int]:
    """Increment today's (or ``day``'s) counter for ``metric``."""
    _check_metric(metric)
    _check_amount(amount)
    target = _resolve_day(day)
    if amount == 0:
        return Outcome.success(None)
    return await guarded(
        db, "increment_daily", lambda: add_daily(db, user_id, metric, amount, target)
    )


async def decrement_daily(
    db: AsyncSession,
    user_id: str,
    metric: str,
    amount: int = 1,
    day: date | datetime | None = None,
) -> Outcome[int]:
    """Undo an explicit reversible action. Clamped at zero; a missing row is a no-op.

    Never call this because a record was deleted; deletion keeps earned progress.
    """
    _check_metric(metric)
    _check_amount(amount)
    target = _resolve_day(day)
    if amount == 0:
        return Outcome.success(None)
    return await guarded(
        db, "decrement_daily", lambda: subtract_daily(db, user_id, metric, amount, target)
    )


async def increment_cumulative(
    db: AsyncSession,
    user_id: str,
    field: str,
    amount: int = 1,
) -> Outcome[int]:
    """Increment a monotonic lifetime counter on the user's progress row."""
    _check_field(field)
    _check_amount(amount)
    if amount == 0:
        return Outcome.success(None)
    return await guarded(
        db, "increment_cumulative", lambda: add_cumulative(db, user_id, field, amount)
    )


async def record_review_result(
    db: AsyncSession,
    user_id: str,
    correct: bool,
    count: int = 1,
) -> Outcome[int]:
    """Count ``count`` flashcard reviews and extend or reset the consecutive-correct run.

    Returns the new consecutive-correct count.
    """
    if count < 0:
        msg = f"count must be >= 0, got {count}"
        raise ValueError(msg)

    async def _write() -> int:
        streak = UserProgress.current_review_streak
        stmt = upsert_insert(db, UserProgress).values(
            user_id=user_id,
            total_cards_reviewed=count,
            current_review_streak=count if correct else 0,
            updated_at=utc_now(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id"],
            set_={
                "total_cards_reviewed": UserProgress.total_cards_reviewed + count,
                "current_review_streak": streak + count if correct else 0,
                "updated_at": utc_now(),
            },
        ).returning(streak)
        result = await db.execute(stmt)
        return result.scalar_one()

    return await guarded(db, "record_review_result", _write)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_daily(db: AsyncSession, user_id: str, day: date | datetime | None = None) -> DailyProgress | None:
    result = await db.execute(
        select(DailyProgress)
        .where(DailyProgress.user_id == user_id, DailyProgress.day == _resolve_day(day))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def daily_range(db: AsyncSession, user_id: str, start: date, end: date) -> list[DailyProgress]:
    """Daily rows between ``start`` and ``end`` inclusive, oldest first. Days without activity are absent."""
    result = await db.execute(
        select(DailyProgress)
        .where(
            DailyProgress.user_id == user_id,
            DailyProgress.day >= start,
            DailyProgress.day <= end,
        )
        .order_by(DailyProgress.day.asc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())
