"""Explicit success/failure values for best-effort side effects.

Progress, XP and streak writes must never break the caller's primary action.
Instead of each caller wrapping them in try/except with its own logging, the
guarded operations return an ``Outcome`` and the caller decides whether to
surface, retry or ignore the failure.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    value: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None) -> Outcome[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: str) -> Outcome[T]:
        return cls(error=error)


async def guarded(
    db: AsyncSession,
    operation: str,
    fn: Callable[[], Awaitable[T]],
) -> Outcome[T]:
    """Run ``fn`` inside a SAVEPOINT and turn storage errors into a failed Outcome.

    Only the savepoint is rolled back on failure, so the caller's outer
    transaction (its primary action) stays intact and committable.
    Non-storage exceptions are programming errors and propagate.
    """
    try:
        async with db.begin_nested():
            value = await fn()
    except SQLAlchemyError as exc:
        logger.warning("%s failed (degraded, non-fatal): %s", operation, exc, exc_info=True)
        return Outcome.failure(f"{operation}: {exc.__class__.__name__}")
    return Outcome.success(value)
