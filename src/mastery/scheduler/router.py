"""Card scheduling endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mastery.config import get_settings
from mastery.db.models import CardSchedule as CardScheduleRow
from mastery.dependencies import get_achievement_engine, get_current_user_id, get_db
from mastery.gamification.achievement_service import AchievementEngine
from mastery.gamification.activity import ActivityRecorder
from mastery.gamification.router import to_gamification_response
from mastery.scheduler.schemas import CardStatistics, DueCardsResponse, ReviewRequest, ReviewResponse, ScheduleResponse
from mastery.scheduler.service import apply_review, due_cards, ensure_schedule, get_schedule, to_snapshot
from mastery.scheduler.sm2 import PASSING_QUALITY, card_statistics, quality_for_rating, validate_quality

router = APIRouter(prefix="/api/v1/cards", tags=["Review"])

MAX_DUE_LIMIT = 1000


def _to_response(row: CardScheduleRow) -> ScheduleResponse:
    return ScheduleResponse(
        card_id=row.card_id,
        ease_factor=row.ease_factor,
        interval=row.interval,
        repetitions=row.repetitions,
        last_reviewed=row.last_reviewed,
        next_review=row.next_review,
        version=row.version,
        stats=CardStatistics(**card_statistics(to_snapshot(row))),
    )


async def _owned_schedule(db: AsyncSession, card_id: str, user_id: str) -> CardScheduleRow:
    row = await get_schedule(db, card_id)
    if row is None or row.user_id != user_id:
        raise HTTPException(status_code=404, detail="Card not found")
    return row


@router.get("/due", response_model=DueCardsResponse)
async def list_due_cards(
    limit: int | None = Query(default=None, ge=1, le=MAX_DUE_LIMIT),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),  # noqa: B008
):
    """Cards due today or earlier, never-reviewed first."""
    if limit is None:
        limit = get_settings().due_cards_default_limit
    rows = await due_cards(db, user_id, limit=limit)
    return DueCardsResponse(cards=[_to_response(r) for r in rows], count=len(rows))


@router.post("/{card_id}", response_model=ScheduleResponse)
async def create_schedule(
    card_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),  # noqa: B008
):
    """Start scheduling a card (idempotent)."""
    row = await ensure_schedule(db, user_id, card_id)
    if row.user_id != user_id:
        raise HTTPException(status_code=404, detail="Card not found")
    await db.commit()
    return _to_response(row)


@router.get("/{card_id}", response_model=ScheduleResponse)
async def read_schedule(
    card_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),  # noqa: B008
):
    return _to_response(await _owned_schedule(db, card_id, user_id))


@router.post("/{card_id}/review", response_model=ReviewResponse)
async def review_card(
    card_id: str,
    body: ReviewRequest,
    user_id: str = Depends(get_current_user_id),
    engine: AchievementEngine = Depends(get_achievement_engine),  # noqa: B008
):
    """Grade a review, reschedule the card and credit the review to the user's progress."""
    quality = validate_quality(body.quality) if body.rating is None else quality_for_rating(body.rating)
    db = engine.db

    await _owned_schedule(db, card_id, user_id)
    row = await apply_review(db, card_id, quality, expected_version=body.expected_version)

    action = "card_reviewed" if quality >= PASSING_QUALITY else "card_failed"
    result = await ActivityRecorder(engine).record(user_id, action)
    await db.commit()

    return ReviewResponse(
        schedule=_to_response(row),
        quality=quality,
        gamification=to_gamification_response(result),
    )
