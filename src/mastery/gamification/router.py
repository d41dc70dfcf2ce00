"""Progress, level and achievement endpoints."""

from __future__ import annotations

from datetime import date, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mastery.db.models import CUMULATIVE_FIELDS
from mastery.dependencies import get_achievement_engine, get_current_user_id, get_db
from mastery.gamification.achievement_service import AchievementEngine
from mastery.gamification.activity import ActivityRecorder
from mastery.gamification.catalog import AchievementDefinition, sort_achievements
from mastery.gamification.checkers import EVENT_KEYS
from mastery.gamification.levels import level_progress, xp_for_level, xp_for_next_level
from mastery.gamification.results import GamificationResult
from mastery.gamification.schemas import (
    AchievementListResponse,
    AchievementResponse,
    AchievementSummary,
    AcknowledgeRequest,
    AcknowledgeResponse,
    ActivityRequest,
    DailyProgressEntry,
    DailyProgressResponse,
    ExamResultRequest,
    GamificationResponse,
    LevelProgressResponse,
    LevelThresholdResponse,
    ProgressResponse,
    UnseenAchievementResponse,
    UnseenAchievementsResponse,
)
from mastery.gamification.xp_service import get_progress
from mastery.progress.day import today as utc_today
from mastery.progress.ledger import daily_range

router = APIRouter(prefix="/api/v1", tags=["Progress"])

MAX_DAILY_RANGE_DAYS = 366
MAX_LEVEL = 10_000


def _summary(definition: AchievementDefinition) -> AchievementSummary:
    return AchievementSummary(
        key=definition.key,
        name=definition.name,
        description=definition.description,
        icon=definition.icon,
        category=definition.category,
        tier=definition.tier,
        xp_reward=definition.xp_reward,
    )


def to_gamification_response(result: GamificationResult) -> GamificationResponse:
    return GamificationResponse(
        xp_gained=result.xp_gained,
        achievements_unlocked=[_summary(a) for a in result.achievements_unlocked],
        leveled_up=result.leveled_up,
        old_level=result.old_level,
        new_level=result.new_level,
        errors=result.errors,
    )


# ── Progress ──


@router.get("/progress", response_model=ProgressResponse)
async def get_my_progress(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),  # noqa: B008
):
    """XP, level progress, streaks and lifetime counters. Zeroes for a new user."""
    progress = await get_progress(db, user_id)
    total_xp = progress.total_xp if progress else 0

    return ProgressResponse(
        user_id=user_id,
        total_xp=total_xp,
        level=progress.level if progress else 1,
        level_progress=LevelProgressResponse(**level_progress(total_xp)),
        current_streak=progress.current_streak if progress else 0,
        longest_streak=progress.longest_streak if progress else 0,
        last_active_date=progress.last_active_date if progress else None,
        current_review_streak=progress.current_review_streak if progress else 0,
        counters={f: getattr(progress, f) if progress else 0 for f in CUMULATIVE_FIELDS},
    )


@router.get("/progress/daily", response_model=DailyProgressResponse)
async def get_daily_progress(
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),  # noqa: B008
):
    """Daily activity rows, oldest first. Defaults to the last 7 days."""
    if end is None:
        end = utc_today()
    if start is None:
        start = end - timedelta(days=6)
    if start > end:
        raise HTTPException(status_code=400, detail="start must not be after end")
    if (end - start).days >= MAX_DAILY_RANGE_DAYS:
        raise HTTPException(status_code=400, detail=f"Range limited to {MAX_DAILY_RANGE_DAYS} days")

    rows = await daily_range(db, user_id, start, end)
    return DailyProgressResponse(
        start=start,
        end=end,
        days=[DailyProgressEntry.model_validate(r) for r in rows],
    )


@router.get("/levels/{level}", response_model=LevelThresholdResponse)
async def get_level_threshold(level: int):
    """Total XP at which ``level`` starts."""
    if level < 1 or level > MAX_LEVEL:
        raise HTTPException(status_code=404, detail="Level not found")
    return LevelThresholdResponse(
        level=level,
        xp_required=xp_for_level(level),
        next_level_xp=xp_for_next_level(level),
    )


# ── Achievements ──


@router.get("/achievements", response_model=AchievementListResponse)
async def list_achievements(
    user_id: str = Depends(get_current_user_id),
    engine: AchievementEngine = Depends(get_achievement_engine),  # noqa: B008
):
    """Whole catalog with the caller's unlock state."""
    unlocked = {ua.achievement_key: ua.unlocked_at for ua in await engine.unlocked(user_id)}

    items = [
        AchievementResponse(
            **_summary(d).model_dump(),
            requirement=d.requirement,
            unlocked=d.key in unlocked,
            unlocked_at=unlocked.get(d.key),
        )
        for d in sort_achievements(engine.catalog)
    ]
    return AchievementListResponse(
        achievements=items,
        total_available=len(engine.catalog),
        total_unlocked=sum(1 for i in items if i.unlocked),
    )


@router.get("/achievements/unseen", response_model=UnseenAchievementsResponse)
async def list_unseen_achievements(
    user_id: str = Depends(get_current_user_id),
    engine: AchievementEngine = Depends(get_achievement_engine),  # noqa: B008
):
    """Unlocks not yet acknowledged, for the celebration popup."""
    items = []
    for ua in await engine.unseen(user_id):
        definition = engine.catalog.get(ua.achievement_key)
        if definition is None:
            continue
        items.append(UnseenAchievementResponse(**_summary(definition).model_dump(), unlocked_at=ua.unlocked_at))
    return UnseenAchievementsResponse(achievements=items)


@router.post("/achievements/unseen/ack", response_model=AcknowledgeResponse)
async def acknowledge_achievements(
    body: AcknowledgeRequest,
    user_id: str = Depends(get_current_user_id),
    engine: AchievementEngine = Depends(get_achievement_engine),  # noqa: B008
):
    """Mark unlocks as seen. No ``keys`` acknowledges all of them."""
    count = await engine.mark_seen(user_id, body.keys)
    await engine.db.commit()
    return AcknowledgeResponse(acknowledged=count)


# ── Activity ──


@router.post("/activity", response_model=GamificationResponse)
async def record_activity(
    body: ActivityRequest,
    user_id: str = Depends(get_current_user_id),
    engine: AchievementEngine = Depends(get_achievement_engine),  # noqa: B008
):
    """Record a user action: counters, XP, streak and achievement checks."""
    result = await ActivityRecorder(engine).record(
        user_id,
        body.action,
        body.amount,
        account_created=body.account_created,
        link_count=body.link_count,
        completed_priorities=body.completed_priorities,
    )
    await engine.db.commit()
    return to_gamification_response(result)


@router.post("/exams/results", response_model=GamificationResponse)
async def record_exam_result(
    body: ExamResultRequest,
    user_id: str = Depends(get_current_user_id),
    engine: AchievementEngine = Depends(get_achievement_engine),  # noqa: B008
):
    """A finished exam attempt: completion XP, perfect-score bonus and exam achievements."""
    result = await ActivityRecorder(engine).record_exam(
        user_id,
        body.score,
        question_types=body.question_types,
        questions_answered=body.questions_answered,
    )
    await engine.db.commit()
    return to_gamification_response(result)


@router.post("/events/{key}", response_model=GamificationResponse)
async def record_account_event(
    key: str,
    user_id: str = Depends(get_current_user_id),
    engine: AchievementEngine = Depends(get_achievement_engine),  # noqa: B008
):
    """One-off account events: ``welcome``, ``avatar-upload``, ``complete-profile``."""
    if key not in EVENT_KEYS:
        raise HTTPException(status_code=404, detail="Unknown event")
    result = await ActivityRecorder(engine).record_event(user_id, key)
    await engine.db.commit()
    return to_gamification_response(result)
