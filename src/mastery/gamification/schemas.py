"""Pydantic request/response models for progress, level and achievement endpoints."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


# --- Progress ---


class LevelProgressResponse(BaseModel):
    level: int
    current_level_xp: int
    next_level_xp: int
    progress_xp: int
    progress_percentage: int


class ProgressResponse(BaseModel):
    user_id: str
    total_xp: int
    level: int
    level_progress: LevelProgressResponse
    current_streak: int
    longest_streak: int
    last_active_date: date | None
    current_review_streak: int
    counters: dict[str, int]


class DailyProgressEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day: date
    tasks_completed: int
    cards_reviewed: int
    notes_created: int
    notes_updated: int
    focus_minutes: int
    exams_completed: int
    questions_created: int
    questions_answered: int


class DailyProgressResponse(BaseModel):
    start: date
    end: date
    days: list[DailyProgressEntry]


class LevelThresholdResponse(BaseModel):
    level: int
    xp_required: int
    next_level_xp: int


# --- Achievements ---


class AchievementSummary(BaseModel):
    key: str
    name: str
    description: str
    icon: str
    category: str
    tier: str
    xp_reward: int


class AchievementResponse(AchievementSummary):
    requirement: int | None = None
    unlocked: bool = False
    unlocked_at: datetime | None = None


class AchievementListResponse(BaseModel):
    achievements: list[AchievementResponse]
    total_available: int
    total_unlocked: int


class UnseenAchievementResponse(AchievementSummary):
    unlocked_at: datetime


class UnseenAchievementsResponse(BaseModel):
    achievements: list[UnseenAchievementResponse]


class AcknowledgeRequest(BaseModel):
    keys: list[str] | None = None


class AcknowledgeResponse(BaseModel):
    acknowledged: int


# --- Activity ---


MAX_ACTIVITY_AMOUNT = 10_000


class ActivityRequest(BaseModel):
    """One user action. The optional fields feed achievements that need caller-side facts."""

    action: str
    amount: int = Field(default=1, ge=0, le=MAX_ACTIVITY_AMOUNT)
    account_created: datetime | None = None
    link_count: int | None = Field(default=None, ge=0)
    completed_priorities: list[str | int] | None = None


class ExamResultRequest(BaseModel):
    score: float = Field(ge=0, le=100)
    questions_answered: int = Field(default=0, ge=0, le=MAX_ACTIVITY_AMOUNT)
    question_types: list[str] = []


class GamificationResponse(BaseModel):
    xp_gained: int
    achievements_unlocked: list[AchievementSummary]
    leveled_up: bool
    old_level: int | None
    new_level: int | None
    errors: list[str] = []
