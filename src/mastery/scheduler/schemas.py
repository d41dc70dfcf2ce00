"""Pydantic models for card scheduling endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from mastery.gamification.schemas import GamificationResponse
from mastery.scheduler.sm2 import SimpleRating


class ReviewRequest(BaseModel):
    """Either a 0-5 ``quality`` or a four-button ``rating``, not both."""

    quality: int | None = None
    rating: SimpleRating | None = None
    expected_version: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _one_grade(self) -> ReviewRequest:
        if (self.quality is None) == (self.rating is None):
            raise ValueError("Provide exactly one of quality or rating")
        return self


class CardStatistics(BaseModel):
    stage: str
    difficulty: int
    review_count: int
    current_interval: int
    next_review_in: str
    is_due: bool
    last_reviewed: datetime | None


class ScheduleResponse(BaseModel):
    card_id: str
    ease_factor: float
    interval: int
    repetitions: int
    last_reviewed: datetime | None
    next_review: datetime | None
    version: int
    stats: CardStatistics


class ReviewResponse(BaseModel):
    schedule: ScheduleResponse
    quality: int
    gamification: GamificationResponse


class DueCardsResponse(BaseModel):
    cards: list[ScheduleResponse]
    count: int
