"""ORM models for the progress & mastery engine.

user_id columns hold the auth collaborator's opaque user id; this service
owns no users table.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from mastery.db.base import Base

# Cumulative counters on user_progress. Never decremented when the source
# entity is deleted.
CUMULATIVE_FIELDS: tuple[str, ...] = (
    "total_notes_created",
    "total_folders_created",
    "total_tags_used",
    "total_links_created",
    "total_tasks_created",
    "total_tasks_completed",
    "early_task_completions",
    "total_decks_created",
    "total_cards_reviewed",
    "total_exams_created",
    "total_exams_completed",
    "total_questions_created",
    "total_study_minutes",
    "total_bugs_reported",
)

DAILY_METRICS: tuple[str, ...] = (
    "tasks_completed",
    "cards_reviewed",
    "notes_created",
    "notes_updated",
    "focus_minutes",
    "exams_completed",
    "questions_created",
    "questions_answered",
)


def _counter() -> Mapped[int]:
    return mapped_column(Integer, nullable=False, default=0, server_default="0")


# ---------------------------------------------------------------------------
# Spaced repetition
# ---------------------------------------------------------------------------


class CardSchedule(Base):
    """SM-2 state for one learning item. `version` guards concurrent write-back."""

    __tablename__ = "card_schedules"
    __table_args__ = (
        Index("idx_card_schedules_user_next", "user_id", "next_review"),
    )

    card_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    ease_factor: Mapped[float] = mapped_column(Float, nullable=False, default=2.5, server_default="2.5")
    interval: Mapped[int] = _counter()
    repetitions: Mapped[int] = _counter()
    last_reviewed: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    next_review: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = _counter()
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


class UserProgress(Base):
    """Denormalized per-user progress: XP, level, streaks and cumulative counters."""

    __tablename__ = "user_progress"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    total_xp: Mapped[int] = _counter()
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    current_streak: Mapped[int] = _counter()
    longest_streak: Mapped[int] = _counter()
    last_active_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    total_notes_created: Mapped[int] = _counter()
    total_folders_created: Mapped[int] = _counter()
    total_tags_used: Mapped[int] = _counter()
    total_links_created: Mapped[int] = _counter()
    total_tasks_created: Mapped[int] = _counter()
    total_tasks_completed: Mapped[int] = _counter()
    early_task_completions: Mapped[int] = _counter()
    total_decks_created: Mapped[int] = _counter()
    total_cards_reviewed: Mapped[int] = _counter()
    total_exams_created: Mapped[int] = _counter()
    total_exams_completed: Mapped[int] = _counter()
    total_questions_created: Mapped[int] = _counter()
    total_study_minutes: Mapped[int] = _counter()
    total_bugs_reported: Mapped[int] = _counter()

    # Consecutive correct flashcard reviews; the only counter here that resets.
    current_review_streak: Mapped[int] = _counter()

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class DailyProgress(Base):
    """Per-user, per-UTC-day activity counters."""

    __tablename__ = "daily_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "day", name="uq_daily_progress_user_day"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    day: Mapped[date] = mapped_column(Date, nullable=False)
    tasks_completed: Mapped[int] = _counter()
    cards_reviewed: Mapped[int] = _counter()
    notes_created: Mapped[int] = _counter()
    notes_updated: Mapped[int] = _counter()
    focus_minutes: Mapped[int] = _counter()
    exams_completed: Mapped[int] = _counter()
    questions_created: Mapped[int] = _counter()
    questions_answered: Mapped[int] = _counter()
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------


class AchievementDefinitionRow(Base):
    """Storage mirror of the static catalog, written only by the startup sync."""

    __tablename__ = "achievement_definitions"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    icon: Mapped[str] = mapped_column(String(16), nullable=False, server_default="")
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    tier: Mapped[str] = mapped_column(String(16), nullable=False)
    requirement: Mapped[int | None] = mapped_column(Integer, nullable=True)
    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False)
    counter: Mapped[str | None] = mapped_column(String(64), nullable=True)
    scope: Mapped[str] = mapped_column(String(16), nullable=False, server_default="cumulative")
    permanence: Mapped[str] = mapped_column(String(16), nullable=False, server_default="cumulative")
    catalog_version: Mapped[str] = mapped_column(String(32), nullable=False)


class UserAchievement(Base):
    """Unlocked achievements — UNIQUE(user_id, achievement_key) prevents duplicates."""

    __tablename__ = "user_achievements"
    __table_args__ = (
        UniqueConstraint("user_id", "achievement_key", name="uq_user_achievements_user_key"),
        Index("idx_user_achievements_unseen", "user_id", "seen"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    achievement_key: Mapped[str] = mapped_column(String(64), nullable=False)
    unlocked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    seen: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
