"""SM-2 spaced repetition scheduling.

Quality ratings (0-5):
  0 - total blackout
  1 - incorrect, but the answer seemed easy once shown
  2 - incorrect, the answer seemed hard to recall
  3 - correct, with significant effort
  4 - correct, after some hesitation
  5 - perfect recall

Everything here is pure: given the same card, quality and ``now`` the result
is identical, and the input card is never modified.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, replace
from datetime import date, datetime

from mastery.progress.day import add_days, day_floor, today as utc_today, utc_now

MIN_EASE_FACTOR = 1.3
DEFAULT_EASE_FACTOR = 2.5
PASSING_QUALITY = 3
VALID_QUALITIES = frozenset(range(6))

# Interval (days) at which a card is considered mature
MATURE_INTERVAL_DAYS = 21


class InvalidQualityRating(ValueError):
    """Quality rating outside 0..5. Raised before any state changes."""


@dataclass(frozen=True)
class CardSchedule:
    ease_factor: float = DEFAULT_EASE_FACTOR
    interval: int = 0
    repetitions: int = 0
    last_reviewed: datetime | None = None
    next_review: datetime | None = None


class SimpleRating(str, enum.Enum):
    """Four-button review UI."""

    WRONG = "wrong"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"


# 1 and 4 are only reachable through direct 0-5 input.
RATING_TO_QUALITY: dict[SimpleRating, int] = {
    SimpleRating.WRONG: 0,
    SimpleRating.HARD: 2,
    SimpleRating.GOOD: 3,
    SimpleRating.EASY: 5,
}


def quality_for_rating(rating: SimpleRating | str) -> int:
    """Map a simplified UI rating to the canonical 0-5 scale."""
    try:
        return RATING_TO_QUALITY[SimpleRating(rating)]
    except ValueError:
        raise InvalidQualityRating(f"Unknown rating: {rating!r}") from None


def validate_quality(quality: object) -> int:
    # bool is an int subclass; True must not pass as quality 1
    if isinstance(quality, bool) or not isinstance(quality, int) or quality not in VALID_QUALITIES:
        raise InvalidQualityRating(f"Quality must be an integer 0-5, got {quality!r}")
    return quality


def next_ease_factor(ease_factor: float, quality: int) -> float:
    miss = 5 - quality
    return max(MIN_EASE_FACTOR, ease_factor + (0.1 - miss * (0.08 + miss * 0.02)))


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def review(card: CardSchedule, quality: int, now: datetime | None = None) -> CardSchedule:
    """Apply one review and return the card's new schedule."""
    quality = validate_quality(quality)
    if now is None:
        now = utc_now()

    ease_factor = next_ease_factor(card.ease_factor, quality)

    if quality < PASSING_QUALITY:
        repetitions = 0
        interval = 1
    else:
        repetitions = card.repetitions + 1
        if repetitions == 1:
            interval = 1
        elif repetitions == 2:
            interval = 6
        else:
            interval = _round_half_up(card.interval * ease_factor)

    return replace(
        card,
        ease_factor=ease_factor,
        interval=interval,
        repetitions=repetitions,
        last_reviewed=now,
        next_review=add_days(now, interval),
    )


def is_due_for_review(next_review: datetime | date | None, today: date | None = None) -> bool:
    """True if never scheduled or scheduled for today or earlier (day granularity)."""
    if next_review is None:
        return True
    if today is None:
        today = utc_today()
    return day_floor(next_review) <= today


def interval_description(next_review: datetime | date, today: date | None = None) -> str:
    """Human-readable distance to the next review."""
    if today is None:
        today = utc_today()
    days = (day_floor(next_review) - today).days

    if days <= 0:
        return "Later today"
    if days == 1:
        return "Tomorrow"
    if days < 7:
        return f"In {days} days"
    if days < 30:
        weeks = _round_half_up(days / 7)
        return f"In {weeks} {'week' if weeks == 1 else 'weeks'}"
    if days < 365:
        months = _round_half_up(days / 30)
        return f"In {months} {'month' if months == 1 else 'months'}"
    years = _round_half_up(days / 365)
    return f"In {years} {'year' if years == 1 else 'years'}"


def learning_stage(card: CardSchedule) -> str:
    if card.repetitions == 0:
        return "new"
    if card.repetitions < 3:
        return "learning"
    if card.interval < MATURE_INTERVAL_DAYS:
        return "young"
    return "mature"


def card_statistics(card: CardSchedule, today: date | None = None) -> dict:
    """Summarize a card's learning progress for display."""
    return {
        "stage": learning_stage(card),
        "difficulty": _round_half_up(100 / card.ease_factor),
        "review_count": card.repetitions,
        "current_interval": card.interval,
        "next_review_in": (
            interval_description(card.next_review, today) if card.next_review else "Not scheduled"
        ),
        "is_due": is_due_for_review(card.next_review, today),
        "last_reviewed": card.last_reviewed,
    }
