"""UTC day-boundary utilities shared by the scheduler, ledger and streaks."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def day_floor(value: datetime | date) -> date:
    """Calendar day of ``value`` in UTC. Naive datetimes are taken as UTC."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def today(now: datetime | None = None) -> date:
    """Get the current UTC calendar day."""
    return day_floor(now if now is not None else utc_now())


def start_of_day(value: datetime | date) -> datetime:
    """Midnight UTC of the day containing ``value``."""
    return datetime.combine(day_floor(value), time.min, tzinfo=timezone.utc)


def add_days(value: datetime | date, days: int) -> datetime:
    """Midnight UTC ``days`` after the day containing ``value``."""
    return start_of_day(value) + timedelta(days=days)


def day_diff(later: datetime | date, earlier: datetime | date) -> int:
    """Whole calendar days between two instants, ignoring time of day."""
    return (day_floor(later) - day_floor(earlier)).days
