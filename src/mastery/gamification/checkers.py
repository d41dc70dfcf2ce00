"""Achievement predicates: decide who qualifies, then hand off to the engine.

Counter-backed checks read only monotonic counters, so deleting the notes,
decks or folders behind an achievement never makes it look unearned.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime

from mastery.gamification.achievement_service import AchievementEngine
from mastery.gamification.catalog import AchievementDefinition
from mastery.gamification.xp_service import get_progress
from mastery.progress.day import day_floor, today as utc_today, utc_now
from mastery.progress.ledger import get_daily

# Cumulative counters that show a main feature has been used.
MAIN_FEATURE_COUNTERS = (
    "total_notes_created",
    "total_tasks_created",
    "total_decks_created",
    "total_exams_created",
    "total_study_minutes",
)
REQUIRED_QUESTION_TYPES = frozenset({"multiple_choice", "select_all", "true_false"})
FIRST_DAY_METRICS = ("notes_created", "tasks_completed", "cards_reviewed", "exams_completed")

POWER_USER_LEVEL = 20
POWER_USER_TASKS = 100
PERFECT_SCORE = 100
EVENT_KEYS = frozenset({"welcome", "avatar-upload", "complete-profile"})

# Unlocking grants XP, which can raise the level and qualify a level achievement.
_MAX_COUNTER_PASSES = 5


async def _unlock_all(
    engine: AchievementEngine,
    user_id: str,
    candidates: Iterable[AchievementDefinition],
    already: set[str] | None = None,
) -> list[AchievementDefinition]:
    if already is None:
        already = await engine.unlocked_keys(user_id)
    unlocked: list[AchievementDefinition] = []
    for definition in candidates:
        if definition.key in already:
            continue
        result = await engine.check_and_unlock(user_id, definition.key)
        if result.unlocked:
            unlocked.append(definition)
            already.add(definition.key)
    return unlocked


async def _unlock_key(engine: AchievementEngine, user_id: str, key: str) -> list[AchievementDefinition]:
    result = await engine.check_and_unlock(user_id, key)
    return [result.achievement] if result.unlocked and result.achievement else []


async def check_threshold(
    engine: AchievementEngine,
    user_id: str,
    counter: str,
    value: int,
    scope: str = "cumulative",
) -> list[AchievementDefinition]:
    """Unlock the achievements backed by one counter that ``value`` satisfies."""
    return await _unlock_all(engine, user_id, engine.catalog.satisfied(counter, value, scope=scope))


async def check_counter_achievements(engine: AchievementEngine, user_id: str) -> list[AchievementDefinition]:
    """Unlock every cumulative counter-backed achievement whose threshold is met."""
    counters = sorted(engine.catalog.counters("cumulative"))
    already = await engine.unlocked_keys(user_id)
    unlocked: list[AchievementDefinition] = []

    for _ in range(_MAX_COUNTER_PASSES):
        progress = await get_progress(engine.db, user_id)
        if progress is None:
            break
        candidates = [
            definition
            for counter in counters
            for definition in engine.catalog.satisfied(counter, getattr(progress, counter))
        ]
        newly = await _unlock_all(engine, user_id, candidates, already)
        unlocked += newly
        if not newly:
            break
    return unlocked


async def check_daily_challenges(
    engine: AchievementEngine,
    user_id: str,
    day: date | datetime | None = None,
) -> list[AchievementDefinition]:
    """Unlock per-day challenges (productivity-sprint, speed-learner, ...) from the day's counters."""
    daily = await get_daily(engine.db, user_id, day)
    if daily is None:
        return []
    candidates = [
        definition
        for counter in sorted(engine.catalog.counters("daily"))
        for definition in engine.catalog.satisfied(counter, getattr(daily, counter), scope="daily")
    ]
    return await _unlock_all(engine, user_id, candidates)


async def check_compound_achievements(engine: AchievementEngine, user_id: str) -> list[AchievementDefinition]:
    progress = await get_progress(engine.db, user_id)
    if progress is None:
        return []

    keys = []
    if all(getattr(progress, counter) > 0 for counter in MAIN_FEATURE_COUNTERS):
        keys.append("well-rounded")
    if progress.level >= POWER_USER_LEVEL and progress.total_tasks_completed >= POWER_USER_TASKS:
        keys.append("power-user")

    return await _unlock_all(engine, user_id, (engine.catalog.get(k) for k in keys if k in engine.catalog))


async def check_first_day(
    engine: AchievementEngine,
    user_id: str,
    account_created: date | datetime,
    now: datetime | None = None,
) -> list[AchievementDefinition]:
    """first-day: 5+ actions on the UTC day the account was created.

    Focus time counts as one action however long it was.
    """
    today = utc_today(now)
    if day_floor(account_created) != today:
        return []

    definition = engine.catalog.get("first-day")
    daily = await get_daily(engine.db, user_id, today)
    if definition is None or daily is None:
        return []

    actions = sum(getattr(daily, metric) for metric in FIRST_DAY_METRICS)
    actions += 1 if daily.focus_minutes > 0 else 0
    if actions < (definition.requirement or 0):
        return []
    return await _unlock_key(engine, user_id, "first-day")


async def check_time_of_day(
    engine: AchievementEngine,
    user_id: str,
    at: datetime | None = None,
) -> list[AchievementDefinition]:
    """night-owl for activity at 23:xx, early-riser for 00:00-05:59, in the wall-clock time of ``at``."""
    if at is None:
        at = utc_now()
    hour = at.hour
    if hour == 23:
        return await _unlock_key(engine, user_id, "night-owl")
    if hour < 6:
        return await _unlock_key(engine, user_id, "early-riser")
    return []


async def check_exam_result(engine: AchievementEngine, user_id: str, score: float) -> list[AchievementDefinition]:
    if score >= PERFECT_SCORE:
        return await _unlock_key(engine, user_id, "perfect-exam")
    return []


async def check_question_variety(
    engine: AchievementEngine,
    user_id: str,
    question_types: Iterable[str],
) -> list[AchievementDefinition]:
    """variety-expert when one exam holds every question type."""
    if REQUIRED_QUESTION_TYPES <= set(question_types):
        return await _unlock_key(engine, user_id, "variety-expert")
    return []


async def check_priority_coverage(
    engine: AchievementEngine,
    user_id: str,
    completed_priorities: Iterable[object],
) -> list[AchievementDefinition]:
    definition = engine.catalog.get("priority-master")
    if definition is None:
        return []
    if len(set(completed_priorities)) >= (definition.requirement or 0):
        return await _unlock_key(engine, user_id, "priority-master")
    return []


async def check_note_links(engine: AchievementEngine, user_id: str, link_count: int) -> list[AchievementDefinition]:
    """knowledge-connector: a single note currently holds enough outgoing links."""
    definition = engine.catalog.get("knowledge-connector")
    if definition is None:
        return []
    if link_count >= (definition.requirement or 0):
        return await _unlock_key(engine, user_id, "knowledge-connector")
    return []


async def check_event(engine: AchievementEngine, user_id: str, key: str) -> list[AchievementDefinition]:
    """Unlock an achievement earned by a one-off account event."""
    if key not in EVENT_KEYS:
        msg = f"Not an event achievement: {key!r}"
        raise ValueError(msg)
    return await _unlock_key(engine, user_id, key)
