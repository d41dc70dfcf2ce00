"""Aggregated outcome of one user action across XP, achievements and streak."""

from __future__ import annotations

from dataclasses import dataclass, field

from mastery.gamification.catalog import AchievementDefinition
from mastery.gamification.xp_service import XPAward


@dataclass
class GamificationResult:
    xp_gained: int = 0
    achievements_unlocked: list[AchievementDefinition] = field(default_factory=list)
    leveled_up: bool = False
    old_level: int | None = None
    new_level: int | None = None
    errors: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "xp_gained": self.xp_gained,
            "achievements_unlocked": [a.as_dict() for a in self.achievements_unlocked],
            "leveled_up": self.leveled_up,
            "old_level": self.old_level,
            "new_level": self.new_level,
            "errors": list(self.errors),
        }


def add_award(result: GamificationResult, award: XPAward | None) -> GamificationResult:
    """Fold an XP award into ``result``. Keeps the earliest old_level and latest new_level."""
    if award is None or award.xp_gained <= 0:
        return result
    result.xp_gained += award.xp_gained
    if result.old_level is None:
        result.old_level = award.old_level
    result.new_level = award.new_level
    result.leveled_up = result.new_level > result.old_level
    return result


def add_unlocks(result: GamificationResult, unlocked: list[AchievementDefinition]) -> GamificationResult:
    seen = {a.key for a in result.achievements_unlocked}
    for achievement in unlocked:
        if achievement.key not in seen:
            result.achievements_unlocked.append(achievement)
            seen.add(achievement.key)
    return result


def merge_results(*results: GamificationResult) -> GamificationResult:
    merged = GamificationResult()
    for r in results:
        merged.xp_gained += r.xp_gained
        add_unlocks(merged, r.achievements_unlocked)
        if r.old_level is not None and merged.old_level is None:
            merged.old_level = r.old_level
        if r.new_level is not None:
            merged.new_level = r.new_level
        merged.errors.extend(r.errors)
    merged.leveled_up = (
        merged.old_level is not None
        and merged.new_level is not None
        and merged.new_level > merged.old_level
    )
    return merged
