"""Level computation.

level = floor(sqrt(total_xp / 100)) + 1, so level L starts at (L-1)^2 * 100 XP.
These values MUST match the frontend progress bar.
"""

from __future__ import annotations

import math

XP_PER_LEVEL_UNIT = 100


def compute_level(total_xp: int) -> int:
    """Level for a total XP amount. Monotonic non-decreasing; negative XP is level 1."""
    if total_xp <= 0:
        return 1
    # isqrt keeps exact boundaries (e.g. 2500 XP -> level 6) free of float error
    return math.isqrt(total_xp // XP_PER_LEVEL_UNIT) + 1


def xp_for_level(level: int) -> int:
    """Total XP at which ``level`` is reached."""
    if level <= 1:
        return 0
    return (level - 1) ** 2 * XP_PER_LEVEL_UNIT


def xp_for_next_level(current_level: int) -> int:
    return xp_for_level(current_level + 1)


def level_progress(total_xp: int) -> dict:
    """Progress toward the next level, for display."""
    level = compute_level(total_xp)
    current_level_xp = xp_for_level(level)
    next_level_xp = xp_for_next_level(level)
    progress_xp = max(total_xp, 0) - current_level_xp
    required = next_level_xp - current_level_xp

    return {
        "level": level,
        "current_level_xp": current_level_xp,
        "next_level_xp": next_level_xp,
        "progress_xp": progress_xp,
        "progress_percentage": (progress_xp * 100) // required,
    }
