"""Level thresholds, titles and hunter ranks.

Both are pure functions of the learner's totals and are never persisted.
"""

from __future__ import annotations

LEVEL_THRESHOLDS: list[dict] = [
    {"level": 1, "title": "Rookie", "xp_required": 0, "cumulative": 0},
    {"level": 2, "title": "Apprentice", "xp_required": 100, "cumulative": 100},
    {"level": 3, "title": "Code Cadet", "xp_required": 200, "cumulative": 300},
    {"level": 4, "title": "Problem Solver", "xp_required": 300, "cumulative": 600},
    {"level": 5, "title": "Algorithmist", "xp_required": 400, "cumulative": 1000},
    {"level": 6, "title": "Debugger", "xp_required": 500, "cumulative": 1500},
    {"level": 7, "title": "Engineer", "xp_required": 1000, "cumulative": 2500},
    {"level": 8, "title": "Architect", "xp_required": 1500, "cumulative": 4000},
    {"level": 9, "title": "Expert", "xp_required": 2000, "cumulative": 6000},
    {"level": 10, "title": "Master", "xp_required": 4000, "cumulative": 10000},
    {"level": 15, "title": "Grandmaster", "xp_required": 15000, "cumulative": 25000},
    {"level": 20, "title": "Legend", "xp_required": 25000, "cumulative": 50000},
]

HUNTER_RANKS: list[dict] = [
    {"code": "E", "label": "E-RANK", "index": 0, "min_points": 0},
    {"code": "C", "label": "C-RANK", "index": 1, "min_points": 1000},
    {"code": "B", "label": "B-RANK", "index": 2, "min_points": 2500},
    {"code": "A", "label": "A-RANK", "index": 3, "min_points": 5000},
    {"code": "S", "label": "S-RANK", "index": 4, "min_points": 10000},
]


def compute_level(total_xp: int) -> dict:
    """Compute level info from total XP."""
    current = LEVEL_THRESHOLDS[0]
    next_level = LEVEL_THRESHOLDS[1]

    for i in range(len(LEVEL_THRESHOLDS) - 1):
        if total_xp >= LEVEL_THRESHOLDS[i]["cumulative"]:
            current = LEVEL_THRESHOLDS[i]
            next_level = LEVEL_THRESHOLDS[i + 1]

    # Handle XP beyond max level
    if total_xp >= LEVEL_THRESHOLDS[-1]["cumulative"]:
        current = LEVEL_THRESHOLDS[-1]
        next_level = LEVEL_THRESHOLDS[-1]

    xp_into_level = total_xp - current["cumulative"]
    xp_for_level = next_level["cumulative"] - current["cumulative"]

    # At max level, avoid division by zero
    if xp_for_level == 0:
        xp_for_level = 1

    return {
        "level": current["level"],
        "title": current["title"],
        "xp_into_level": xp_into_level,
        "xp_for_level": xp_for_level,
        "next_level": next_level["level"],
        "next_title": next_level["title"],
    }


def compute_hunter_rank(total_points: int | None) -> dict:
    """Hunter rank (E..S) for a points total."""
    value = int(total_points or 0)
    for rank in reversed(HUNTER_RANKS):
        if value >= rank["min_points"]:
            return rank
    return HUNTER_RANKS[0]
