"""Level thresholds and computation.

A user's level is a pure function of how many quizzes they have completed.
These bands MUST match the mobile and web clients.
"""

from __future__ import annotations

MAX_LEVEL = 10

# (level, min_quizzes, max_quizzes) inclusive; the last band is open-ended.
LEVEL_THRESHOLDS: list[tuple[int, int, int | None]] = [
    (1, 0, 5),
    (2, 6, 12),
    (3, 13, 20),
    (4, 21, 30),
    (5, 31, 45),
    (6, 46, 60),
    (7, 61, 80),
    (8, 81, 100),
    (9, 101, 125),
    (10, 126, None),
]


def calculate_level(total_quizzes_answered: int) -> int:
    """Map a completed-quiz count to a level in 1..10.

    Raises ValueError for negative counts.
    """
    if total_quizzes_answered < 0:
        msg = f"total_quizzes_answered must be >= 0, got {total_quizzes_answered}"
        raise ValueError(msg)

    for level, _low, high in LEVEL_THRESHOLDS:
        if high is None or total_quizzes_answered <= high:
            return level
    return MAX_LEVEL


def level_progress(total_quizzes_answered: int) -> dict:
    """Level plus progress towards the next band."""
    level = calculate_level(total_quizzes_answered)
    _, low, high = LEVEL_THRESHOLDS[level - 1]

    if high is None:
        return {
            "level": level,
            "next_level": level,
            "quizzes_into_level": total_quizzes_answered - low,
            "quizzes_for_level": 0,
            "quizzes_to_next_level": 0,
        }

    band = high - low + 1
    into = total_quizzes_answered - low
    return {
        "level": level,
        "next_level": level + 1,
        "quizzes_into_level": into,
        "quizzes_for_level": band,
        "quizzes_to_next_level": band - into,
    }
