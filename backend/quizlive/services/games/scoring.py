"""Points for a single answer: speed scoring, streak bonus, warmup exemption.

Pure functions only; the coordinator feeds in the participant's streak as
it was before this answer and persists what comes back.
"""

import math
from typing import NamedTuple

# Slowest correct answer still earns half the base points.
MIN_POINTS_RATIO = 0.5
STREAK_BONUS_PER_CORRECT = 100
MAX_STREAK_BONUS = 500


class ScoreResult(NamedTuple):
    points: int
    new_streak: int
    time_bonus: int
    streak_bonus: int
    is_warmup: bool = False


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def streak_bonus_for(current_streak: int) -> int:
    return min(max(current_streak, 0) * STREAK_BONUS_PER_CORRECT, MAX_STREAK_BONUS)


def score(
    base_points: int,
    time_limit_ms: int,
    response_time_ms: int,
    speed_scoring: bool,
    current_streak: int,
    is_correct: bool,
    is_warmup: bool = False,
) -> ScoreResult:
    """Score one response.

    Warmups never touch score or streak. A wrong or missing answer resets
    the streak. A correct answer earns the base points (scaled between 50%
    and 100% by answer speed when speed scoring is on) plus a streak bonus
    computed from the streak before this answer.
    """
    if is_warmup:
        return ScoreResult(0, current_streak, 0, 0, True)

    if not is_correct:
        return ScoreResult(0, 0, 0, 0)

    points = base_points
    time_bonus = 0
    if speed_scoring:
        if time_limit_ms > 0:
            time_ratio = min(1.0, max(0.0, 1 - response_time_ms / time_limit_ms))
        else:
            time_ratio = 0.0
        time_factor = MIN_POINTS_RATIO + (1 - MIN_POINTS_RATIO) * time_ratio
        points = round_half_up(base_points * time_factor)
        time_bonus = points - round_half_up(base_points * MIN_POINTS_RATIO)

    streak_bonus = streak_bonus_for(current_streak)
    return ScoreResult(points + streak_bonus, current_streak + 1, time_bonus, streak_bonus)
