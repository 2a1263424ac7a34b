"""Quiz scoring.

A correct answer is worth 100 points plus a time bonus of up to 50 that
decays linearly to 0 at half the question's time limit. Wrong answers
score 0.
"""

import math

BASE_SCORE = 100
MAX_TIME_BONUS = 50


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 going up (137.5 -> 138)."""
    return math.floor(value + 0.5)


def time_bonus(response_time_seconds: int, time_limit_seconds: int) -> float:
    """Bonus for answering fast: 50 at 0s, 0 from ``time_limit / 2`` on."""
    if time_limit_seconds <= 0:
        msg = "time_limit_seconds must be positive"
        raise ValueError(msg)
    half_limit = time_limit_seconds / 2
    return max(0.0, MAX_TIME_BONUS - (response_time_seconds / half_limit) * MAX_TIME_BONUS)


def score_answer(
    is_correct: bool, response_time_seconds: int, time_limit_seconds: int
) -> int:
    if not is_correct:
        return 0
    return round_half_up(
        BASE_SCORE + time_bonus(response_time_seconds, time_limit_seconds)
    )
