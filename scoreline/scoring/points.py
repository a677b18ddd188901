"""Points for a single prediction."""

from enum import Enum
from typing import NamedTuple


class ScoreCategory(str, Enum):
    EXACT = "exact"
    RESULT = "result"
    INCORRECT = "incorrect"


EXACT_SCORE_POINTS = 3
CORRECT_RESULT_POINTS = 1


class ScoreOutcome(NamedTuple):
    points: int
    category: ScoreCategory


def outcome_sign(home: int, away: int) -> int:
    """1 for a home win, -1 for an away win, 0 for a draw."""
    return (home > away) - (home < away)


def score_prediction(
    predicted_home: int,
    predicted_away: int,
    actual_home: int,
    actual_away: int,
) -> ScoreOutcome:
    """
    Exact score: 3 points. Right outcome (home win / draw / away win): 1 point.
    Anything else: 0.
    """
    if predicted_home == actual_home and predicted_away == actual_away:
        return ScoreOutcome(EXACT_SCORE_POINTS, ScoreCategory.EXACT)
    if outcome_sign(predicted_home, predicted_away) == outcome_sign(actual_home, actual_away):
        return ScoreOutcome(CORRECT_RESULT_POINTS, ScoreCategory.RESULT)
    return ScoreOutcome(0, ScoreCategory.INCORRECT)
