"""Prediction scoring."""

from scoreline.scoring.points import ScoreCategory, ScoreOutcome, score_prediction
from scoreline.scoring.service import score_pending_predictions, score_predictions_for_match

__all__ = [
    "ScoreCategory",
    "ScoreOutcome",
    "score_prediction",
    "score_pending_predictions",
    "score_predictions_for_match",
]
