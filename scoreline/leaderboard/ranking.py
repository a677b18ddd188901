"""
Pure ranking rules for league standings.

Sort order is total points, then exact scores, then correct results (desc),
with user id as a final stable key. Rank uses competition ranking on the
(total points, exact scores) pair: ties share a rank and the next distinct
entry takes its 1-based position (1, 2, 2, 4).
"""

from dataclasses import dataclass
from typing import Iterable


@dataclass
class Standing:
    user_id: str
    total_points: int = 0
    exact_scores: int = 0
    correct_results: int = 0
    gameweeks_played: int = 0
    predictions_made: int = 0
    rank: int = 0

    @property
    def rank_key(self) -> tuple[int, int]:
        return self.total_points, self.exact_scores


def sort_key(standing: Standing) -> tuple:
    return (
        -standing.total_points,
        -standing.exact_scores,
        -standing.correct_results,
        standing.user_id,
    )


def rank_standings(standings: Iterable[Standing]) -> list[Standing]:
    """Sort standings and assign competition ranks in place."""
    ordered = sorted(standings, key=sort_key)
    previous = None
    rank = 0
    for position, standing in enumerate(ordered, start=1):
        if standing.rank_key != previous:
            rank = position
            previous = standing.rank_key
        standing.rank = rank
    return ordered


def is_ahead(other: tuple[int, int], mine: tuple[int, int]) -> bool:
    """Strictly higher (points, exact) pair."""
    return other[0] > mine[0] or (other[0] == mine[0] and other[1] > mine[1])


def count_strictly_ahead(standings: Iterable[Standing], total_points: int, exact_scores: int) -> int:
    """Members outranking this (points, exact) pair; rank is this plus one."""
    mine = (total_points, exact_scores)
    return sum(1 for s in standings if is_ahead(s.rank_key, mine))
