"""League standings."""

from scoreline.leaderboard.service import (
    LeagueMemberNotFoundError,
    LeagueNotFoundError,
    NotFoundError,
    get_gameweek_leaderboard,
    get_leaderboard,
    get_user_rank,
)

__all__ = [
    "LeagueMemberNotFoundError",
    "LeagueNotFoundError",
    "NotFoundError",
    "get_gameweek_leaderboard",
    "get_leaderboard",
    "get_user_rank",
]
