"""League standings, member rank lookup and gameweek standings."""

import logging
from dataclasses import asdict

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from scoreline.leaderboard.ranking import Standing, rank_standings
from scoreline.models import League, LeagueMember, Match, Matchday, Prediction
from scoreline.schedule.service import count_gameweeks, get_current_season, is_season_complete
from scoreline.scoring.points import CORRECT_RESULT_POINTS, EXACT_SCORE_POINTS

logger = logging.getLogger(__name__)


class NotFoundError(Exception):
    """A requested league or member does not exist (404 at the HTTP layer)."""


class LeagueNotFoundError(NotFoundError):
    pass


class LeagueMemberNotFoundError(NotFoundError):
    pass


def _totals():
    """Aggregate columns over Prediction rows (zero when there are none)."""
    total = func.coalesce(func.sum(Prediction.points), 0)
    exact = func.coalesce(func.sum(case((Prediction.points == EXACT_SCORE_POINTS, 1), else_=0)), 0)
    correct = func.coalesce(func.sum(case((Prediction.points == CORRECT_RESULT_POINTS, 1), else_=0)), 0)
    return total, exact, correct


def _member_predictions(league_id: str):
    """Every member of the league, outer-joined to their predictions in it."""
    return LeagueMember.__table__.outerjoin(
        Prediction.__table__,
        and_(Prediction.user_id == LeagueMember.user_id, Prediction.league_id == league_id),
    )


async def _get_league(session: AsyncSession, league_id: str) -> League:
    league = await session.get(League, league_id)
    if league is None:
        raise LeagueNotFoundError(f"League {league_id} not found")
    return league


async def get_standings(session: AsyncSession, league_id: str) -> list[Standing]:
    """Ranked standings of every league member."""
    total, exact, correct = _totals()
    gameweeks_played = func.count(
        func.distinct(case((Prediction.points.is_not(None), Matchday.gameweek_id)))
    )

    joined = _member_predictions(league_id).outerjoin(
        Match.__table__, Match.id == Prediction.match_id
    ).outerjoin(Matchday.__table__, Matchday.id == Match.matchday_id)

    result = await session.execute(
        select(
            LeagueMember.user_id,
            total.label("total_points"),
            exact.label("exact_scores"),
            correct.label("correct_results"),
            gameweeks_played.label("gameweeks_played"),
            func.count(Prediction.id).label("predictions_made"),
        )
        .select_from(joined)
        .where(LeagueMember.league_id == league_id)
        .group_by(LeagueMember.user_id)
        .order_by(total.desc(), exact.desc(), correct.desc(), LeagueMember.user_id.asc())
    )

    return rank_standings(
        Standing(
            user_id=row.user_id,
            total_points=int(row.total_points),
            exact_scores=int(row.exact_scores),
            correct_results=int(row.correct_results),
            gameweeks_played=int(row.gameweeks_played),
            predictions_made=int(row.predictions_made),
        )
        for row in result.all()
    )


async def get_leaderboard(session: AsyncSession, league_id: str) -> dict:
    """
    Full league standings plus season completion.

    The champion is the rank-1 entry once every gameweek of the competition's
    current season is completed, otherwise None. Completion is counted live.

    Raises:
        LeagueNotFoundError
    """
    league = await _get_league(session, league_id)
    entries = [asdict(s) for s in await get_standings(session, league_id)]

    complete = False
    season = await get_current_season(session, league.competition)
    if season is not None:
        total_gameweeks, completed_gameweeks = await count_gameweeks(session, season.id)
        complete = is_season_complete(total_gameweeks, completed_gameweeks)

    return {
        "entries": entries,
        "is_season_complete": complete,
        "champion": entries[0] if complete and entries else None,
    }


async def get_user_rank(session: AsyncSession, league_id: str, user_id: str) -> dict:
    """
    One member's rank: one plus the number of members with a strictly higher
    (total points, exact scores) pair, the same rule the full leaderboard uses.

    Raises:
        LeagueNotFoundError, LeagueMemberNotFoundError
    """
    await _get_league(session, league_id)
    member = (
        await session.execute(
            select(LeagueMember.id).where(
                LeagueMember.league_id == league_id, LeagueMember.user_id == user_id
            )
        )
    ).scalar_one_or_none()
    if member is None:
        raise LeagueMemberNotFoundError(f"User {user_id} is not a member of league {league_id}")

    total, exact, correct = _totals()
    mine = (
        await session.execute(
            select(total, exact, correct).where(
                Prediction.league_id == league_id, Prediction.user_id == user_id
            )
        )
    ).one()
    total_points, exact_scores, correct_results = (int(v) for v in mine)

    per_member = (
        select(
            LeagueMember.user_id.label("user_id"),
            total.label("total_points"),
            exact.label("exact_scores"),
        )
        .select_from(_member_predictions(league_id))
        .where(LeagueMember.league_id == league_id)
        .group_by(LeagueMember.user_id)
        .subquery()
    )
    ahead = (
        await session.execute(
            select(func.count()).select_from(per_member).where(
                or_(
                    per_member.c.total_points > total_points,
                    and_(
                        per_member.c.total_points == total_points,
                        per_member.c.exact_scores > exact_scores,
                    ),
                )
            )
        )
    ).scalar_one()

    total_members = (
        await session.execute(
            select(func.count(LeagueMember.id)).where(LeagueMember.league_id == league_id)
        )
    ).scalar_one()

    return {
        "rank": int(ahead) + 1,
        "total_members": int(total_members),
        "user_id": user_id,
        "total_points": total_points,
        "exact_scores": exact_scores,
        "correct_results": correct_results,
    }


async def get_gameweek_leaderboard(
    session: AsyncSession, league_id: str, gameweek_id: str
) -> list[dict]:
    """
    Points earned by each member in one gameweek, ranked like the league table.

    Raises:
        LeagueNotFoundError
    """
    await _get_league(session, league_id)

    in_gameweek = (
        select(Prediction.user_id, Prediction.points, Prediction.id)
        .join(Match, Match.id == Prediction.match_id)
        .join(Matchday, Matchday.id == Match.matchday_id)
        .where(Prediction.league_id == league_id, Matchday.gameweek_id == gameweek_id)
        .subquery()
    )
    points = in_gameweek.c.points
    result = await session.execute(
        select(
            LeagueMember.user_id,
            func.coalesce(func.sum(points), 0),
            func.coalesce(func.sum(case((points == EXACT_SCORE_POINTS, 1), else_=0)), 0),
            func.coalesce(func.sum(case((points == CORRECT_RESULT_POINTS, 1), else_=0)), 0),
            func.count(in_gameweek.c.id),
        )
        .select_from(
            LeagueMember.__table__.outerjoin(in_gameweek, in_gameweek.c.user_id == LeagueMember.user_id)
        )
        .where(LeagueMember.league_id == league_id)
        .group_by(LeagueMember.user_id)
    )

    standings = rank_standings(
        Standing(
            user_id=user_id,
            total_points=int(points_sum),
            exact_scores=int(exact_count),
            correct_results=int(correct_count),
            predictions_made=int(made),
        )
        for user_id, points_sum, exact_count, correct_count, made in result.all()
    )
    return [
        {
            "rank": s.rank,
            "user_id": s.user_id,
            "gameweek_points": s.total_points,
            "exact_scores": s.exact_scores,
            "correct_results": s.correct_results,
            "predictions_made": s.predictions_made,
        }
        for s in standings
    ]
