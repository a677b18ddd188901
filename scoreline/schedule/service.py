"""Read queries over the synced schedule."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from scoreline.etl.competitions import get_competition
from scoreline.models import Gameweek, GameweekStatus, Match, Matchday, Season, Team

logger = logging.getLogger(__name__)


def _season_dict(season: Season) -> dict:
    return {
        "id": season.id,
        "name": season.name,
        "competition": season.competition,
        "start_date": season.start_date,
        "end_date": season.end_date,
        "is_current": season.is_current,
        "current_matchday": season.current_matchday,
    }


def _gameweek_dict(gameweek: Gameweek) -> dict:
    return {
        "id": gameweek.id,
        "season_id": gameweek.season_id,
        "number": gameweek.number,
        "name": gameweek.name,
        "stage": gameweek.stage,
        "deadline": gameweek.deadline,
        "starts_at": gameweek.starts_at,
        "ends_at": gameweek.ends_at,
        "status": gameweek.status,
    }


def _team_dict(team: Team) -> dict:
    return {
        "id": team.id,
        "name": team.name,
        "short_name": team.short_name,
        "code": team.code,
        "logo": team.logo,
        "competition": team.competition,
    }


async def get_current_season(session: AsyncSession, competition: str) -> Optional[Season]:
    get_competition(competition)
    result = await session.execute(
        select(Season).where(Season.competition == competition, Season.is_current.is_(True))
    )
    return result.scalars().first()


async def get_current_gameweek(
    session: AsyncSession, competition: str, now: Optional[datetime] = None
) -> Optional[dict]:
    """
    The first gameweek (by number) still open for predictions; once every
    deadline has passed, the highest-numbered active gameweek.
    """
    season = await get_current_season(session, competition)
    if season is None:
        return None
    now = now or datetime.utcnow()

    result = await session.execute(
        select(Gameweek)
        .where(Gameweek.season_id == season.id, Gameweek.deadline > now)
        .order_by(Gameweek.number.asc())
        .limit(1)
    )
    gameweek = result.scalars().first()

    if gameweek is None:
        result = await session.execute(
            select(Gameweek)
            .where(Gameweek.season_id == season.id, Gameweek.status == GameweekStatus.ACTIVE.value)
            .order_by(Gameweek.number.desc())
            .limit(1)
        )
        gameweek = result.scalars().first()

    return _gameweek_dict(gameweek) if gameweek else None


async def get_season_gameweeks(session: AsyncSession, season_id: str) -> list[dict]:
    """Gameweeks of a season in number order, each with its match count."""
    match_count = (
        select(func.count(Match.id))
        .join(Matchday, Matchday.id == Match.matchday_id)
        .where(Matchday.gameweek_id == Gameweek.id)
        .correlate(Gameweek)
        .scalar_subquery()
    )
    result = await session.execute(
        select(Gameweek, match_count.label("match_count"))
        .where(Gameweek.season_id == season_id)
        .order_by(Gameweek.number.asc())
    )
    return [{**_gameweek_dict(gw), "match_count": count} for gw, count in result.all()]


async def get_gameweek_with_matches(session: AsyncSession, gameweek_id: str) -> Optional[dict]:
    """A gameweek with its matchdays and their matches, teams resolved."""
    result = await session.execute(
        select(Gameweek, Season.name, Season.competition)
        .join(Season, Season.id == Gameweek.season_id)
        .where(Gameweek.id == gameweek_id)
    )
    row = result.first()
    if row is None:
        return None
    gameweek, season_name, competition = row

    home = aliased(Team)
    away = aliased(Team)
    result = await session.execute(
        select(Matchday, Match, home, away)
        .join(Match, Match.matchday_id == Matchday.id)
        .join(home, home.id == Match.home_team_id)
        .join(away, away.id == Match.away_team_id)
        .where(Matchday.gameweek_id == gameweek_id)
        .order_by(Matchday.day_number.asc(), Match.kickoff_time.asc(), Match.id.asc())
    )

    matchdays: dict[str, dict] = {}
    for matchday, match, home_team, away_team in result.all():
        entry = matchdays.setdefault(
            matchday.id,
            {
                "id": matchday.id,
                "date": matchday.date,
                "day_number": matchday.day_number,
                "matches": [],
            },
        )
        entry["matches"].append(
            {
                "id": match.id,
                "kickoff_time": match.kickoff_time,
                "home_score": match.home_score,
                "away_score": match.away_score,
                "status": match.status,
                "venue": match.venue,
                "home_red_cards": match.home_red_cards,
                "away_red_cards": match.away_red_cards,
                "home_team": _team_dict(home_team),
                "away_team": _team_dict(away_team),
            }
        )

    return {
        **_gameweek_dict(gameweek),
        "season_name": season_name,
        "competition": competition,
        "matchdays": list(matchdays.values()),
    }


async def count_gameweeks(session: AsyncSession, season_id: str) -> tuple[int, int]:
    """(total, completed) gameweeks of a season, read live."""
    result = await session.execute(
        select(
            func.count(Gameweek.id),
            func.coalesce(
                func.sum(case((Gameweek.status == GameweekStatus.COMPLETED.value, 1), else_=0)), 0
            ),
        ).where(Gameweek.season_id == season_id)
    )
    total, completed = result.one()
    return int(total or 0), int(completed or 0)


def is_season_complete(total_gameweeks: int, completed_gameweeks: int) -> bool:
    return total_gameweeks > 0 and total_gameweeks == completed_gameweeks


async def get_season_status(session: AsyncSession, competition: str) -> Optional[dict]:
    """Current season with live gameweek completion counts."""
    season = await get_current_season(session, competition)
    if season is None:
        return None
    total, completed = await count_gameweeks(session, season.id)
    return {
        **_season_dict(season),
        "total_gameweeks": total,
        "completed_gameweeks": completed,
        "is_season_complete": is_season_complete(total, completed),
    }


async def get_season(session: AsyncSession, competition: str) -> Optional[dict]:
    season = await get_current_season(session, competition)
    return _season_dict(season) if season else None


async def get_teams(session: AsyncSession, competition: str) -> list[dict]:
    get_competition(competition)
    result = await session.execute(
        select(Team).where(Team.competition == competition).order_by(Team.name.asc())
    )
    return [_team_dict(team) for team in result.scalars().all()]
