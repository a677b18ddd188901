"""Leaderboard read routes. Membership checks are done by the calling layer."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from scoreline.database import get_async_session
from scoreline.leaderboard.service import (
    get_gameweek_leaderboard,
    get_leaderboard,
    get_user_rank,
)

router = APIRouter(prefix="/leaderboard", tags=["leaderboard"])


@router.get("/{league_id}")
async def league_leaderboard(league_id: str, session: AsyncSession = Depends(get_async_session)):
    return await get_leaderboard(session, league_id)


@router.get("/{league_id}/user/{user_id}")
async def user_rank(league_id: str, user_id: str, session: AsyncSession = Depends(get_async_session)):
    return await get_user_rank(session, league_id, user_id)


@router.get("/{league_id}/gameweek/{gameweek_id}")
async def gameweek_leaderboard(
    league_id: str,
    gameweek_id: str,
    session: AsyncSession = Depends(get_async_session),
):
    return await get_gameweek_leaderboard(session, league_id, gameweek_id)
