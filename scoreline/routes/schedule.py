"""Schedule read routes."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from scoreline.database import get_async_session
from scoreline.schedule import service

router = APIRouter(prefix="/fixtures", tags=["fixtures"])


@router.get("/season/current/{competition}")
async def current_season(competition: str, session: AsyncSession = Depends(get_async_session)):
    season = await service.get_season(session, competition)
    if season is None:
        raise HTTPException(status_code=404, detail="No active season found")
    return season


@router.get("/season/{competition}/status")
async def season_status(competition: str, session: AsyncSession = Depends(get_async_session)):
    status = await service.get_season_status(session, competition)
    if status is None:
        raise HTTPException(status_code=404, detail="No active season found")
    return status


@router.get("/season/{season_id}/gameweeks")
async def season_gameweeks(season_id: str, session: AsyncSession = Depends(get_async_session)):
    return await service.get_season_gameweeks(session, season_id)


@router.get("/gameweek/current/{competition}")
async def current_gameweek(competition: str, session: AsyncSession = Depends(get_async_session)):
    gameweek = await service.get_current_gameweek(session, competition)
    if gameweek is None:
        raise HTTPException(status_code=404, detail="No upcoming gameweek found")
    return gameweek


@router.get("/gameweek/{gameweek_id}")
async def gameweek_detail(gameweek_id: str, session: AsyncSession = Depends(get_async_session)):
    gameweek = await service.get_gameweek_with_matches(session, gameweek_id)
    if gameweek is None:
        raise HTTPException(status_code=404, detail="Gameweek not found")
    return gameweek


@router.get("/teams/{competition}")
async def teams(competition: str, session: AsyncSession = Depends(get_async_session)):
    return await service.get_teams(session, competition)
