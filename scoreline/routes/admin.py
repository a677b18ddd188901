"""Admin routes: manual sync, results refresh and sync status (API key protected)."""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from scoreline.database import get_async_session
from scoreline.etl.competitions import get_competition
from scoreline.etl.pipeline import create_sync_pipeline
from scoreline.jobs.tracking import get_jobs_health
from scoreline.security import limiter, verify_api_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(verify_api_key)])


@router.post("/sync/all")
@limiter.limit("5/minute")
async def sync_all(request: Request, session: AsyncSession = Depends(get_async_session)):
    """Full sync of every configured competition."""
    pipeline = create_sync_pipeline(session)
    try:
        results = await pipeline.sync_all()
    finally:
        await pipeline.provider.close()
    return {"success": all("error" not in r for r in results.values()), "results": results}


@router.post("/sync/{competition}")
@limiter.limit("10/minute")
async def sync_competition(
    request: Request,
    competition: str,
    session: AsyncSession = Depends(get_async_session),
):
    """Full sync (teams, season, schedule) of one competition."""
    get_competition(competition)
    logger.info(f"Manual sync requested for {competition}")
    pipeline = create_sync_pipeline(session)
    try:
        result = await pipeline.sync_competition(competition)
    finally:
        await pipeline.provider.close()
    return {"success": True, "competition": competition, **result}


@router.post("/sync/{competition}/teams")
@limiter.limit("10/minute")
async def sync_teams(
    request: Request,
    competition: str,
    session: AsyncSession = Depends(get_async_session),
):
    get_competition(competition)
    pipeline = create_sync_pipeline(session)
    try:
        count = await pipeline.sync_teams(competition)
    finally:
        await pipeline.provider.close()
    return {"success": True, "competition": competition, "teams_synced": count}


@router.post("/sync/{competition}/results")
@limiter.limit("20/minute")
async def refresh_results(
    request: Request,
    competition: str,
    session: AsyncSession = Depends(get_async_session),
):
    """Refresh recent results, then score finished matches with unscored predictions."""
    get_competition(competition)
    pipeline = create_sync_pipeline(session)
    try:
        result = await pipeline.refresh_results(competition)
    finally:
        await pipeline.provider.close()
    return {"success": True, "competition": competition, **result}


@router.get("/status")
async def sync_status(session: AsyncSession = Depends(get_async_session)):
    """Row counts per competition and last scheduler runs."""
    pipeline = create_sync_pipeline(session)
    try:
        competitions = await pipeline.get_sync_status()
    finally:
        await pipeline.provider.close()
    return {
        "competitions": competitions,
        "jobs": await get_jobs_health(session),
    }
