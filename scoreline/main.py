"""FastAPI application for the scoreline sync and scoring engine."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from scoreline.config import get_settings
from scoreline.database import close_db, init_db
from scoreline.etl.base import ProviderError
from scoreline.etl.competitions import UnknownCompetitionError
from scoreline.leaderboard.service import NotFoundError
from scoreline.routes.admin import router as admin_router
from scoreline.routes.core import router as core_router
from scoreline.routes.leaderboard import router as leaderboard_router
from scoreline.routes.schedule import router as schedule_router
from scoreline.scheduler import start_scheduler, stop_scheduler
from scoreline.security import limiter
from scoreline.telemetry.sentry import init_sentry

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# No-op unless SENTRY_DSN is configured
init_sentry()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting scoreline...")
    await init_db()
    start_scheduler()

    yield

    logger.info("Shutting down...")
    stop_scheduler()
    await close_db()


app = FastAPI(
    title="scoreline",
    description="Fixture sync and prediction scoring for a football prediction league",
    version="1.0.0",
    lifespan=lifespan,
)

# Add rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(UnknownCompetitionError)
async def unknown_competition_handler(request: Request, exc: UnknownCompetitionError):
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"error": str(exc)})


@app.exception_handler(ProviderError)
async def provider_error_handler(request: Request, exc: ProviderError):
    logger.error(f"Provider failure on {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"error": "Sync failed", "message": str(exc)})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Include routers
app.include_router(core_router)
app.include_router(admin_router)
app.include_router(leaderboard_router)
app.include_router(schedule_router)
