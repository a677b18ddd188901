"""Background scheduler: daily full sync and periodic results refresh."""

import logging
import os
import time
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from scoreline.config import get_settings
from scoreline.database import get_session_with_retry
from scoreline.etl.pipeline import create_sync_pipeline
from scoreline.jobs.tracking import record_job_run as persist_job_run
from scoreline.telemetry.metrics import record_job_run
from scoreline.telemetry.sentry import capture_exception as sentry_capture_exception
from scoreline.telemetry.sentry import sentry_job_context

logger = logging.getLogger(__name__)

settings = get_settings()

scheduler = AsyncIOScheduler()
_scheduler_started = False

FULL_SYNC_JOB = "full_sync"
RESULTS_REFRESH_JOB = "results_refresh"


async def full_sync() -> dict:
    """Daily full sync of every configured competition."""
    start_time = time.time()
    started_at = datetime.utcnow()
    logger.info("[FULL-SYNC] Starting full sync...")

    with sentry_job_context(FULL_SYNC_JOB):
        async with get_session_with_retry() as session:
            pipeline = create_sync_pipeline(session)
            try:
                results = await pipeline.sync_all()
            except Exception as e:
                duration_ms = (time.time() - start_time) * 1000
                logger.error(f"[FULL-SYNC] Failed: {e}")
                sentry_capture_exception(e, job_id=FULL_SYNC_JOB)
                record_job_run(job=FULL_SYNC_JOB, status="error", duration_ms=duration_ms)
                await persist_job_run(session, FULL_SYNC_JOB, "error", started_at, error=str(e))
                raise
            finally:
                await pipeline.provider.close()

            failed = sorted(key for key, result in results.items() if "error" in result)
            status = "error" if failed else "ok"
            duration_ms = (time.time() - start_time) * 1000
            record_job_run(job=FULL_SYNC_JOB, status=status, duration_ms=duration_ms)
            await persist_job_run(
                session,
                FULL_SYNC_JOB,
                status,
                started_at,
                error=f"failed: {', '.join(failed)}" if failed else None,
                metrics=results,
            )

    logger.info(f"[FULL-SYNC] Complete in {duration_ms:.0f}ms: {results}")
    return results


async def results_refresh() -> dict:
    """Result refresh plus scoring for every configured competition."""
    start_time = time.time()
    started_at = datetime.utcnow()
    results: dict = {}

    with sentry_job_context(RESULTS_REFRESH_JOB):
        async with get_session_with_retry() as session:
            pipeline = create_sync_pipeline(session)
            try:
                for competition in settings.sync_competitions:
                    try:
                        results[competition] = await pipeline.refresh_results(competition)
                    except Exception as e:
                        await session.rollback()
                        logger.error(f"[RESULTS] {competition} failed: {e}")
                        sentry_capture_exception(e, job_id=RESULTS_REFRESH_JOB, competition=competition)
                        results[competition] = {"error": str(e)}
            finally:
                await pipeline.provider.close()

            failed = sorted(key for key, result in results.items() if "error" in result)
            status = "error" if failed else "ok"
            duration_ms = (time.time() - start_time) * 1000
            record_job_run(job=RESULTS_REFRESH_JOB, status=status, duration_ms=duration_ms)
            await persist_job_run(
                session,
                RESULTS_REFRESH_JOB,
                status,
                started_at,
                error=f"failed: {', '.join(failed)}" if failed else None,
                metrics=results,
            )

    logger.info(f"[RESULTS] Refresh complete in {duration_ms:.0f}ms: {results}")
    return results


def start_scheduler():
    """
    Start the background scheduler.

    Uses a module-level flag to prevent duplicate scheduler instances
    when running with --reload.
    """
    global _scheduler_started

    if not settings.SCHEDULER_ENABLED:
        logger.info("Scheduler disabled (SCHEDULER_ENABLED=false)")
        return

    if _scheduler_started:
        logger.warning("Scheduler already started, skipping duplicate initialization")
        return

    # Uvicorn sets this env var in the reloader subprocess
    if os.environ.get("UVICORN_RELOADED"):
        logger.info("Skipping scheduler in reload subprocess")
        return

    scheduler.add_job(
        full_sync,
        trigger=CronTrigger(hour=settings.FULL_SYNC_HOUR_UTC, minute=settings.FULL_SYNC_MINUTE_UTC, timezone="UTC"),
        id=FULL_SYNC_JOB,
        name="Daily Full Sync",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.add_job(
        results_refresh,
        trigger=IntervalTrigger(minutes=settings.RESULTS_REFRESH_INTERVAL_MINUTES),
        id=RESULTS_REFRESH_JOB,
        name="Results Refresh + Scoring",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    _scheduler_started = True
    logger.info(
        f"Scheduler started:\n"
        f"  - Full sync: daily {settings.FULL_SYNC_HOUR_UTC:02d}:{settings.FULL_SYNC_MINUTE_UTC:02d} UTC\n"
        f"  - Results refresh: every {settings.RESULTS_REFRESH_INTERVAL_MINUTES} min"
    )


def stop_scheduler():
    """Stop the background scheduler."""
    global _scheduler_started
    if scheduler.running:
        scheduler.shutdown()
        _scheduler_started = False
        logger.info("Scheduler stopped")
