"""Job run tracking.

Persists scheduler job executions so the last success of each job is still
known after a restart (Prometheus counters reset on deploy).

Usage:
    from scoreline.jobs.tracking import record_job_run

    started_at = datetime.utcnow()
    try:
        ...
        await record_job_run(session, "full_sync", "ok", started_at, metrics={"matches": 380})
    except Exception as e:
        await record_job_run(session, "full_sync", "error", started_at, error=str(e))
        raise
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from scoreline.models import JobRun

logger = logging.getLogger(__name__)


async def record_job_run(
    session: AsyncSession,
    job_name: str,
    status: str,
    started_at: datetime,
    error: Optional[str] = None,
    metrics: Optional[dict] = None,
) -> None:
    """
    Record a job execution in the database. Commits.

    Args:
        session: Database session.
        job_name: Job identifier (full_sync, results_refresh).
        status: Execution status (ok, error).
        started_at: When the job started (naive UTC).
        error: Error message if failed.
        metrics: Optional job-specific metrics dict.
    """
    finished_at = datetime.utcnow()
    duration_ms = int((finished_at - started_at).total_seconds() * 1000)

    session.add(
        JobRun(
            job_name=job_name,
            status=status,
            started_at=started_at,
            finished_at=finished_at,
            duration_ms=duration_ms,
            error_message=error,
            metrics=metrics,
        )
    )
    await session.commit()

    logger.debug(f"[JOB_TRACKING] Recorded {job_name} run: {status} in {duration_ms}ms")


async def get_last_success_at(session: AsyncSession, job_name: str) -> Optional[datetime]:
    """Last successful run of a job, or None."""
    result = await session.execute(
        select(JobRun.finished_at)
        .where(JobRun.job_name == job_name, JobRun.status == "ok")
        .order_by(JobRun.finished_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_jobs_health(session: AsyncSession) -> dict:
    """
    Map job_name -> {last_success_at, last_status, last_run_at}.
    """
    latest = (
        select(JobRun.job_name, func.max(JobRun.id).label("last_id"))
        .group_by(JobRun.job_name)
        .subquery()
    )
    result = await session.execute(
        select(JobRun).join(latest, JobRun.id == latest.c.last_id).order_by(JobRun.job_name)
    )

    health = {}
    for run in result.scalars().all():
        health[run.job_name] = {
            "last_status": run.status,
            "last_run_at": run.finished_at,
            "last_error": run.error_message,
            "last_success_at": await get_last_success_at(session, run.job_name),
        }
    return health
