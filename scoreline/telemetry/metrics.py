"""
Prometheus metrics for sync, scoring and scheduler jobs.

Design principles:
- Low cardinality (controlled labels)
- Best-effort (never block main flow)

ALLOWED LABELS (bounded sets):
- provider:     "football_data"
- entity:       "teams", "competition", "matches"
- endpoint:     "competitions/{code}/teams", "competitions/{code}", ...
- status_code:  "200", "400", "403", "429", "500", "0"
- error_code:   "timeout", "request_error", "http_4xx", "http_5xx", "bad_payload"
- competition:  configured competition keys
- reason:       "tbd_team", "no_matchday", "all_tbd_group", "unknown_stage",
                "matchday_out_of_range", "no_score"
- job:          scheduler job ids

Match ids, team names and error messages belong in logs, never in labels.
"""

import logging
import time

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

# =============================================================================
# PROVIDER METRICS
# =============================================================================

provider_requests_total = Counter(
    "provider_requests_total",
    "Total requests to data providers",
    ["provider", "entity", "endpoint", "status_code"],
)

provider_errors_total = Counter(
    "provider_errors_total",
    "Total errors from data providers",
    ["provider", "entity", "error_code"],
)

provider_latency_ms = Histogram(
    "provider_latency_ms",
    "Request latency in milliseconds",
    ["provider", "entity", "endpoint"],
    buckets=[10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000],
)

# =============================================================================
# SYNC / SCORING METRICS
# =============================================================================

sync_matches_upserted_total = Counter(
    "sync_matches_upserted_total",
    "Matches written by schedule sync",
    ["competition"],
)

sync_skipped_total = Counter(
    "sync_skipped_total",
    "Provider records skipped during sync (data not yet resolvable)",
    ["competition", "reason"],
)

results_updated_total = Counter(
    "results_updated_total",
    "Matches whose score or status changed during a result refresh",
    ["competition"],
)

predictions_scored_total = Counter(
    "predictions_scored_total",
    "Predictions that received points",
    ["category"],  # exact, result, incorrect
)

# =============================================================================
# JOB HEALTH METRICS
# =============================================================================

job_runs_total = Counter(
    "job_runs_total",
    "Scheduler job runs by status",
    ["job", "status"],
)

job_duration_ms = Histogram(
    "job_duration_ms",
    "Scheduler job duration in milliseconds",
    ["job"],
    buckets=[100, 500, 1000, 5000, 10000, 30000, 60000, 120000, 300000],
)

job_last_success_timestamp = Gauge(
    "job_last_success_timestamp",
    "Unix timestamp of the last successful run",
    ["job"],
)


# =============================================================================
# HELPER FUNCTIONS (for instrumentation)
# =============================================================================


def record_provider_request(
    provider: str,
    entity: str,
    endpoint: str,
    status_code: int,
    latency_ms: float,
) -> None:
    """Record a provider request count and latency."""
    try:
        provider_requests_total.labels(
            provider=provider,
            entity=entity,
            endpoint=endpoint,
            status_code=str(status_code),
        ).inc()

        provider_latency_ms.labels(
            provider=provider,
            entity=entity,
            endpoint=endpoint,
        ).observe(latency_ms)
    except Exception as e:
        logger.warning(f"Failed to record provider request metric: {e}")


def record_provider_error(
    provider: str,
    entity: str,
    error_code: str,
) -> None:
    """Record a provider error."""
    try:
        provider_errors_total.labels(
            provider=provider,
            entity=entity,
            error_code=error_code,
        ).inc()
    except Exception as e:
        logger.warning(f"Failed to record provider error metric: {e}")


def record_matches_upserted(competition: str, count: int) -> None:
    try:
        if count > 0:
            sync_matches_upserted_total.labels(competition=competition).inc(count)
    except Exception as e:
        logger.warning(f"Failed to record sync metric: {e}")


def record_sync_skip(competition: str, reason: str, count: int = 1) -> None:
    """Count provider records skipped because they cannot be stored yet."""
    try:
        if count > 0:
            sync_skipped_total.labels(competition=competition, reason=reason).inc(count)
    except Exception as e:
        logger.warning(f"Failed to record sync skip metric: {e}")


def record_results_updated(competition: str, count: int) -> None:
    try:
        if count > 0:
            results_updated_total.labels(competition=competition).inc(count)
    except Exception as e:
        logger.warning(f"Failed to record results metric: {e}")


def record_predictions_scored(category_counts: dict[str, int]) -> None:
    """Record scored predictions by outcome category."""
    try:
        for category, count in category_counts.items():
            if count > 0:
                predictions_scored_total.labels(category=category).inc(count)
    except Exception as e:
        logger.warning(f"Failed to record scoring metric: {e}")


def record_job_run(job: str, status: str, duration_ms: float) -> None:
    """
    Record a job run with status and duration.

    Args:
        job: Job identifier (full_sync, results_refresh)
        status: "ok" or "error"
        duration_ms: Job duration in milliseconds
    """
    try:
        job_runs_total.labels(job=job, status=status).inc()
        if duration_ms > 0:
            job_duration_ms.labels(job=job).observe(duration_ms)
        if status == "ok":
            job_last_success_timestamp.labels(job=job).set(time.time())
    except Exception as e:
        logger.warning(f"Failed to record job run metric: {e}")


def get_metrics_text() -> tuple[str, str]:
    """
    Generate Prometheus metrics text output.

    Returns:
        Tuple of (content, content_type)
    """
    return generate_latest(REGISTRY).decode("utf-8"), CONTENT_TYPE_LATEST
