"""
Telemetry Module

Provides Prometheus metrics for provider ingestion, sync volume, scoring
and scheduler jobs, plus Sentry error tracking.
"""

from scoreline.telemetry.metrics import (
    get_metrics_text,
    record_job_run,
    record_matches_upserted,
    record_predictions_scored,
    record_provider_error,
    record_provider_request,
    record_results_updated,
    record_sync_skip,
)

__all__ = [
    "get_metrics_text",
    "record_job_run",
    "record_matches_upserted",
    "record_predictions_scored",
    "record_provider_error",
    "record_provider_request",
    "record_results_updated",
    "record_sync_skip",
]
