"""
Sentry error tracking for the API and the sync jobs.

Events carry the scheduler job and, where known, the competition being
synced. Credentials (provider token, admin key, metrics bearer) never
leave the process: matching headers and query parameters are redacted
and request bodies are dropped.
"""

import logging
import re
from contextlib import contextmanager
from typing import Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from scoreline.config import get_settings

logger = logging.getLogger(__name__)

_enabled = False

REDACTED_HEADERS = frozenset(
    {"x-api-key", "x-auth-token", "authorization", "cookie", "set-cookie"}
)
_SECRET_PARAM = re.compile(r"(?i)(token|api_key|key|secret)=([^&]*)")


def scrub_sensitive_data(event: dict, hint: dict) -> Optional[dict]:
    """before_send hook: redact credentials, drop request bodies."""
    request = event.get("request")
    if not request:
        return event

    headers = request.get("headers")
    if headers:
        request["headers"] = {
            name: "[REDACTED]" if name.lower() in REDACTED_HEADERS else value
            for name, value in headers.items()
        }

    query = request.get("query_string")
    if isinstance(query, str):
        request["query_string"] = _SECRET_PARAM.sub(r"\1=[REDACTED]", query)

    if "data" in request:
        request["data"] = "[SCRUBBED]"

    return event


def init_sentry() -> bool:
    """Start the SDK when SENTRY_DSN is set. Returns whether Sentry is active."""
    global _enabled

    if _enabled:
        return True

    settings = get_settings()
    if not settings.SENTRY_DSN:
        logger.info("Sentry disabled (SENTRY_DSN not set)")
        return False

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
            LoggingIntegration(level=logging.ERROR, event_level=logging.ERROR),
        ],
        send_default_pii=False,
        before_send=scrub_sensitive_data,
    )
    _enabled = True
    logger.info(
        f"Sentry enabled: env={settings.SENTRY_ENVIRONMENT}, "
        f"traces_sample_rate={settings.SENTRY_TRACES_SAMPLE_RATE}"
    )
    return True


def _tag_scope(scope, job_id: Optional[str], tags: dict) -> None:
    if job_id:
        scope.set_tag("job_id", job_id)
    for key, value in tags.items():
        if value is not None:
            scope.set_tag(key, str(value))


@contextmanager
def sentry_job_context(job_id: str, **tags):
    """
    Scope a scheduler job: everything reported inside is tagged with job_id
    (plus e.g. competition=...). Exceptions escaping the block are reported
    and re-raised.
    """
    if not _enabled:
        yield None
        return

    with sentry_sdk.new_scope() as scope:
        _tag_scope(scope, job_id, tags)
        scope.set_context("job", {"job_id": job_id, **tags})
        try:
            yield scope
        except Exception as e:
            sentry_sdk.capture_exception(e)
            raise


def capture_exception(exception: Exception, job_id: Optional[str] = None, **tags) -> None:
    """Report a handled exception, e.g. one competition failing inside a multi-competition job."""
    if not _enabled:
        return

    with sentry_sdk.new_scope() as scope:
        _tag_scope(scope, job_id, tags)
        sentry_sdk.capture_exception(exception)
