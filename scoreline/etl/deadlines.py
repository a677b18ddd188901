"""Gameweek timing and lifecycle status, derived from its matches."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from scoreline.config import get_settings
from scoreline.models import SETTLED_MATCH_STATUSES, GameweekStatus

settings = get_settings()


@dataclass(frozen=True)
class GameweekTiming:
    deadline: datetime
    starts_at: datetime
    ends_at: datetime


def compute_timing(
    kickoffs: Iterable[datetime],
    deadline_offset: Optional[timedelta] = None,
    duration_estimate: Optional[timedelta] = None,
) -> GameweekTiming:
    """
    Deadline is the first kickoff minus the offset (1h); the gameweek ends at
    the last kickoff plus the duration estimate (2h).

    Raises:
        ValueError: if there are no kickoffs.
    """
    kickoffs = list(kickoffs)
    if not kickoffs:
        raise ValueError("Cannot compute gameweek timing without matches")

    if deadline_offset is None:
        deadline_offset = timedelta(minutes=settings.DEADLINE_OFFSET_MINUTES)
    if duration_estimate is None:
        duration_estimate = timedelta(minutes=settings.MATCH_DURATION_ESTIMATE_MINUTES)

    first = min(kickoffs)
    last = max(kickoffs)
    return GameweekTiming(
        deadline=first - deadline_offset,
        starts_at=first,
        ends_at=last + duration_estimate,
    )


def derive_status(deadline: datetime, match_statuses: Iterable[str], now: datetime) -> str:
    """
    Lifecycle status of a gameweek at ``now``.

    upcoming before the deadline; completed once every match is finished,
    cancelled or postponed; active otherwise.
    """
    if now < deadline:
        return GameweekStatus.UPCOMING.value
    if all(status in SETTLED_MATCH_STATUSES for status in match_statuses):
        return GameweekStatus.COMPLETED.value
    return GameweekStatus.ACTIVE.value
