"""
One-time cleanup of knockout gameweeks created before ids carried a stage.

Early syncs stored Champions League gameweeks as ``<season>-gw<n>``; the
stage-aware ids (``<season>-<STAGE>-gw<n>``) collide with their numbers.
This pass deletes the old rows and everything hanging off them. It runs in
the caller's transaction and can be removed once no legacy ids remain.
"""

import logging
import re

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from scoreline.models import Gameweek, Match, Matchday, Prediction, UserGameweekScore

logger = logging.getLogger(__name__)


def is_legacy_gameweek_id(gameweek_id: str, season_id: str) -> bool:
    return re.fullmatch(rf"{re.escape(season_id)}-gw\d+", gameweek_id) is not None


async def find_legacy_gameweeks(session: AsyncSession, season_id: str) -> list[str]:
    result = await session.execute(
        select(Gameweek.id).where(
            Gameweek.season_id == season_id,
            Gameweek.id.startswith(f"{season_id}-gw", autoescape=True),
        )
    )
    return sorted(gid for gid in result.scalars().all() if is_legacy_gameweek_id(gid, season_id))


async def delete_legacy_gameweeks(session: AsyncSession, season_id: str) -> list[str]:
    """
    Delete legacy-format gameweeks of a season in foreign-key order:
    predictions -> gameweek score aggregates -> matches -> matchdays -> gameweeks.

    Does not commit. Returns the deleted gameweek ids.
    """
    legacy_ids = await find_legacy_gameweeks(session, season_id)
    if not legacy_ids:
        return []

    logger.warning(f"Cleaning up {len(legacy_ids)} legacy-format gameweeks: {', '.join(legacy_ids)}")

    matchday_ids = select(Matchday.id).where(Matchday.gameweek_id.in_(legacy_ids))
    match_ids = select(Match.id).where(Match.matchday_id.in_(matchday_ids))

    statements = [
        delete(Prediction).where(Prediction.match_id.in_(match_ids)),
        delete(UserGameweekScore).where(UserGameweekScore.gameweek_id.in_(legacy_ids)),
        delete(Match).where(Match.matchday_id.in_(matchday_ids)),
        delete(Matchday).where(Matchday.gameweek_id.in_(legacy_ids)),
        delete(Gameweek).where(Gameweek.id.in_(legacy_ids)),
    ]
    for stmt in statements:
        await session.execute(stmt.execution_options(synchronize_session=False))

    logger.info(f"Cleaned up legacy-format gameweeks for season {season_id}")
    return legacy_ids
