"""Batch scoring of predictions and per-gameweek score aggregates."""

import logging
from collections import Counter
from datetime import datetime
from typing import Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from scoreline.db_utils import upsert
from scoreline.models import (
    Gameweek,
    Match,
    Matchday,
    MatchStatus,
    Prediction,
    Season,
    UserGameweekScore,
)
from scoreline.scoring.points import EXACT_SCORE_POINTS, CORRECT_RESULT_POINTS, score_prediction
from scoreline.telemetry import record_predictions_scored

logger = logging.getLogger(__name__)


async def score_predictions_for_match(session: AsyncSession, match_id: str) -> int:
    """
    Award points to every unscored prediction of a finished match.

    No-op (returns 0) when the match is unknown, not finished or has no score.
    Only rows with ``points IS NULL`` are touched, so repeated or overlapping
    calls never re-score a prediction. Commits, or rolls back and re-raises.

    Returns:
        Number of predictions scored by this call.
    """
    result = await session.execute(
        select(Match.status, Match.home_score, Match.away_score, Matchday.gameweek_id)
        .join(Matchday, Matchday.id == Match.matchday_id)
        .where(Match.id == match_id)
    )
    row = result.first()
    if row is None:
        logger.debug(f"Score request for unknown match {match_id}")
        return 0

    status, actual_home, actual_away, gameweek_id = row
    if status != MatchStatus.FINISHED.value or actual_home is None or actual_away is None:
        logger.debug(f"Match {match_id} not scorable yet (status={status})")
        return 0

    pending = await session.execute(
        select(Prediction.id, Prediction.home_score, Prediction.away_score).where(
            Prediction.match_id == match_id,
            Prediction.points.is_(None),
        )
    )

    now = datetime.utcnow()
    categories: Counter = Counter()
    scored = 0
    try:
        for prediction_id, predicted_home, predicted_away in pending.all():
            outcome = score_prediction(predicted_home, predicted_away, actual_home, actual_away)
            updated = await session.execute(
                update(Prediction)
                .where(Prediction.id == prediction_id, Prediction.points.is_(None))
                .values(points=outcome.points, updated_at=now)
            )
            if updated.rowcount:
                scored += 1
                categories[outcome.category.value] += 1

        if scored:
            await refresh_gameweek_scores(session, gameweek_id)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    if scored:
        record_predictions_scored(dict(categories))
        logger.info(f"Scored {scored} predictions for match {match_id}")
    return scored


async def refresh_gameweek_scores(session: AsyncSession, gameweek_id: str) -> int:
    """
    Recompute user_gameweek_scores rows for one gameweek from its predictions.

    Does not commit. Returns the number of (user, league) rows written.
    """
    result = await session.execute(
        select(
            Prediction.user_id,
            Prediction.league_id,
            func.coalesce(func.sum(Prediction.points), 0),
            func.sum(case((Prediction.points == EXACT_SCORE_POINTS, 1), else_=0)),
            func.sum(case((Prediction.points == CORRECT_RESULT_POINTS, 1), else_=0)),
            func.count(Prediction.id),
            func.count(Prediction.points),
        )
        .join(Match, Match.id == Prediction.match_id)
        .join(Matchday, Matchday.id == Match.matchday_id)
        .where(Matchday.gameweek_id == gameweek_id)
        .group_by(Prediction.user_id, Prediction.league_id)
    )

    now = datetime.utcnow()
    rows = result.all()
    for user_id, league_id, total, exact, correct, predicted, scored in rows:
        await upsert(
            session,
            UserGameweekScore,
            {
                "user_id": user_id,
                "gameweek_id": gameweek_id,
                "league_id": league_id,
                "total_points": int(total or 0),
                "exact_scores": int(exact or 0),
                "correct_results": int(correct or 0),
                "predicted_matches": int(predicted or 0),
                "scored_matches": int(scored or 0),
                "updated_at": now,
            },
            conflict_columns=["user_id", "gameweek_id", "league_id"],
        )
    return len(rows)


async def find_matches_to_score(session: AsyncSession, competition: Optional[str] = None) -> list[str]:
    """
    Finished matches that still have unscored predictions.

    This join is the authoritative work list, so a missed scoring pass is
    picked up by the next one.
    """
    query = (
        select(Match.id)
        .join(Prediction, Prediction.match_id == Match.id)
        .where(
            Match.status == MatchStatus.FINISHED.value,
            Match.home_score.is_not(None),
            Match.away_score.is_not(None),
            Prediction.points.is_(None),
        )
        .distinct()
        .order_by(Match.id)
    )
    if competition:
        query = (
            query.join(Matchday, Matchday.id == Match.matchday_id)
            .join(Gameweek, Gameweek.id == Matchday.gameweek_id)
            .join(Season, Season.id == Gameweek.season_id)
            .where(Season.competition == competition)
        )
    result = await session.execute(query)
    return list(result.scalars().all())


async def score_pending_predictions(
    session: AsyncSession, competition: Optional[str] = None
) -> tuple[int, int]:
    """
    Score every finished match with outstanding predictions.

    Each match commits on its own; a failure leaves earlier matches scored.

    Returns:
        (matches scored, predictions scored)
    """
    match_ids = await find_matches_to_score(session, competition)
    matches_scored = 0
    predictions_scored = 0
    for match_id in match_ids:
        count = await score_predictions_for_match(session, match_id)
        if count:
            matches_scored += 1
            predictions_scored += count

    if match_ids:
        logger.info(
            f"Scoring pass{f' for {competition}' if competition else ''}: "
            f"{predictions_scored} predictions across {matches_scored} matches"
        )
    return matches_scored, predictions_scored
