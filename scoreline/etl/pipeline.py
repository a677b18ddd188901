"""Sync pipeline: provider data -> season / gameweek / matchday / match rows."""

import asyncio
import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from scoreline.config import get_settings
from scoreline.db_utils import upsert
from scoreline.etl.base import DataProvider, MatchData, SeasonData, TeamData
from scoreline.etl.competitions import COMPETITIONS, Competition, get_competition
from scoreline.etl.deadlines import compute_timing, derive_status
from scoreline.etl.football_data import FootballDataProvider
from scoreline.etl.legacy_cleanup import delete_legacy_gameweeks
from scoreline.etl.stages import GameweekGroup, build_gameweek_groups
from scoreline.models import (
    Gameweek,
    Match,
    Matchday,
    MatchStatus,
    Prediction,
    Season,
    Team,
)
from scoreline.scoring.service import refresh_gameweek_scores, score_pending_predictions
from scoreline.telemetry import record_matches_upserted, record_results_updated, record_sync_skip

logger = logging.getLogger(__name__)

settings = get_settings()


def team_id(competition: Competition, external_id: int) -> str:
    return f"{competition.key}-{external_id}"


def season_id(competition: Competition, external_id: int) -> str:
    return f"{competition.key}-{external_id}"


def match_id(competition: Competition, external_id: int) -> str:
    return f"{competition.key}-match-{external_id}"


def season_name(season: SeasonData) -> str:
    """e.g. 2024-08-16 .. 2025-05-25 -> '2024-25'."""
    return f"{season.start_date.year}-{str(season.end_date.year)[-2:]}"


class SyncPipeline:
    """
    Orchestrates schedule sync, result refresh and scoring for competitions.

    Every public write operation fetches from the provider first and only then
    opens its writes, so no database work waits on the network. A failure
    rolls back the whole operation and re-raises.
    """

    def __init__(
        self,
        provider: DataProvider,
        session: AsyncSession,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.provider = provider
        self.session = session
        self.clock = clock or datetime.utcnow

    # ------------------------------------------------------------------
    # Writers (no commit)
    # ------------------------------------------------------------------

    async def _write_teams(self, competition: Competition, teams: list[TeamData]) -> int:
        now = self.clock()
        for team in teams:
            await upsert(
                self.session,
                Team,
                {
                    "id": team_id(competition, team.external_id),
                    "name": team.name,
                    "short_name": team.short_name,
                    "code": team.code,
                    "logo": team.crest_url,
                    "competition": competition.key,
                    "updated_at": now,
                },
                conflict_columns=["id"],
                update_columns=["name", "short_name", "code", "logo", "updated_at"],
            )
        return len(teams)

    async def _ensure_team(self, competition: Competition, team: TeamData) -> str:
        """Insert a team seen in a match if the team sync has not stored it."""
        tid = team_id(competition, team.external_id)
        await upsert(
            self.session,
            Team,
            {
                "id": tid,
                "name": team.name,
                "short_name": team.short_name,
                "code": team.code,
                "logo": team.crest_url,
                "competition": competition.key,
            },
            conflict_columns=["id"],
            update_columns=[],
        )
        return tid

    async def _write_season(self, competition: Competition, season: SeasonData) -> str:
        sid = season_id(competition, season.external_id)
        now = self.clock()

        # At most one current season per competition
        await self.session.execute(
            update(Season)
            .where(Season.competition == competition.key)
            .values(is_current=False, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await upsert(
            self.session,
            Season,
            {
                "id": sid,
                "name": season_name(season),
                "competition": competition.key,
                "start_date": season.start_date,
                "end_date": season.end_date,
                "is_current": True,
                "current_matchday": season.current_matchday,
                "updated_at": now,
            },
            conflict_columns=["id"],
        )
        return sid

    async def _write_gameweek(self, competition: Competition, sid: str, group: GameweekGroup) -> int:
        now = self.clock()
        timing = compute_timing(m.kickoff for m in group.matches)
        gameweek_id = group.gameweek_id(sid)

        await upsert(
            self.session,
            Gameweek,
            {
                "id": gameweek_id,
                "season_id": sid,
                "number": group.number,
                "name": group.name,
                "stage": group.stage,
                "deadline": timing.deadline,
                "starts_at": timing.starts_at,
                "ends_at": timing.ends_at,
                "status": derive_status(timing.deadline, (m.status for m in group.matches), now),
                "updated_at": now,
            },
            conflict_columns=["id"],
        )

        by_date: dict = {}
        for match in group.matches:
            by_date.setdefault(match.kickoff.date(), []).append(match)

        written = 0
        for day_number, day in enumerate(sorted(by_date), start=1):
            matchday_id = f"{gameweek_id}-day{day_number}"
            await upsert(
                self.session,
                Matchday,
                {
                    "id": matchday_id,
                    "gameweek_id": gameweek_id,
                    "date": day,
                    "day_number": day_number,
                },
                conflict_columns=["id"],
            )
            for match in by_date[day]:
                await self._write_match(competition, matchday_id, match)
                written += 1
        return written

    async def _write_match(self, competition: Competition, matchday_id: str, match: MatchData) -> None:
        home_id = await self._ensure_team(competition, match.home_team)
        away_id = await self._ensure_team(competition, match.away_team)

        finished = match.status == MatchStatus.FINISHED.value
        await upsert(
            self.session,
            Match,
            {
                "id": match_id(competition, match.external_id),
                "matchday_id": matchday_id,
                "home_team_id": home_id,
                "away_team_id": away_id,
                "kickoff_time": match.kickoff,
                "home_score": match.home_score if finished else None,
                "away_score": match.away_score if finished else None,
                "status": match.status,
                "venue": match.venue,
                "home_red_cards": match.home_red_cards,
                "away_red_cards": match.away_red_cards,
                "updated_at": self.clock(),
            },
            conflict_columns=["id"],
        )

    async def _write_schedule(self, competition: Competition, sid: str, matches: list[MatchData]) -> int:
        skipped: Counter = Counter()
        groups = build_gameweek_groups(competition, matches, skipped)
        for reason, count in skipped.items():
            record_sync_skip(competition.key, reason, count)

        if competition.is_knockout:
            await delete_legacy_gameweeks(self.session, sid)

        written = 0
        for group in groups:
            written += await self._write_gameweek(competition, sid, group)
        return written

    async def _commit_or_rollback(self, writer):
        try:
            result = await writer
            await self.session.commit()
            return result
        except Exception:
            await self.session.rollback()
            raise

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def sync_teams(self, competition_key: str) -> int:
        """Upsert every team the provider lists for a competition."""
        competition = get_competition(competition_key)
        teams = await self.provider.get_teams(competition.code)
        count = await self._commit_or_rollback(self._write_teams(competition, teams))
        logger.info(f"Synced {count} teams for {competition.key}")
        return count

    async def sync_season(self, competition_key: str) -> str:
        """Store the provider's current season and mark it current."""
        competition = get_competition(competition_key)
        season = await self.provider.get_current_season(competition.code)
        sid = await self._commit_or_rollback(self._write_season(competition, season))
        logger.info(f"Synced season {season_name(season)} for {competition.key}")
        return sid

    async def sync_matches(self, competition_key: str, sid: str) -> int:
        """Rebuild the gameweek / matchday / match hierarchy of a season."""
        competition = get_competition(competition_key)
        matches = await self.provider.get_matches(competition.code)
        count = await self._commit_or_rollback(self._write_schedule(competition, sid, matches))
        record_matches_upserted(competition.key, count)
        logger.info(f"Synced {count} matches for {competition.key}")
        return count

    async def sync_competition(self, competition_key: str) -> dict:
        """
        Full sync of one competition: teams, season, then schedule.

        All three payloads are fetched before the first write, and everything
        is committed in one transaction.

        Returns:
            {"teams_synced", "season_id", "matches_synced"}
        """
        competition = get_competition(competition_key)
        logger.info(f"Starting full sync for {competition.key}...")

        teams = await self.provider.get_teams(competition.code)
        season = await self.provider.get_current_season(competition.code)
        matches = await self.provider.get_matches(competition.code)

        async def write_all():
            teams_synced = await self._write_teams(competition, teams)
            sid = await self._write_season(competition, season)
            matches_synced = await self._write_schedule(competition, sid, matches)
            return teams_synced, sid, matches_synced

        teams_synced, sid, matches_synced = await self._commit_or_rollback(write_all())
        record_matches_upserted(competition.key, matches_synced)

        result = {
            "teams_synced": teams_synced,
            "season_id": sid,
            "matches_synced": matches_synced,
        }
        logger.info(f"Completed sync for {competition.key}: {result}")
        return result

    async def sync_all(self, competition_keys: Optional[list[str]] = None) -> dict:
        """
        Sync several competitions in turn, pausing between them for the
        provider's rate limit. A failing competition is logged and reported
        without stopping the others.
        """
        keys = competition_keys or settings.sync_competitions
        results = {}
        for index, key in enumerate(keys):
            if index > 0 and settings.INTER_COMPETITION_DELAY_SECONDS > 0:
                await asyncio.sleep(settings.INTER_COMPETITION_DELAY_SECONDS)
            try:
                results[key] = await self.sync_competition(key)
            except Exception as e:
                logger.error(f"Error syncing {key}: {e}")
                results[key] = {"error": str(e)}
        return results

    async def update_results(self, competition_key: str) -> int:
        """
        Refresh scores of recently finished matches.

        Only rows whose score or status actually changes are written. A score
        correction on an already-finished match clears its predictions' points
        so the next scoring pass recomputes them.

        Returns:
            Number of matches that changed.
        """
        competition = get_competition(competition_key)
        today = self.clock().date()
        finished = await self.provider.get_matches(
            competition.code,
            status="FINISHED",
            date_from=today - timedelta(days=settings.RESULTS_LOOKBACK_DAYS),
            date_to=today,
        )
        updated = await self._commit_or_rollback(self._write_results(competition, finished))
        record_results_updated(competition.key, updated)
        logger.info(f"Updated {updated} match results for {competition.key}")
        return updated

    async def _write_results(self, competition: Competition, finished: list[MatchData]) -> int:
        now = self.clock()
        updated = 0
        touched_gameweeks: set[str] = set()
        corrected_gameweeks: set[str] = set()
        missing_score = 0

        for match in finished:
            if match.home_score is None or match.away_score is None:
                missing_score += 1
                continue

            mid = match_id(competition, match.external_id)
            result = await self.session.execute(
                select(Match.status, Match.home_score, Match.away_score, Matchday.gameweek_id)
                .join(Matchday, Matchday.id == Match.matchday_id)
                .where(Match.id == mid)
            )
            stored = result.first()
            if stored is None:
                continue

            status, home, away, gameweek_id = stored
            if (status, home, away) == (MatchStatus.FINISHED.value, match.home_score, match.away_score):
                continue

            if status == MatchStatus.FINISHED.value:
                logger.warning(
                    f"Score correction for {mid}: {home}-{away} -> {match.home_score}-{match.away_score}"
                )
                await self.session.execute(
                    update(Prediction)
                    .where(Prediction.match_id == mid)
                    .values(points=None, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
                corrected_gameweeks.add(gameweek_id)

            await self.session.execute(
                update(Match)
                .where(Match.id == mid)
                .values(
                    home_score=match.home_score,
                    away_score=match.away_score,
                    status=MatchStatus.FINISHED.value,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            touched_gameweeks.add(gameweek_id)
            updated += 1

        if missing_score:
            logger.warning(f"[{competition.key}] {missing_score} finished match(es) without a score")
            record_sync_skip(competition.key, "no_score", missing_score)

        for gameweek_id in sorted(touched_gameweeks):
            await self._refresh_gameweek_status(gameweek_id, now)
        for gameweek_id in sorted(corrected_gameweeks):
            await refresh_gameweek_scores(self.session, gameweek_id)
        return updated

    async def _refresh_gameweek_status(self, gameweek_id: str, now: datetime) -> None:
        """Re-derive a stored gameweek status from its matches."""
        deadline = (
            await self.session.execute(select(Gameweek.deadline).where(Gameweek.id == gameweek_id))
        ).scalar_one_or_none()
        if deadline is None:
            return
        statuses = (
            await self.session.execute(
                select(Match.status)
                .join(Matchday, Matchday.id == Match.matchday_id)
                .where(Matchday.gameweek_id == gameweek_id)
            )
        ).scalars().all()
        await self.session.execute(
            update(Gameweek)
            .where(Gameweek.id == gameweek_id)
            .values(status=derive_status(deadline, statuses, now), updated_at=now)
            .execution_options(synchronize_session=False)
        )

    async def refresh_results(self, competition_key: str) -> dict:
        """
        Result refresh followed by scoring of every finished match that still
        has unscored predictions in the competition.
        """
        updated = await self.update_results(competition_key)
        scored_matches, scored_predictions = await score_pending_predictions(
            self.session, competition_key
        )
        return {
            "updated": updated,
            "scored_matches": scored_matches,
            "scored_predictions": scored_predictions,
        }

    async def get_sync_status(self) -> dict:
        """Per-competition row counts for the current season."""
        status = {}
        for key in COMPETITIONS:
            teams = (
                await self.session.execute(select(func.count(Team.id)).where(Team.competition == key))
            ).scalar_one()
            seasons = (
                await self.session.execute(select(func.count(Season.id)).where(Season.competition == key))
            ).scalar_one()
            current = (
                await self.session.execute(
                    select(Season.id).where(Season.competition == key, Season.is_current.is_(True))
                )
            ).scalar_one_or_none()

            gameweeks = matches = 0
            if current:
                gameweeks = (
                    await self.session.execute(
                        select(func.count(Gameweek.id)).where(Gameweek.season_id == current)
                    )
                ).scalar_one()
                matches = (
                    await self.session.execute(
                        select(func.count(Match.id))
                        .join(Matchday, Matchday.id == Match.matchday_id)
                        .join(Gameweek, Gameweek.id == Matchday.gameweek_id)
                        .where(Gameweek.season_id == current)
                    )
                ).scalar_one()

            status[key] = {
                "teams": teams,
                "seasons": seasons,
                "current_season_id": current,
                "gameweeks": gameweeks,
                "matches": matches,
            }
        return status


def create_sync_pipeline(session: AsyncSession) -> SyncPipeline:
    """Factory function to create a sync pipeline with the football-data.org provider."""
    return SyncPipeline(provider=FootballDataProvider(), session=session)
