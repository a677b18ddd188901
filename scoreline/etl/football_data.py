"""football-data.org (v4) data provider implementation."""

import asyncio
import logging
import time
from datetime import date, datetime, timezone
from typing import Optional

import httpx

from scoreline.config import get_settings
from scoreline.etl.base import (
    DataProvider,
    MatchData,
    ProviderError,
    ProviderPayloadError,
    SeasonData,
    TeamData,
)
from scoreline.models import MatchStatus
from scoreline.telemetry import record_provider_error, record_provider_request

logger = logging.getLogger(__name__)

settings = get_settings()

PROVIDER = "football_data"

STATUS_MAP = {
    "SCHEDULED": MatchStatus.SCHEDULED,
    "TIMED": MatchStatus.SCHEDULED,
    "IN_PLAY": MatchStatus.LIVE,
    "PAUSED": MatchStatus.LIVE,
    "LIVE": MatchStatus.LIVE,
    "FINISHED": MatchStatus.FINISHED,
    "AWARDED": MatchStatus.FINISHED,
    "POSTPONED": MatchStatus.POSTPONED,
    "CANCELLED": MatchStatus.CANCELLED,
    "SUSPENDED": MatchStatus.CANCELLED,
}


def map_match_status(provider_status: Optional[str]) -> str:
    """Map a football-data.org status code onto the internal vocabulary."""
    return STATUS_MAP.get(provider_status or "", MatchStatus.SCHEDULED).value


def parse_utc_datetime(value: str) -> datetime:
    """Parse an ISO-8601 timestamp into naive UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def team_code(tla: Optional[str], short_name: Optional[str]) -> str:
    """3-letter code: provider TLA, else derived from the short name."""
    if tla:
        return tla
    if short_name:
        return short_name[:3].upper()
    return "???"


class FootballDataProvider(DataProvider):
    """football-data.org provider with request pacing (no retries)."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        requests_per_minute: Optional[int] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.FOOTBALL_DATA_API_KEY
        self.base_url = (base_url or settings.FOOTBALL_DATA_BASE_URL).rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=settings.FOOTBALL_DATA_TIMEOUT_SECONDS)
        if requests_per_minute is None:
            requests_per_minute = settings.API_REQUESTS_PER_MINUTE
        self._min_interval = 60 / requests_per_minute if requests_per_minute > 0 else 0.0
        self._last_request_at: Optional[float] = None
        self._pace_lock = asyncio.Lock()

    async def _pace(self) -> None:
        """Keep at least the configured spacing between requests."""
        async with self._pace_lock:
            if self._min_interval and self._last_request_at is not None:
                wait = self._min_interval - (time.monotonic() - self._last_request_at)
                if wait > 0:
                    await asyncio.sleep(wait)
            self._last_request_at = time.monotonic()

    async def _request(self, endpoint: str, entity: str, params: Optional[dict] = None) -> dict:
        """
        Perform one GET and return the decoded JSON object.

        Any failure is raised as ProviderError; the caller decides whether to retry.
        """
        if not self.api_key:
            raise ProviderError("FOOTBALL_DATA_API_KEY is not set")

        await self._pace()

        metric_endpoint = endpoint.split("?")[0]
        url = f"{self.base_url}/{endpoint}"
        start_time = time.monotonic()
        try:
            response = await self.client.get(
                url, params=params, headers={"X-Auth-Token": self.api_key}
            )
        except httpx.TimeoutException as e:
            latency_ms = (time.monotonic() - start_time) * 1000
            record_provider_request(PROVIDER, entity, metric_endpoint, 0, latency_ms)
            record_provider_error(PROVIDER, entity, "timeout")
            logger.error(f"Timeout calling {endpoint}: {e}")
            raise ProviderError(f"Football API timeout: {endpoint}") from e
        except httpx.RequestError as e:
            latency_ms = (time.monotonic() - start_time) * 1000
            record_provider_request(PROVIDER, entity, metric_endpoint, 0, latency_ms)
            record_provider_error(PROVIDER, entity, "request_error")
            logger.error(f"Request error calling {endpoint}: {e}")
            raise ProviderError(f"Football API request failed: {e}") from e

        latency_ms = (time.monotonic() - start_time) * 1000
        record_provider_request(PROVIDER, entity, metric_endpoint, response.status_code, latency_ms)

        if response.status_code >= 400:
            record_provider_error(PROVIDER, entity, f"http_{response.status_code // 100}xx")
            logger.error(f"Football API error {response.status_code} on {endpoint}")
            raise ProviderError(f"Football API error: {response.status_code} - {response.text}")

        try:
            data = response.json()
        except ValueError as e:
            record_provider_error(PROVIDER, entity, "bad_payload")
            raise ProviderPayloadError(f"Football API returned invalid JSON for {endpoint}") from e

        if not isinstance(data, dict):
            record_provider_error(PROVIDER, entity, "bad_payload")
            raise ProviderPayloadError(f"Football API returned a non-object payload for {endpoint}")
        return data

    @staticmethod
    def _collection(data: dict, key: str, endpoint: str) -> list:
        items = data.get(key)
        if not isinstance(items, list):
            raise ProviderPayloadError(f"Football API payload for {endpoint} has no '{key}' list")
        return items

    def _parse_team(self, team: Optional[dict]) -> Optional[TeamData]:
        """Parse a team; None while the pairing is still to be decided."""
        if not team or team.get("id") is None or not team.get("name"):
            return None
        name = team["name"]
        short_name = team.get("shortName") or name
        return TeamData(
            external_id=team["id"],
            name=name,
            short_name=short_name,
            code=team_code(team.get("tla"), team.get("shortName")),
            crest_url=team.get("crest") or None,
        )

    @staticmethod
    def _count_red_cards(match: dict, home_id: Optional[int], away_id: Optional[int]) -> tuple[int, int]:
        home = away = 0
        for booking in match.get("bookings") or []:
            if booking.get("card") != "RED":
                continue
            team_id = (booking.get("team") or {}).get("id")
            if team_id is not None and team_id == home_id:
                home += 1
            elif team_id is not None and team_id == away_id:
                away += 1
        return home, away

    def _parse_match(self, match: dict) -> MatchData:
        """Parse API match response into MatchData."""
        if match.get("id") is None or not match.get("utcDate"):
            raise ProviderPayloadError(f"Match without id/utcDate in payload: {match.get('id')}")

        try:
            kickoff = parse_utc_datetime(match["utcDate"])
        except ValueError as e:
            raise ProviderPayloadError(f"Bad utcDate for match {match['id']}: {match['utcDate']}") from e

        home_raw = match.get("homeTeam") or {}
        away_raw = match.get("awayTeam") or {}
        full_time = (match.get("score") or {}).get("fullTime") or {}
        home_red, away_red = self._count_red_cards(match, home_raw.get("id"), away_raw.get("id"))

        return MatchData(
            external_id=match["id"],
            kickoff=kickoff,
            status=map_match_status(match.get("status")),
            stage=match.get("stage"),
            matchday=match.get("matchday"),
            home_team=self._parse_team(home_raw),
            away_team=self._parse_team(away_raw),
            home_score=full_time.get("home"),
            away_score=full_time.get("away"),
            venue=match.get("venue"),
            home_red_cards=home_red,
            away_red_cards=away_red,
        )

    async def get_teams(self, competition_code: str) -> list[TeamData]:
        endpoint = f"competitions/{competition_code}/teams"
        data = await self._request(endpoint, entity="teams")

        teams = []
        for raw in self._collection(data, "teams", endpoint):
            team = self._parse_team(raw)
            if team is None:
                logger.warning(f"Skipping team without id/name in {competition_code}: {raw}")
                continue
            teams.append(team)
        return teams

    async def get_current_season(self, competition_code: str) -> SeasonData:
        endpoint = f"competitions/{competition_code}"
        data = await self._request(endpoint, entity="competition")

        season = data.get("currentSeason")
        if not isinstance(season, dict) or season.get("id") is None:
            raise ProviderPayloadError(f"Competition {competition_code} has no currentSeason")
        try:
            start_date = date.fromisoformat(season["startDate"])
            end_date = date.fromisoformat(season["endDate"])
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderPayloadError(f"Bad season dates for {competition_code}: {season}") from e

        return SeasonData(
            external_id=season["id"],
            start_date=start_date,
            end_date=end_date,
            current_matchday=season.get("currentMatchday"),
        )

    async def get_matches(
        self,
        competition_code: str,
        status: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[MatchData]:
        endpoint = f"competitions/{competition_code}/matches"
        params = {}
        if status:
            params["status"] = status
        if date_from:
            params["dateFrom"] = date_from.isoformat()
        if date_to:
            params["dateTo"] = date_to.isoformat()

        data = await self._request(endpoint, entity="matches", params=params or None)
        return [self._parse_match(m) for m in self._collection(data, "matches", endpoint)]

    async def close(self) -> None:
        await self.client.aclose()
