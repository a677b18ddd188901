"""Shared fixtures: in-memory database, fake provider and data builders."""

import os

# Settings are read at import time; configure before importing the package.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("INTER_COMPETITION_DELAY_SECONDS", "0")

from datetime import date, datetime
from typing import Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from scoreline import models  # noqa: F401
from scoreline.etl.base import DataProvider, MatchData, ProviderError, SeasonData, TeamData
from scoreline.etl.pipeline import SyncPipeline

# Before any deadline of the fixture season
NOW = datetime(2024, 8, 1, 12, 0)

PL_SEASON = SeasonData(
    external_id=2287,
    start_date=date(2024, 8, 16),
    end_date=date(2025, 5, 25),
    current_matchday=1,
)
PL_SEASON_ID = "premier_league-2287"

CL_SEASON = SeasonData(
    external_id=2300,
    start_date=date(2024, 9, 17),
    end_date=date(2025, 5, 31),
    current_matchday=1,
)
CL_SEASON_ID = "champions_league-2300"


def make_team(external_id: int, name: Optional[str] = None) -> TeamData:
    name = name or f"Team {external_id}"
    return TeamData(
        external_id=external_id,
        name=name,
        short_name=name,
        code=f"T{external_id:02d}"[:3],
        crest_url=f"https://crests.test/{external_id}.png",
    )


def make_match(
    external_id: int,
    kickoff: datetime,
    matchday: Optional[int],
    home: Optional[int] = 1,
    away: Optional[int] = 2,
    stage: Optional[str] = None,
    status: str = "scheduled",
    home_score: Optional[int] = None,
    away_score: Optional[int] = None,
) -> MatchData:
    return MatchData(
        external_id=external_id,
        kickoff=kickoff,
        status=status,
        stage=stage,
        matchday=matchday,
        home_team=make_team(home) if home is not None else None,
        away_team=make_team(away) if away is not None else None,
        home_score=home_score,
        away_score=away_score,
    )


def pl_teams() -> list[TeamData]:
    return [make_team(i) for i in range(1, 5)]


def pl_matches() -> list[MatchData]:
    """Gameweek 1 spread over two days, gameweek 2 on one day."""
    return [
        make_match(101, datetime(2024, 8, 16, 19, 0), 1, home=1, away=2, stage="REGULAR_SEASON"),
        make_match(102, datetime(2024, 8, 17, 14, 0), 1, home=3, away=4, stage="REGULAR_SEASON"),
        make_match(103, datetime(2024, 8, 24, 14, 0), 2, home=2, away=3, stage="REGULAR_SEASON"),
    ]


class FakeProvider(DataProvider):
    """In-memory provider keyed by competition code."""

    def __init__(self, teams=None, seasons=None, matches=None, failing=None):
        self.teams: dict[str, list[TeamData]] = teams or {}
        self.seasons: dict[str, SeasonData] = seasons or {}
        self.matches: dict[str, list[MatchData]] = matches or {}
        self.failing: set[str] = set(failing or ())
        self.calls: list[tuple] = []
        self.closed = False

    def _check(self, competition_code: str) -> None:
        if competition_code in self.failing:
            raise ProviderError(f"Football API error: 500 - {competition_code} unavailable")

    async def get_teams(self, competition_code: str) -> list[TeamData]:
        self.calls.append(("teams", competition_code))
        self._check(competition_code)
        return list(self.teams.get(competition_code, []))

    async def get_current_season(self, competition_code: str) -> SeasonData:
        self.calls.append(("season", competition_code))
        self._check(competition_code)
        return self.seasons[competition_code]

    async def get_matches(self, competition_code, status=None, date_from=None, date_to=None):
        self.calls.append(("matches", competition_code, status, date_from, date_to))
        self._check(competition_code)
        matches = list(self.matches.get(competition_code, []))
        if status == "FINISHED":
            matches = [m for m in matches if m.status == "finished"]
        if date_from:
            matches = [m for m in matches if m.kickoff.date() >= date_from]
        if date_to:
            matches = [m for m in matches if m.kickoff.date() <= date_to]
        return matches

    async def close(self) -> None:
        self.closed = True


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine) -> AsyncSession:
    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with factory() as session:
        yield session


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider(
        teams={"PL": pl_teams()},
        seasons={"PL": PL_SEASON, "CL": CL_SEASON},
        matches={"PL": pl_matches()},
    )


@pytest.fixture
def pipeline(provider, session) -> SyncPipeline:
    return SyncPipeline(provider=provider, session=session, clock=lambda: NOW)
