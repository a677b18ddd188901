"""Database models using SQLModel."""

import uuid
from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import NaiveDatetime
from sqlalchemy import JSON, Column, DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel


class MatchStatus(str, Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    FINISHED = "finished"
    POSTPONED = "postponed"
    CANCELLED = "cancelled"


# A gameweek is complete once none of its matches can still be played
SETTLED_MATCH_STATUSES = frozenset(
    {MatchStatus.FINISHED.value, MatchStatus.CANCELLED.value, MatchStatus.POSTPONED.value}
)


class GameweekStatus(str, Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"


class Team(SQLModel, table=True):
    """Team of a competition, keyed by competition-qualified provider id."""

    __tablename__ = "teams"

    id: str = Field(primary_key=True, max_length=64, description="<competition>-<provider id>")
    name: str = Field(max_length=255)
    short_name: str = Field(max_length=100)
    code: str = Field(max_length=10, description="3-letter code")
    logo: Optional[str] = Field(default=None, max_length=500, description="Crest URL")
    competition: str = Field(max_length=50, index=True)

    created_at: NaiveDatetime = Field(default_factory=datetime.utcnow)
    updated_at: NaiveDatetime = Field(default_factory=datetime.utcnow)


class Season(SQLModel, table=True):
    """Competition season; at most one is current per competition."""

    __tablename__ = "seasons"

    id: str = Field(primary_key=True, max_length=64)
    name: str = Field(max_length=20, description="e.g. '2024-25'")
    competition: str = Field(max_length=50, index=True)
    start_date: date
    end_date: date
    is_current: bool = Field(default=False, index=True)
    current_matchday: Optional[int] = Field(default=None, description="Informational only")

    created_at: NaiveDatetime = Field(default_factory=datetime.utcnow)
    updated_at: NaiveDatetime = Field(default_factory=datetime.utcnow)


class Gameweek(SQLModel, table=True):
    """Unit of prediction-taking; one deadline governs all its matches."""

    __tablename__ = "gameweeks"
    __table_args__ = (
        UniqueConstraint("season_id", "number", name="uq_gameweek_season_number"),
    )

    id: str = Field(primary_key=True, max_length=100)
    season_id: str = Field(foreign_key="seasons.id", index=True)
    number: int = Field(description="Sequential, stable across re-sync")
    name: Optional[str] = Field(default=None, max_length=100)
    stage: Optional[str] = Field(default=None, max_length=30, description="NULL for round-robin")
    deadline: NaiveDatetime = Field(description="Prediction cutoff (UTC)")
    starts_at: NaiveDatetime
    ends_at: NaiveDatetime
    status: str = Field(default=GameweekStatus.UPCOMING.value, max_length=20)

    created_at: NaiveDatetime = Field(default_factory=datetime.utcnow)
    updated_at: NaiveDatetime = Field(default_factory=datetime.utcnow)


class Matchday(SQLModel, table=True):
    """Calendar-day subdivision of a gameweek."""

    __tablename__ = "matchdays"
    __table_args__ = (
        UniqueConstraint("gameweek_id", "day_number", name="uq_matchday_gameweek_day"),
    )

    id: str = Field(primary_key=True, max_length=120)
    gameweek_id: str = Field(foreign_key="gameweeks.id", index=True)
    date: date
    day_number: int = Field(description="1-based, ordered by date")

    created_at: NaiveDatetime = Field(default_factory=datetime.utcnow)


class Match(SQLModel, table=True):
    """Fixture. Scores are non-null only once the match is finished."""

    __tablename__ = "matches"

    id: str = Field(primary_key=True, max_length=64)
    matchday_id: str = Field(foreign_key="matchdays.id", index=True)
    home_team_id: str = Field(foreign_key="teams.id", index=True)
    away_team_id: str = Field(foreign_key="teams.id", index=True)
    kickoff_time: NaiveDatetime = Field(index=True)

    home_score: Optional[int] = Field(default=None, description="NULL until played")
    away_score: Optional[int] = Field(default=None, description="NULL until played")
    status: str = Field(default=MatchStatus.SCHEDULED.value, max_length=20)
    venue: Optional[str] = Field(default=None, max_length=255)
    home_red_cards: int = Field(default=0)
    away_red_cards: int = Field(default=0)

    created_at: NaiveDatetime = Field(default_factory=datetime.utcnow)
    updated_at: NaiveDatetime = Field(default_factory=datetime.utcnow)


class League(SQLModel, table=True):
    """Private prediction league. Membership CRUD lives outside this package."""

    __tablename__ = "leagues"

    id: str = Field(primary_key=True, max_length=64)
    name: str = Field(max_length=255)
    competition: str = Field(max_length=50, index=True)

    created_at: NaiveDatetime = Field(default_factory=datetime.utcnow)


class LeagueMember(SQLModel, table=True):
    __tablename__ = "league_members"
    __table_args__ = (
        UniqueConstraint("league_id", "user_id", name="uq_league_member"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    league_id: str = Field(foreign_key="leagues.id", index=True)
    user_id: str = Field(max_length=64, index=True)
    joined_at: NaiveDatetime = Field(default_factory=datetime.utcnow)


class Prediction(SQLModel, table=True):
    """User's predicted score for a match, scoped to a league."""

    __tablename__ = "predictions"
    __table_args__ = (
        UniqueConstraint("user_id", "match_id", "league_id", name="uq_prediction_user_match_league"),
    )

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True, max_length=36)
    user_id: str = Field(max_length=64, index=True)
    match_id: str = Field(foreign_key="matches.id", index=True)
    league_id: str = Field(foreign_key="leagues.id", index=True)
    home_score: int
    away_score: int
    points: Optional[int] = Field(default=None, description="NULL until scored")

    created_at: NaiveDatetime = Field(default_factory=datetime.utcnow)
    updated_at: NaiveDatetime = Field(default_factory=datetime.utcnow)


class UserGameweekScore(SQLModel, table=True):
    """Per (user, gameweek, league) aggregate, recomputed after scoring."""

    __tablename__ = "user_gameweek_scores"
    __table_args__ = (
        UniqueConstraint("user_id", "gameweek_id", "league_id", name="uq_user_gameweek_league"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(max_length=64, index=True)
    gameweek_id: str = Field(foreign_key="gameweeks.id", index=True)
    league_id: str = Field(foreign_key="leagues.id", index=True)
    total_points: int = Field(default=0)
    exact_scores: int = Field(default=0)
    correct_results: int = Field(default=0)
    predicted_matches: int = Field(default=0)
    scored_matches: int = Field(default=0)

    updated_at: NaiveDatetime = Field(default_factory=datetime.utcnow)


class JobRun(SQLModel, table=True):
    """Scheduler job execution record, survives restarts."""

    __tablename__ = "job_runs"

    id: Optional[int] = Field(default=None, primary_key=True)
    job_name: str = Field(max_length=100, index=True)
    status: str = Field(max_length=20, description="ok, error")
    started_at: NaiveDatetime
    finished_at: Optional[NaiveDatetime] = Field(default=None, sa_column=Column(DateTime))
    duration_ms: Optional[int] = None
    error_message: Optional[str] = None
    metrics: Optional[dict] = Field(default=None, sa_column=Column(JSON))
