"""Abstract base class for schedule data providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional


class ProviderError(RuntimeError):
    """Network failure, non-2xx response or missing credentials."""


class ProviderPayloadError(ProviderError):
    """Provider answered, but the payload is not what we can parse."""


@dataclass
class TeamData:
    """Data transfer object for team information."""

    external_id: int
    name: str
    short_name: str
    code: str
    crest_url: Optional[str]


@dataclass
class SeasonData:
    """Current season of a competition."""

    external_id: int
    start_date: date
    end_date: date
    current_matchday: Optional[int] = None


@dataclass
class MatchData:
    """Data transfer object for match information."""

    external_id: int
    kickoff: datetime  # naive UTC
    status: str  # internal vocabulary (see MatchStatus)
    stage: Optional[str]
    matchday: Optional[int]
    # None while the pairing is still "to be decided"
    home_team: Optional[TeamData]
    away_team: Optional[TeamData]
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    venue: Optional[str] = None
    home_red_cards: int = 0
    away_red_cards: int = 0

    @property
    def is_resolved(self) -> bool:
        """Both teams are known."""
        return self.home_team is not None and self.away_team is not None


class DataProvider(ABC):
    """Abstract base class for football schedule providers."""

    @abstractmethod
    async def get_teams(self, competition_code: str) -> list[TeamData]:
        """
        Fetch the teams registered in a competition.

        Args:
            competition_code: Provider competition code (e.g. "PL").
        """
        pass

    @abstractmethod
    async def get_current_season(self, competition_code: str) -> SeasonData:
        """Fetch current season metadata for a competition."""
        pass

    @abstractmethod
    async def get_matches(
        self,
        competition_code: str,
        status: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[MatchData]:
        """
        Fetch matches of a competition's current season.

        Args:
            competition_code: Provider competition code.
            status: Optional provider status filter (e.g. "FINISHED").
            date_from: Optional start date filter (inclusive).
            date_to: Optional end date filter (inclusive).

        Returns:
            List of MatchData objects.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        pass
