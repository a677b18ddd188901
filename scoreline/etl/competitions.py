"""Competition configurations and codes for football-data.org."""

from dataclasses import dataclass
from enum import Enum


class UnknownCompetitionError(ValueError):
    """Raised for a competition key that is not configured."""


class CompetitionFormat(Enum):
    """How a competition's matchdays map onto gameweeks."""

    ROUND_ROBIN = "round_robin"  # one table, matchday N is gameweek N
    KNOCKOUT = "knockout"  # league phase followed by knockout stages


@dataclass(frozen=True)
class Competition:
    """Competition configuration."""

    key: str  # internal key, prefixes every stored id
    code: str  # football-data.org competition code
    name: str
    format: CompetitionFormat

    @property
    def is_knockout(self) -> bool:
        return self.format is CompetitionFormat.KNOCKOUT


PREMIER_LEAGUE = Competition(
    key="premier_league",
    code="PL",
    name="Premier League",
    format=CompetitionFormat.ROUND_ROBIN,
)

CHAMPIONS_LEAGUE = Competition(
    key="champions_league",
    code="CL",
    name="UEFA Champions League",
    format=CompetitionFormat.KNOCKOUT,
)

# All competitions dictionary
COMPETITIONS: dict[str, Competition] = {
    comp.key: comp
    for comp in [
        PREMIER_LEAGUE,
        CHAMPIONS_LEAGUE,
    ]
}


def get_competition(key: str) -> Competition:
    """Look up a configured competition by key."""
    try:
        return COMPETITIONS[key]
    except KeyError:
        raise UnknownCompetitionError(
            f"Unknown competition '{key}' (expected one of: {', '.join(COMPETITIONS)})"
        ) from None
