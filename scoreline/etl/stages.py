"""
Stage normalization: provider matches -> ordered gameweek groups.

Round-robin competitions map matchday N to gameweek N. Knockout
competitions number gameweeks across stages with a fixed offset table so
that a stage's numbers never move when later stages are drawn:

    LEAGUE_STAGE   MD 1-8  -> 1-8
    PLAYOFFS       MD 1-2  -> 9-10
    LAST_16        MD 1-2  -> 11-12
    QUARTER_FINALS MD 1-2  -> 13-14
    SEMI_FINALS    MD 1-2  -> 15-16
    FINAL          MD 1    -> 17
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Optional

from scoreline.etl.base import MatchData
from scoreline.etl.competitions import Competition, CompetitionFormat

logger = logging.getLogger(__name__)

LEAGUE_STAGE = "LEAGUE_STAGE"
FINAL = "FINAL"
SEMI_FINALS = "SEMI_FINALS"

STAGE_ORDER = {
    LEAGUE_STAGE: 0,
    "PLAYOFFS": 1,
    "LAST_16": 2,
    "QUARTER_FINALS": 3,
    SEMI_FINALS: 4,
    FINAL: 5,
}

# Matchday slots per stage; offsets are the running sum of earlier stages
STAGE_MATCHDAYS = {
    LEAGUE_STAGE: 8,
    "PLAYOFFS": 2,
    "LAST_16": 2,
    "QUARTER_FINALS": 2,
    SEMI_FINALS: 2,
    FINAL: 1,
}

STAGE_NUMBER_OFFSET = {
    LEAGUE_STAGE: 0,
    "PLAYOFFS": 8,
    "LAST_16": 10,
    "QUARTER_FINALS": 12,
    SEMI_FINALS: 14,
    FINAL: 16,
}

STAGE_DISPLAY = {
    LEAGUE_STAGE: "League Phase",
    "PLAYOFFS": "Playoffs",
    "LAST_16": "Round of 16",
    "QUARTER_FINALS": "Quarter-Finals",
    SEMI_FINALS: "Semi-Finals",
    FINAL: "Final",
}

# Skip reasons (also used as metric labels)
SKIP_NO_MATCHDAY = "no_matchday"
SKIP_UNKNOWN_STAGE = "unknown_stage"
SKIP_MATCHDAY_OUT_OF_RANGE = "matchday_out_of_range"
SKIP_TBD_TEAM = "tbd_team"
SKIP_ALL_TBD_GROUP = "all_tbd_group"


@dataclass
class GameweekGroup:
    """Matches that share one gameweek, with its sequential number and name."""

    stage: Optional[str]  # None for round-robin
    matchday: int  # matchday within the stage
    number: int
    name: str
    matches: list[MatchData] = field(default_factory=list)

    def gameweek_id(self, season_id: str) -> str:
        """Stable identity of this round, independent of sync order."""
        if self.stage:
            return f"{season_id}-{self.stage}-gw{self.matchday}"
        return f"{season_id}-gw{self.matchday}"


def normalize_stage(stage: Optional[str]) -> Optional[str]:
    """Collapse LEAGUE_STAGE_MATCHDAY_<n> style labels into LEAGUE_STAGE."""
    if stage and stage.startswith(LEAGUE_STAGE):
        return LEAGUE_STAGE
    return stage


def knockout_gameweek_name(stage: str, matchday: int, matchdays_in_stage: int) -> str:
    display = STAGE_DISPLAY.get(stage, stage)
    if stage == FINAL:
        return display
    if stage == SEMI_FINALS and matchdays_in_stage <= 1:
        return display
    if stage == LEAGUE_STAGE:
        return f"{display} - MD {matchday}"
    return f"{display} - Leg {matchday}"


def _resolve_groups(
    groups: list[GameweekGroup],
    competition_key: str,
    skipped: Counter,
) -> list[GameweekGroup]:
    """Drop unresolved (TBD) matches, then groups left empty."""
    kept = []
    for group in groups:
        resolved = [m for m in group.matches if m.is_resolved]
        unresolved = len(group.matches) - len(resolved)
        if not resolved:
            logger.info(
                f"[{competition_key}] Skipping {group.stage or 'gameweek'} MD{group.matchday} - all teams TBD"
            )
            skipped[SKIP_ALL_TBD_GROUP] += 1
            continue
        if unresolved:
            logger.info(
                f"[{competition_key}] {unresolved} match(es) in {group.name} skipped - teams TBD"
            )
            skipped[SKIP_TBD_TEAM] += unresolved
        group.matches = sorted(resolved, key=lambda m: (m.kickoff, m.external_id))
        kept.append(group)
    return kept


def group_round_robin(
    matches: list[MatchData],
    competition_key: str = "",
    skipped: Optional[Counter] = None,
) -> list[GameweekGroup]:
    """Round-robin numbering: gameweek number equals provider matchday."""
    skipped = skipped if skipped is not None else Counter()
    by_matchday: dict[int, GameweekGroup] = {}

    for match in matches:
        if not match.matchday:
            logger.info(f"[{competition_key}] Skipping match {match.external_id} - no matchday assigned")
            skipped[SKIP_NO_MATCHDAY] += 1
            continue
        group = by_matchday.get(match.matchday)
        if group is None:
            group = GameweekGroup(
                stage=None,
                matchday=match.matchday,
                number=match.matchday,
                name=f"Gameweek {match.matchday}",
            )
            by_matchday[match.matchday] = group
        group.matches.append(match)

    groups = [by_matchday[md] for md in sorted(by_matchday)]
    return _resolve_groups(groups, competition_key, skipped)


def group_knockout(
    matches: list[MatchData],
    competition_key: str = "",
    skipped: Optional[Counter] = None,
) -> list[GameweekGroup]:
    """Knockout numbering: offset[stage] + matchday within the stage."""
    skipped = skipped if skipped is not None else Counter()
    by_key: dict[tuple[str, int], list[MatchData]] = {}

    for match in matches:
        stage = normalize_stage(match.stage)
        matchday = match.matchday

        # A single-match final usually carries no matchday
        if not matchday and stage == FINAL:
            matchday = 1

        if not matchday:
            logger.info(f"[{competition_key}] Skipping match {match.external_id} - no matchday assigned")
            skipped[SKIP_NO_MATCHDAY] += 1
            continue
        if stage not in STAGE_ORDER:
            logger.warning(
                f"[{competition_key}] Skipping match {match.external_id} - unknown stage {stage!r}"
            )
            skipped[SKIP_UNKNOWN_STAGE] += 1
            continue
        if matchday > STAGE_MATCHDAYS[stage]:
            logger.warning(
                f"[{competition_key}] Skipping match {match.external_id} - "
                f"{stage} matchday {matchday} exceeds {STAGE_MATCHDAYS[stage]} slots"
            )
            skipped[SKIP_MATCHDAY_OUT_OF_RANGE] += 1
            continue

        by_key.setdefault((stage, matchday), []).append(match)

    ordered_keys = sorted(by_key, key=lambda k: (STAGE_ORDER[k[0]], k[1]))
    matchdays_per_stage = Counter(stage for stage, _ in ordered_keys)

    groups = [
        GameweekGroup(
            stage=stage,
            matchday=matchday,
            number=STAGE_NUMBER_OFFSET[stage] + matchday,
            name=knockout_gameweek_name(stage, matchday, matchdays_per_stage[stage]),
            matches=by_key[(stage, matchday)],
        )
        for stage, matchday in ordered_keys
    ]
    return _resolve_groups(groups, competition_key, skipped)


def build_gameweek_groups(
    competition: Competition,
    matches: list[MatchData],
    skipped: Optional[Counter] = None,
) -> list[GameweekGroup]:
    """Select the numbering scheme for the competition's format."""
    if competition.format is CompetitionFormat.KNOCKOUT:
        return group_knockout(matches, competition.key, skipped)
    return group_round_robin(matches, competition.key, skipped)
