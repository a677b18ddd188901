"""Tests for gameweek grouping and numbering."""

import random
from collections import Counter
from datetime import datetime

from scoreline.etl.competitions import CHAMPIONS_LEAGUE, PREMIER_LEAGUE
from scoreline.etl.stages import (
    SKIP_ALL_TBD_GROUP,
    SKIP_MATCHDAY_OUT_OF_RANGE,
    SKIP_NO_MATCHDAY,
    SKIP_TBD_TEAM,
    SKIP_UNKNOWN_STAGE,
    build_gameweek_groups,
    group_knockout,
    group_round_robin,
    knockout_gameweek_name,
    normalize_stage,
)

from tests.conftest import make_match


def cl_matches():
    return [
        make_match(1, datetime(2024, 9, 17, 20), 1, stage="LEAGUE_STAGE"),
        make_match(2, datetime(2024, 9, 18, 20), 1, home=3, away=4, stage="LEAGUE_STAGE"),
        make_match(3, datetime(2024, 10, 1, 20), 2, stage="LEAGUE_STAGE"),
        make_match(4, datetime(2025, 2, 11, 20), 1, stage="PLAYOFFS"),
        make_match(5, datetime(2025, 3, 4, 20), 1, stage="LAST_16"),
        make_match(6, datetime(2025, 3, 11, 20), 2, stage="LAST_16"),
        make_match(7, datetime(2025, 5, 31, 19), None, stage="FINAL"),
    ]


class TestRoundRobin:
    def test_gameweek_number_is_matchday(self):
        matches = [
            make_match(3, datetime(2024, 8, 24, 14), 2),
            make_match(1, datetime(2024, 8, 16, 19), 1),
            make_match(2, datetime(2024, 8, 17, 14), 1, home=3, away=4),
        ]
        groups = group_round_robin(matches)

        assert [g.number for g in groups] == [1, 2]
        assert [g.name for g in groups] == ["Gameweek 1", "Gameweek 2"]
        assert [m.external_id for m in groups[0].matches] == [1, 2]
        assert groups[0].stage is None

    def test_gameweek_id_has_no_stage(self):
        groups = group_round_robin([make_match(1, datetime(2024, 8, 16, 19), 5)])
        assert groups[0].gameweek_id("premier_league-2287") == "premier_league-2287-gw5"

    def test_missing_matchday_is_skipped(self):
        skipped = Counter()
        groups = group_round_robin(
            [make_match(1, datetime(2024, 8, 16, 19), None), make_match(2, datetime(2024, 8, 16, 19), 1)],
            skipped=skipped,
        )
        assert len(groups) == 1
        assert skipped[SKIP_NO_MATCHDAY] == 1

    def test_matches_sorted_by_kickoff_then_id(self):
        kickoff = datetime(2024, 8, 16, 19)
        groups = group_round_robin(
            [
                make_match(9, kickoff, 1),
                make_match(4, kickoff, 1),
                make_match(1, datetime(2024, 8, 17, 12), 1),
            ]
        )
        assert [m.external_id for m in groups[0].matches] == [4, 9, 1]


class TestKnockout:
    def test_stage_offsets(self):
        groups = group_knockout(cl_matches())
        numbers = {(g.stage, g.matchday): g.number for g in groups}

        assert numbers == {
            ("LEAGUE_STAGE", 1): 1,
            ("LEAGUE_STAGE", 2): 2,
            ("PLAYOFFS", 1): 9,
            ("LAST_16", 1): 11,
            ("LAST_16", 2): 12,
            ("FINAL", 1): 17,
        }

    def test_numbering_independent_of_input_order(self):
        matches = cl_matches()
        expected = [(g.gameweek_id("s"), g.number) for g in group_knockout(matches)]

        shuffled = list(matches)
        random.Random(7).shuffle(shuffled)
        assert [(g.gameweek_id("s"), g.number) for g in group_knockout(shuffled)] == expected

    def test_numbers_do_not_move_when_later_stage_appears(self):
        before = {g.gameweek_id("s"): g.number for g in group_knockout(cl_matches()[:3])}
        after = {g.gameweek_id("s"): g.number for g in group_knockout(cl_matches())}
        for gameweek_id, number in before.items():
            assert after[gameweek_id] == number

    def test_gameweek_ids_carry_stage(self):
        ids = [g.gameweek_id("champions_league-2300") for g in group_knockout(cl_matches())]
        assert "champions_league-2300-LEAGUE_STAGE-gw1" in ids
        assert "champions_league-2300-LAST_16-gw2" in ids
        assert "champions_league-2300-FINAL-gw1" in ids

    def test_final_without_matchday_is_kept(self):
        groups = group_knockout([make_match(7, datetime(2025, 5, 31, 19), None, stage="FINAL")])
        assert len(groups) == 1
        assert groups[0].number == 17
        assert groups[0].name == "Final"

    def test_names(self):
        names = {g.number: g.name for g in group_knockout(cl_matches())}
        assert names[1] == "League Phase - MD 1"
        assert names[9] == "Playoffs - Leg 1"
        assert names[12] == "Round of 16 - Leg 2"

    def test_single_leg_semi_final_has_plain_name(self):
        assert knockout_gameweek_name("SEMI_FINALS", 1, 1) == "Semi-Finals"
        assert knockout_gameweek_name("SEMI_FINALS", 2, 2) == "Semi-Finals - Leg 2"

    def test_league_stage_labels_are_normalized(self):
        assert normalize_stage("LEAGUE_STAGE_MATCHDAY_3") == "LEAGUE_STAGE"
        assert normalize_stage("LAST_16") == "LAST_16"
        assert normalize_stage(None) is None

    def test_unknown_stage_is_skipped(self):
        skipped = Counter()
        groups = group_knockout(
            [make_match(1, datetime(2024, 7, 9, 19), 1, stage="QUALIFICATION_ROUND_1")],
            skipped=skipped,
        )
        assert groups == []
        assert skipped[SKIP_UNKNOWN_STAGE] == 1

    def test_matchday_beyond_stage_slots_is_skipped(self):
        skipped = Counter()
        groups = group_knockout(
            [
                make_match(1, datetime(2025, 3, 4, 20), 3, stage="LAST_16"),
                make_match(2, datetime(2025, 3, 11, 20), 2, stage="LAST_16"),
            ],
            skipped=skipped,
        )
        assert [g.number for g in groups] == [12]
        assert skipped[SKIP_MATCHDAY_OUT_OF_RANGE] == 1


class TestUnresolvedTeams:
    def test_tbd_match_dropped_from_group(self):
        skipped = Counter()
        groups = group_knockout(
            [
                make_match(1, datetime(2025, 4, 8, 20), 1, stage="QUARTER_FINALS"),
                make_match(2, datetime(2025, 4, 9, 20), 1, home=None, stage="QUARTER_FINALS"),
            ],
            skipped=skipped,
        )
        assert [m.external_id for m in groups[0].matches] == [1]
        assert skipped[SKIP_TBD_TEAM] == 1

    def test_all_tbd_group_not_created(self):
        skipped = Counter()
        groups = group_knockout(
            [
                make_match(1, datetime(2025, 4, 8, 20), 1, stage="QUARTER_FINALS"),
                make_match(2, datetime(2025, 4, 29, 20), 1, home=None, away=None, stage="SEMI_FINALS"),
            ],
            skipped=skipped,
        )
        assert [g.stage for g in groups] == ["QUARTER_FINALS"]
        assert skipped[SKIP_ALL_TBD_GROUP] == 1


class TestBuildGameweekGroups:
    def test_format_selects_scheme(self):
        matches = [make_match(1, datetime(2025, 3, 4, 20), 1, stage="LAST_16")]

        assert build_gameweek_groups(CHAMPIONS_LEAGUE, matches)[0].number == 11
        assert build_gameweek_groups(PREMIER_LEAGUE, matches)[0].number == 1
