"""Tests for the pure ranking rules."""

from scoreline.leaderboard.ranking import Standing, count_strictly_ahead, is_ahead, rank_standings


class TestRankStandings:
    def test_ties_share_rank_and_skip(self):
        ranked = rank_standings(
            [
                Standing("carol", total_points=7, exact_scores=1),
                Standing("alice", total_points=10, exact_scores=2),
                Standing("bob", total_points=10, exact_scores=2),
                Standing("dave", total_points=3),
            ]
        )
        assert [(s.user_id, s.rank) for s in ranked] == [
            ("alice", 1),
            ("bob", 1),
            ("carol", 3),
            ("dave", 4),
        ]

    def test_exact_scores_break_points_tie(self):
        ranked = rank_standings(
            [
                Standing("a", total_points=6, exact_scores=0, correct_results=6),
                Standing("b", total_points=6, exact_scores=2, correct_results=0),
            ]
        )
        assert [(s.user_id, s.rank) for s in ranked] == [("b", 1), ("a", 2)]

    def test_correct_results_order_but_do_not_split_rank(self):
        ranked = rank_standings(
            [
                Standing("a", total_points=5, exact_scores=1, correct_results=1),
                Standing("b", total_points=5, exact_scores=1, correct_results=2),
            ]
        )
        assert [s.user_id for s in ranked] == ["b", "a"]
        assert [s.rank for s in ranked] == [1, 1]

    def test_empty(self):
        assert rank_standings([]) == []


class TestStrictlyAhead:
    def test_is_ahead(self):
        assert is_ahead((5, 0), (4, 3))
        assert is_ahead((5, 2), (5, 1))
        assert not is_ahead((5, 1), (5, 1))
        assert not is_ahead((4, 9), (5, 0))

    def test_count_matches_full_ranking(self):
        standings = rank_standings(
            [
                Standing("a", total_points=9, exact_scores=1),
                Standing("b", total_points=9, exact_scores=1),
                Standing("c", total_points=9, exact_scores=0),
                Standing("d", total_points=2, exact_scores=0),
            ]
        )
        for s in standings:
            assert count_strictly_ahead(standings, s.total_points, s.exact_scores) + 1 == s.rank
