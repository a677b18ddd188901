"""Tests for the schedule sync pipeline against an in-memory database."""

from datetime import date, datetime
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

from scoreline.etl.base import ProviderError, SeasonData
from scoreline.etl.competitions import UnknownCompetitionError
from scoreline.etl.pipeline import SyncPipeline, season_name
from scoreline.models import Gameweek, League, Match, Matchday, Prediction, Season, Team, UserGameweekScore

from tests.conftest import CL_SEASON_ID, NOW, PL_SEASON_ID, FakeProvider, make_match, pl_matches


async def count(session, column, *where):
    return (await session.execute(select(func.count(column)).where(*where))).scalar_one()


def cl_provider(matches):
    return FakeProvider(
        teams={"CL": []},
        seasons={"CL": SeasonData(2300, date(2024, 9, 17), date(2025, 5, 31))},
        matches={"CL": matches},
    )


LEGACY_GAMEWEEK_ID = f"{CL_SEASON_ID}-gw1"


async def seed_legacy_schedule(session):
    """Champions League gameweek stored under the stage-less id, with one prediction."""
    legacy_id = LEGACY_GAMEWEEK_ID
    session.add(Season(id=CL_SEASON_ID, name="2024-25", competition="champions_league",
                       start_date=date(2024, 9, 17), end_date=date(2025, 5, 31), is_current=True))
    session.add(Team(id="champions_league-1", name="A", short_name="A", code="AAA", competition="champions_league"))
    session.add(Team(id="champions_league-2", name="B", short_name="B", code="BBB", competition="champions_league"))
    session.add(League(id="league-cl", name="Friends", competition="champions_league"))
    session.add(Gameweek(id=legacy_id, season_id=CL_SEASON_ID, number=1,
                         deadline=datetime(2024, 9, 17, 19), starts_at=datetime(2024, 9, 17, 20),
                         ends_at=datetime(2024, 9, 17, 22)))
    session.add(Matchday(id=f"{legacy_id}-day1", gameweek_id=legacy_id, date=date(2024, 9, 17), day_number=1))
    session.add(Match(id="champions_league-match-1", matchday_id=f"{legacy_id}-day1",
                      home_team_id="champions_league-1", away_team_id="champions_league-2",
                      kickoff_time=datetime(2024, 9, 17, 20)))
    session.add(Prediction(user_id="u1", match_id="champions_league-match-1", league_id="league-cl",
                           home_score=1, away_score=0))
    session.add(UserGameweekScore(user_id="u1", gameweek_id=legacy_id, league_id="league-cl"))
    await session.commit()


async def schedule_snapshot(session):
    """Every synced row, minus bookkeeping timestamps, keyed by table."""
    snapshot = {}
    for model in (Team, Season, Gameweek, Matchday, Match):
        table = model.__table__
        columns = [c for c in table.columns if c.name not in ("created_at", "updated_at")]
        rows = await session.execute(select(*columns).order_by(table.c.id))
        snapshot[table.name] = [tuple(row) for row in rows.all()]
    return snapshot


class TestSyncCompetition:
    @pytest.mark.asyncio
    async def test_full_sync(self, pipeline, session):
        result = await pipeline.sync_competition("premier_league")

        assert result == {"teams_synced": 4, "season_id": PL_SEASON_ID, "matches_synced": 3}

        season = await session.get(Season, PL_SEASON_ID)
        assert season.name == "2024-25"
        assert season.is_current

        gameweeks = (
            await session.execute(select(Gameweek).order_by(Gameweek.number))
        ).scalars().all()
        assert [(g.id, g.number, g.name) for g in gameweeks] == [
            (f"{PL_SEASON_ID}-gw1", 1, "Gameweek 1"),
            (f"{PL_SEASON_ID}-gw2", 2, "Gameweek 2"),
        ]
        assert gameweeks[0].deadline == datetime(2024, 8, 16, 18, 0)
        assert gameweeks[0].ends_at == datetime(2024, 8, 17, 16, 0)
        assert gameweeks[0].status == "upcoming"
        assert gameweeks[0].stage is None

    @pytest.mark.asyncio
    async def test_matchdays_split_by_date(self, pipeline, session):
        await pipeline.sync_competition("premier_league")

        rows = (
            await session.execute(
                select(Matchday.id, Matchday.date, Matchday.day_number)
                .where(Matchday.gameweek_id == f"{PL_SEASON_ID}-gw1")
                .order_by(Matchday.day_number)
            )
        ).all()
        assert rows == [
            (f"{PL_SEASON_ID}-gw1-day1", date(2024, 8, 16), 1),
            (f"{PL_SEASON_ID}-gw1-day2", date(2024, 8, 17), 2),
        ]

        match = await session.get(Match, "premier_league-match-102")
        assert match.matchday_id == f"{PL_SEASON_ID}-gw1-day2"
        assert match.home_team_id == "premier_league-3"

    @pytest.mark.asyncio
    async def test_resync_is_idempotent(self, pipeline, session):
        await pipeline.sync_competition("premier_league")
        await pipeline.sync_competition("premier_league")

        assert await count(session, Team.id) == 4
        assert await count(session, Season.id) == 1
        assert await count(session, Gameweek.id) == 2
        assert await count(session, Matchday.id) == 3
        assert await count(session, Match.id) == 3

    @pytest.mark.asyncio
    async def test_resync_leaves_rows_unchanged(self, pipeline, session):
        await pipeline.sync_competition("premier_league")
        first = await schedule_snapshot(session)

        await pipeline.sync_competition("premier_league")

        assert await schedule_snapshot(session) == first
        assert len(first["matches"]) == 3

    @pytest.mark.asyncio
    async def test_unfinished_match_scores_not_stored(self, provider, pipeline, session):
        provider.matches["PL"][0].home_score = 1
        provider.matches["PL"][0].away_score = 0

        await pipeline.sync_competition("premier_league")

        row = (
            await session.execute(
                select(Match.home_score, Match.away_score).where(Match.id == "premier_league-match-101")
            )
        ).one()
        assert row == (None, None)

    @pytest.mark.asyncio
    async def test_new_season_replaces_current(self, provider, pipeline, session):
        await pipeline.sync_competition("premier_league")
        provider.seasons["PL"] = SeasonData(2400, date(2025, 8, 15), date(2026, 5, 24))
        provider.matches["PL"] = []

        await pipeline.sync_competition("premier_league")

        current = (
            await session.execute(select(Season.id).where(Season.is_current.is_(True)))
        ).scalars().all()
        assert current == ["premier_league-2400"]

    @pytest.mark.asyncio
    async def test_team_seen_only_in_matches_is_created(self, provider, pipeline, session):
        provider.teams["PL"] = []

        await pipeline.sync_competition("premier_league")

        assert await count(session, Team.id) == 4

    @pytest.mark.asyncio
    async def test_team_sync_updates_cosmetics(self, provider, pipeline, session):
        await pipeline.sync_teams("premier_league")
        provider.teams["PL"][0].name = "Renamed FC"

        await pipeline.sync_teams("premier_league")

        name = (
            await session.execute(select(Team.name).where(Team.id == "premier_league-1"))
        ).scalar_one()
        assert name == "Renamed FC"

    @pytest.mark.asyncio
    async def test_unknown_competition(self, pipeline):
        with pytest.raises(UnknownCompetitionError):
            await pipeline.sync_competition("serie_a")

    @pytest.mark.asyncio
    async def test_provider_failure_writes_nothing(self, provider, pipeline, session):
        provider.failing.add("PL")

        with pytest.raises(ProviderError):
            await pipeline.sync_competition("premier_league")

        assert await count(session, Team.id) == 0

    @pytest.mark.asyncio
    async def test_write_failure_rolls_back(self, pipeline, session, monkeypatch):
        monkeypatch.setattr(pipeline, "_write_schedule", AsyncMock(side_effect=RuntimeError("boom")))

        with pytest.raises(RuntimeError):
            await pipeline.sync_competition("premier_league")

        assert await count(session, Team.id) == 0
        assert await count(session, Season.id) == 0


class TestKnockoutSync:
    @pytest.mark.asyncio
    async def test_stage_ids_and_numbers(self, session):
        provider = cl_provider(
            [
                make_match(5, datetime(2025, 3, 4, 20), 1, stage="LAST_16"),
                make_match(1, datetime(2024, 9, 17, 20), 1, stage="LEAGUE_STAGE"),
                make_match(7, datetime(2025, 5, 31, 19), None, stage="FINAL"),
            ]
        )
        pipeline = SyncPipeline(provider, session, clock=lambda: NOW)

        await pipeline.sync_competition("champions_league")

        rows = (
            await session.execute(select(Gameweek.id, Gameweek.number, Gameweek.stage).order_by(Gameweek.number))
        ).all()
        assert rows == [
            (f"{CL_SEASON_ID}-LEAGUE_STAGE-gw1", 1, "LEAGUE_STAGE"),
            (f"{CL_SEASON_ID}-LAST_16-gw1", 11, "LAST_16"),
            (f"{CL_SEASON_ID}-FINAL-gw1", 17, "FINAL"),
        ]

    @pytest.mark.asyncio
    async def test_later_rounds_do_not_renumber(self, session):
        league_phase = [
            make_match(1, datetime(2024, 9, 17, 20), 1, stage="LEAGUE_STAGE"),
            make_match(2, datetime(2024, 10, 1, 20), 2, stage="LEAGUE_STAGE"),
        ]
        provider = cl_provider(list(league_phase))
        pipeline = SyncPipeline(provider, session, clock=lambda: NOW)
        await pipeline.sync_competition("champions_league")
        before = (await session.execute(select(Gameweek.id, Gameweek.number).order_by(Gameweek.number))).all()

        provider.matches["CL"] = league_phase + [
            make_match(9, datetime(2025, 2, 11, 20), 1, stage="PLAYOFFS"),
            make_match(10, datetime(2025, 2, 18, 20), 2, stage="PLAYOFFS"),
        ]
        await pipeline.sync_competition("champions_league")
        after = (await session.execute(select(Gameweek.id, Gameweek.number).order_by(Gameweek.number))).all()

        assert after[: len(before)] == before
        assert [number for _, number in after] == [1, 2, 9, 10]

    @pytest.mark.asyncio
    async def test_tbd_matches_not_stored(self, session):
        provider = cl_provider(
            [
                make_match(1, datetime(2025, 4, 8, 20), 1, stage="QUARTER_FINALS"),
                make_match(2, datetime(2025, 4, 9, 20), 1, home=None, stage="QUARTER_FINALS"),
                make_match(3, datetime(2025, 4, 29, 20), 1, home=None, away=None, stage="SEMI_FINALS"),
            ]
        )
        pipeline = SyncPipeline(provider, session, clock=lambda: NOW)

        result = await pipeline.sync_competition("champions_league")

        assert result["matches_synced"] == 1
        assert await count(session, Gameweek.id) == 1
        assert (await session.get(Match, "champions_league-match-2")) is None

    @pytest.mark.asyncio
    async def test_legacy_gameweeks_removed(self, session):
        await seed_legacy_schedule(session)

        provider = cl_provider([make_match(1, datetime(2024, 9, 17, 20), 1, stage="LEAGUE_STAGE")])
        pipeline = SyncPipeline(provider, session, clock=lambda: NOW)
        await pipeline.sync_competition("champions_league")

        gameweek_ids = (await session.execute(select(Gameweek.id))).scalars().all()
        assert gameweek_ids == [f"{CL_SEASON_ID}-LEAGUE_STAGE-gw1"]
        assert await count(session, Prediction.id) == 0
        assert await count(session, UserGameweekScore.id) == 0

        match_matchday = (
            await session.execute(select(Match.matchday_id).where(Match.id == "champions_league-match-1"))
        ).scalar_one()
        assert match_matchday == f"{CL_SEASON_ID}-LEAGUE_STAGE-gw1-day1"

    @pytest.mark.asyncio
    async def test_failure_after_cleanup_keeps_legacy_rows(self, session, monkeypatch):
        await seed_legacy_schedule(session)

        provider = cl_provider([make_match(1, datetime(2024, 9, 17, 20), 1, stage="LEAGUE_STAGE")])
        pipeline = SyncPipeline(provider, session, clock=lambda: NOW)
        monkeypatch.setattr(pipeline, "_write_gameweek", AsyncMock(side_effect=RuntimeError("boom")))

        with pytest.raises(RuntimeError):
            await pipeline.sync_competition("champions_league")

        gameweek_ids = (await session.execute(select(Gameweek.id))).scalars().all()
        assert gameweek_ids == [LEGACY_GAMEWEEK_ID]
        assert await count(session, Prediction.id) == 1
        assert await count(session, UserGameweekScore.id) == 1


class TestSyncAll:
    @pytest.mark.asyncio
    async def test_failure_is_isolated(self, provider, pipeline):
        provider.failing.add("CL")

        results = await pipeline.sync_all(["champions_league", "premier_league"])

        assert "error" in results["champions_league"]
        assert results["premier_league"]["matches_synced"] == 3

    @pytest.mark.asyncio
    async def test_sync_status(self, pipeline):
        await pipeline.sync_competition("premier_league")

        status = await pipeline.get_sync_status()

        assert status["premier_league"] == {
            "teams": 4,
            "seasons": 1,
            "current_season_id": PL_SEASON_ID,
            "gameweeks": 2,
            "matches": 3,
        }
        assert status["champions_league"]["current_season_id"] is None
        assert status["champions_league"]["matches"] == 0


def test_season_name():
    assert season_name(SeasonData(1, date(2024, 8, 16), date(2025, 5, 25))) == "2024-25"
    assert season_name(SeasonData(1, date(1999, 8, 7), date(2000, 5, 14))) == "1999-00"


def test_fixture_matches_are_resolved():
    assert all(m.is_resolved for m in pl_matches())


class TestStepwiseSync:
    @pytest.mark.asyncio
    async def test_season_then_matches(self, pipeline, session):
        sid = await pipeline.sync_season("premier_league")
        synced = await pipeline.sync_matches("premier_league", sid)

        assert sid == PL_SEASON_ID
        assert synced == 3
        assert await count(session, Gameweek.id, Gameweek.season_id == sid) == 2
