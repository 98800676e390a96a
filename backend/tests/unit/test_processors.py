"""
Unit tests for Sleeper payload processing.
"""

import pytest

from lineup_service.schemas import RosterRole, RosterSnapshot
from lineup_service.services.sleeper.processors import SleeperDataProcessor

from conftest import PLAYERS, ROSTERS


@pytest.fixture
def processor():
    return SleeperDataProcessor()


class TestRosterProcessing:
    """Test roster splitting and player resolution."""

    def test_split_roster_excludes_starters_and_reserve_from_bench(self, processor):
        roster = RosterSnapshot(**ROSTERS[0])

        starters, bench, reserve = processor.split_roster(roster)

        assert starters == ["4046", "4034", "0"]
        assert bench == ["6794"]
        assert reserve == ["5859"]

    def test_missing_lists_become_empty(self, processor):
        roster = RosterSnapshot(owner_id="u9", starters=None, players=None, reserve=None)

        assert processor.split_roster(roster) == ([], [], [])

    def test_build_player_list_drops_unknown_ids_and_keeps_order(self, processor):
        players = processor.build_player_list(["4034", "0", "4046"], PLAYERS, RosterRole.STARTER)

        assert [p.player_id for p in players] == ["4034", "4046"]
        assert all(p.role is RosterRole.STARTER for p in players)
        assert players[0].full_name == "Christian McCaffrey"

    def test_build_player_list_handles_none(self, processor):
        assert processor.build_player_list(None, PLAYERS) == []


class TestPayloadShapes:
    """Test normalization of projection and stat payloads."""

    def test_projection_map_from_keyed_object(self, processor):
        payload = {"4046": {"stats": {"pts_ppr": 20.0}}, "4034": {"pts_ppr": 15.0}, "x": None}

        assert processor.normalize_projection_map(payload) == {
            "4046": {"pts_ppr": 20.0},
            "4034": {"pts_ppr": 15.0},
        }

    def test_projection_map_from_row_list(self, processor):
        payload = [
            {"player_id": "4046", "stats": {"pts_ppr": 20.0}},
            {"player_id": None, "stats": {"pts_ppr": 1.0}},
            {"player_id": "4034"},
        ]

        assert processor.normalize_projection_map(payload) == {"4046": {"pts_ppr": 20.0}}

    def test_projection_map_from_unexpected_payload(self, processor):
        assert processor.normalize_projection_map("nope") == {}

    def test_reshape_weekly_stats(self, processor):
        rows = [
            {"player_id": "4046", "stats": {"pts_ppr": 25.0}, "team": "KC",
             "opponent": "NO", "week": 4, "player": {"first_name": "Patrick"}},
            {"player_id": "4034"},
        ]

        stats = processor.reshape_weekly_stats(rows)

        assert stats == {
            "4046": {
                "pts_ppr": 25.0,
                "player_info": {"first_name": "Patrick"},
                "team": "KC",
                "opponent": "NO",
                "week": 4,
            }
        }

    def test_weekly_series_keys_become_ints(self, processor):
        series = processor.normalize_weekly_series({"1": {"a": 1}, "12": {"b": 2}, "bad": {}})

        assert series == {1: {"a": 1}, 12: {"b": 2}}

    def test_week_points_reads_nested_or_flat_fields(self):
        assert SleeperDataProcessor.week_points({"stats": {"pts_ppr": 7}}, "pts_ppr") == 7.0
        assert SleeperDataProcessor.week_points({"pts_ppr": 3.5}, "pts_ppr") == 3.5
        assert SleeperDataProcessor.week_points({"stats": {}}, "pts_ppr") is None
        assert SleeperDataProcessor.week_points(None, "pts_ppr") is None

    def test_extract_scoring_settings(self, processor):
        assert processor.extract_scoring_settings({"scoring_settings": {"rec": 1}}) == {"rec": 1}
        assert processor.extract_scoring_settings({"name": "x"}) == {}
        assert processor.extract_scoring_settings(None) == {}


class TestFreeAgents:
    """Test free-agent selection."""

    def test_unrostered_players_active_first_then_rank(self, processor):
        free_agents = processor.select_free_agents(PLAYERS, ROSTERS, limit=10)

        assert [p.player_id for p in free_agents] == ["7564", "9999", "KC"]

    def test_position_filter_and_limit(self, processor):
        assert [p.player_id for p in processor.select_free_agents(PLAYERS, ROSTERS, position="WR")] == ["7564"]
        assert len(processor.select_free_agents(PLAYERS, ROSTERS, limit=1)) == 1

    def test_overlong_ids_are_skipped(self, processor):
        catalog = {"12345678901": {"player_id": "12345678901", "status": "Active"}}

        assert processor.select_free_agents(catalog, []) == []


class TestEspnPlayers:
    def test_maps_pool_entries(self, processor):
        entries = [
            {"playerPoolEntry": {"player": {"id": 12345, "firstName": "Patrick", "lastName": "Mahomes",
                                            "defaultPositionId": "QB", "proTeamId": "KC"}},
             "lineupSlotId": 0},
            {"lineupSlotId": 20},
        ]

        players = processor.process_espn_player_list(entries, RosterRole.STARTER)

        assert len(players) == 1
        assert players[0].player_id == "12345"
        assert players[0].status == "Active"
        assert players[0].role is RosterRole.STARTER
