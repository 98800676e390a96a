"""
Sleeper Data Processors
Transform and normalize Sleeper API responses.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
import logging

from lineup_service.schemas import PlayerRecord, RosterRole, RosterSnapshot

logger = logging.getLogger(__name__)


class SleeperDataProcessor:
    """
    Transform and normalize Sleeper API responses.

    Handles reshaping of list payloads into player-keyed maps, roster
    splitting and point extraction from weekly projection/stat entries.
    """

    # Team defenses use the team abbreviation as id; real players are numeric
    # strings of at most this length.
    MAX_PLAYER_ID_LENGTH = 10

    def to_player_record(
        self, player_id: str, raw: Mapping[str, Any], role: Optional[RosterRole] = None
    ) -> PlayerRecord:
        return PlayerRecord(**{**raw, "player_id": player_id, "role": role})

    def build_player_list(
        self,
        player_ids: Optional[Iterable[str]],
        catalog: Mapping[str, Mapping[str, Any]],
        role: Optional[RosterRole] = None,
    ) -> List[PlayerRecord]:
        """
        Resolve player ids against the catalog.

        Ids unknown to the catalog (e.g. "0" for an empty starter slot) are
        dropped; order is preserved.
        """
        if not player_ids:
            return []
        players = []
        for player_id in player_ids:
            raw = catalog.get(player_id)
            if raw is None:
                continue
            players.append(self.to_player_record(player_id, raw, role))
        return players

    def split_roster(self, roster: RosterSnapshot) -> Tuple[List[str], List[str], List[str]]:
        """
        Split a roster into starter, bench and reserve id lists.

        Bench is every rostered player that is neither starting nor on reserve.
        """
        starters = list(roster.starters)
        reserve = list(roster.reserve)
        excluded = set(starters) | set(reserve)
        bench = [player_id for player_id in roster.players if player_id not in excluded]
        return starters, bench, reserve

    def extract_scoring_settings(self, league: Optional[Mapping[str, Any]]) -> Dict[str, float]:
        if not league:
            return {}
        return dict(league.get("scoring_settings") or {})

    def normalize_projection_map(self, payload: Any) -> Dict[str, Dict[str, Any]]:
        """
        Shape a bulk projection payload into ``{player_id: stats}``.

        Accepts both the keyed object form and the list-of-rows form
        (``[{"player_id": ..., "stats": {...}}]``).
        """
        projections: Dict[str, Dict[str, Any]] = {}
        if isinstance(payload, dict):
            for player_id, entry in payload.items():
                if not isinstance(entry, dict):
                    continue
                stats = entry.get("stats")
                projections[str(player_id)] = stats if isinstance(stats, dict) else entry
        elif isinstance(payload, list):
            for row in payload:
                if not isinstance(row, dict) or not row.get("player_id"):
                    continue
                stats = row.get("stats")
                if isinstance(stats, dict):
                    projections[str(row["player_id"])] = stats
        else:
            logger.warning(f"Unexpected projections payload type: {type(payload).__name__}")
        return projections

    def reshape_weekly_stats(self, rows: Any) -> Dict[str, Dict[str, Any]]:
        """
        Convert the league-wide weekly stats list into ``{player_id: stats}``.

        Each value holds the raw stat fields plus ``player_info``, ``team``,
        ``opponent`` and ``week`` from the row.
        """
        if not isinstance(rows, list):
            logger.warning(f"Unexpected weekly stats payload type: {type(rows).__name__}")
            return {}
        stats_by_player: Dict[str, Dict[str, Any]] = {}
        for row in rows:
            if not isinstance(row, dict):
                continue
            player_id = row.get("player_id")
            stats = row.get("stats")
            if player_id and isinstance(stats, dict):
                stats_by_player[str(player_id)] = {
                    **stats,
                    "player_info": row.get("player"),
                    "team": row.get("team"),
                    "opponent": row.get("opponent"),
                    "week": row.get("week"),
                }
        return stats_by_player

    def normalize_weekly_series(self, payload: Any) -> Dict[int, Any]:
        """Key a per-player ``grouping=week`` payload by integer week number."""
        if not isinstance(payload, dict):
            return {}
        series: Dict[int, Any] = {}
        for week, entry in payload.items():
            try:
                series[int(week)] = entry
            except (TypeError, ValueError):
                continue
        return series

    @staticmethod
    def week_points(entry: Any, points_field: str) -> Optional[float]:
        """
        Read the points field from one weekly entry.

        Entries either nest their stat fields under ``stats`` or carry them
        directly. Returns None when the field is absent.
        """
        if not isinstance(entry, dict):
            return None
        stats = entry.get("stats")
        if isinstance(stats, dict) and stats.get(points_field) is not None:
            return float(stats[points_field])
        if entry.get(points_field) is not None:
            return float(entry[points_field])
        return None

    def select_free_agents(
        self,
        catalog: Mapping[str, Mapping[str, Any]],
        rosters: Iterable[Mapping[str, Any]],
        position: Optional[str] = None,
        limit: int = 50,
    ) -> List[PlayerRecord]:
        """
        Players not on any roster, active first then by search rank.

        Args:
            catalog: Player catalog keyed by player id
            rosters: Raw league rosters
            position: Optional fantasy position filter
            limit: Maximum players returned

        Returns:
            List of PlayerRecord
        """
        rostered = set()
        for roster in rosters:
            rostered.update(str(pid) for pid in (roster.get("players") or []))

        candidates = []
        for raw in catalog.values():
            player_id = raw.get("player_id")
            if not isinstance(player_id, str) or len(player_id) > self.MAX_PLAYER_ID_LENGTH:
                continue
            if player_id in rostered:
                continue
            if position and raw.get("fantasy_positions") and position not in raw["fantasy_positions"]:
                continue
            candidates.append(raw)

        def sort_key(raw: Mapping[str, Any]):
            rank = raw.get("search_rank")
            return (
                0 if raw.get("status") == "Active" else 1,
                rank if isinstance(rank, (int, float)) else float("inf"),
            )

        candidates.sort(key=sort_key)
        return [self.to_player_record(raw["player_id"], raw) for raw in candidates[:limit]]

    def process_espn_player_list(
        self, entries: Optional[Iterable[Mapping[str, Any]]], role: Optional[RosterRole] = None
    ) -> List[PlayerRecord]:
        """Map ESPN roster / player-pool entries onto PlayerRecord."""
        if not entries:
            return []
        players = []
        for entry in entries:
            pool_entry = entry.get("playerPoolEntry")
            if not pool_entry:
                continue
            player = pool_entry.get("player", {})
            players.append(
                PlayerRecord(
                    player_id=player.get("id"),
                    first_name=player.get("firstName"),
                    last_name=player.get("lastName"),
                    position=player.get("defaultPositionId"),
                    team=player.get("proTeamId"),
                    status="Injured" if player.get("injured") else "Active",
                    role=role,
                    lineup_slot_id=entry.get("lineupSlotId"),
                )
            )
        return players
