"""
League Data Access
Cached accessors for league rosters, users, scoring settings and the
player catalog, in front of the rate-limited Sleeper client.
"""
import asyncio
import time
from typing import Any, Callable, Dict, List, Optional
import logging

from lineup_service.core.config import detect_default_season
from lineup_service.exceptions import AppException, PlayerDataUnavailable
from lineup_service.schemas import PlayerRecord

from .cache import TTLCache
from .client import SleeperHTTPClient
from .processors import SleeperDataProcessor
from .snapshot import SnapshotStore

logger = logging.getLogger(__name__)

SNAPSHOT_FIELDS = ("player_id", "first_name", "last_name", "position", "team", "status")


class LeagueDataAccess:
    """
    Cache-or-fetch access to league and player catalog data.

    Rosters, users and scoring settings each have their own short-lived
    cache keyed by league id. The player catalog is keyed by sport and kept
    for a day, with an optional on-disk snapshot as a last resort.
    """

    def __init__(
        self,
        client: SleeperHTTPClient,
        rosters_cache: TTLCache,
        users_cache: TTLCache,
        settings_cache: TTLCache,
        players_cache: TTLCache,
        processor: Optional[SleeperDataProcessor] = None,
        snapshot_store: Optional[SnapshotStore] = None,
        snapshot_max_players: int = 100,
        default_sport: str = "nfl",
        default_season: Optional[str] = None,
        max_players_display: int = 50,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        """
        Initialize league data access.

        Args:
            client: Rate-limited Sleeper HTTP client
            rosters_cache: Cache for league rosters
            users_cache: Cache for league users
            settings_cache: Cache for extracted scoring settings
            players_cache: Cache for the player catalog
            processor: Optional SleeperDataProcessor instance
            snapshot_store: Offline snapshot store; None disables the fallback
            snapshot_max_players: Players kept in an offline snapshot
            default_sport: Sport used when none is given
            default_season: Season used when listing a user's leagues
            max_players_display: Default free-agent limit
            clock: Time source returning epoch seconds (default: time.time)
        """
        self.client = client
        self.rosters_cache = rosters_cache
        self.users_cache = users_cache
        self.settings_cache = settings_cache
        self.players_cache = players_cache
        self.processor = processor or SleeperDataProcessor()
        self.snapshot_store = snapshot_store
        self.snapshot_max_players = snapshot_max_players
        self.default_sport = default_sport
        self.default_season = default_season or detect_default_season()
        self.max_players_display = max_players_display
        self._clock = clock or time.time

    # ==================== League data ====================

    async def get_rosters(self, league_id: str) -> List[Dict]:
        """
        Fetch league rosters (5 minute cache).

        Args:
            league_id: Sleeper league id

        Returns:
            Raw roster list as returned by Sleeper
        """
        cache_key = f"rosters_{league_id}"
        cached = self.rosters_cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Using cached rosters for league {league_id}")
            return cached

        generation = self.rosters_cache.generation
        rosters = await self.client.get_league_rosters(league_id) or []
        return self.rosters_cache.put_if_absent(cache_key, rosters, generation)

    async def get_users(self, league_id: str) -> List[Dict]:
        """Fetch league users (5 minute cache)."""
        cache_key = f"users_{league_id}"
        cached = self.users_cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Using cached users for league {league_id}")
            return cached

        generation = self.users_cache.generation
        users = await self.client.get_league_users(league_id) or []
        return self.users_cache.put_if_absent(cache_key, users, generation)

    async def get_scoring_settings(self, league_id: str) -> Dict[str, float]:
        """
        Fetch the league's scoring settings (5 minute cache).

        Only the ``scoring_settings`` sub-object of the league is cached.
        """
        cache_key = f"settings_{league_id}"
        cached = self.settings_cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Using cached scoring settings for league {league_id}")
            return cached

        generation = self.settings_cache.generation
        league = await self.client.get_league(league_id)
        scoring = self.processor.extract_scoring_settings(league)
        return self.settings_cache.put_if_absent(cache_key, scoring, generation)

    async def get_league(self, league_id: str) -> Dict:
        return await self.client.get_league(league_id)

    async def get_matchups(self, league_id: str, week: int) -> List[Dict]:
        return await self.client.get_league_matchups(league_id, week)

    async def get_user(self, username_or_id: str) -> Dict:
        return await self.client.get_user(username_or_id)

    async def get_user_leagues(
        self, user_id: str, sport: Optional[str] = None, season: Optional[str] = None
    ) -> List[Dict]:
        return await self.client.get_user_leagues(
            user_id, sport or self.default_sport, season or self.default_season
        )

    # ==================== Player catalog ====================

    async def get_players(self, sport: Optional[str] = None) -> Dict[str, Dict]:
        """
        Fetch the player catalog (24 hour cache).

        Sleeper recommends fetching the full catalog at most once per day. On a
        cache miss with a failed fetch, an offline snapshot younger than the
        cache duration is restored instead.

        Args:
            sport: Sport key (default: configured sport)

        Returns:
            Mapping of player id to raw player record

        Raises:
            PlayerDataUnavailable: If neither network, cache nor snapshot can serve
        """
        sport = sport or self.default_sport
        cache_key = f"players_{sport}"
        cached = self.players_cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Using cached player catalog for {sport} (24h TTL)")
            return cached

        generation = self.players_cache.generation
        try:
            logger.info(f"Fetching fresh player data from Sleeper for {sport}...")
            players = await self.client.get_all_players(sport) or {}
        except AppException as e:
            logger.error(f"Error fetching players, trying offline snapshot: {e}")
            restored = self._restore_snapshot(cache_key)
            if restored is not None:
                return restored
            raise PlayerDataUnavailable(sport) from e

        # Waiters sharing one deduplicated fetch resume one after another;
        # only the first may store the catalog and its snapshot.
        cached = self.players_cache.get(cache_key)
        if cached is not None:
            return cached
        if not self.players_cache.accepts(generation):
            return players

        now = self._clock()
        self.players_cache.put(cache_key, players, timestamp=now)
        logger.info(f"Fetched player catalog: {len(players)} players")
        await self._write_snapshot(cache_key, players, now)
        return players

    async def _write_snapshot(self, cache_key: str, players: Dict[str, Dict], timestamp: float) -> None:
        if self.snapshot_store is None:
            return
        essential: Dict[str, Dict] = {}
        for player in players.values():
            if len(essential) >= self.snapshot_max_players:
                break
            if player.get("player_id") and player.get("first_name") and player.get("last_name"):
                essential[player["player_id"]] = {field: player.get(field) for field in SNAPSHOT_FIELDS}
        try:
            # Disk write happens off the event loop
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self.snapshot_store.save, cache_key, essential, timestamp)
        except OSError as e:
            logger.warning(f"Failed to store player snapshot: {e}")

    def _restore_snapshot(self, cache_key: str) -> Optional[Dict[str, Dict]]:
        if self.snapshot_store is None:
            return None
        snapshot = self.snapshot_store.load(cache_key)
        if snapshot is None:
            return None
        data, timestamp = snapshot
        age = self._clock() - timestamp
        if age >= self.players_cache.duration_seconds:
            logger.warning(f"Offline player snapshot is stale ({age:.0f}s old)")
            return None
        logger.info(f"Restored {len(data)} players from offline snapshot ({age:.0f}s old)")
        self.players_cache.put(cache_key, data, timestamp=timestamp)
        return data

    async def get_free_agents(
        self,
        league_id: str,
        position: Optional[str] = None,
        limit: Optional[int] = None,
        sport: Optional[str] = None,
    ) -> List[PlayerRecord]:
        """
        Players not rostered by any team in the league.

        Args:
            league_id: Sleeper league id
            position: Optional fantasy position filter (e.g. "WR")
            limit: Maximum players returned (default: MAX_PLAYERS_DISPLAY)
            sport: Sport key for the catalog

        Returns:
            Free agents, active players first then by search rank
        """
        rosters = await self.get_rosters(league_id)
        players = await self.get_players(sport)
        return self.processor.select_free_agents(
            players, rosters, position=position, limit=limit or self.max_players_display
        )

    async def get_trending_players(
        self,
        trend_type: str = "add",
        lookback_hours: int = 24,
        limit: Optional[int] = None,
        sport: Optional[str] = None,
    ) -> List[Dict]:
        """Trending adds/drops, each annotated with its catalog entry (or None)."""
        sport = sport or self.default_sport
        trending = await self.client.get_trending_players(
            sport, trend_type, lookback_hours, limit or self.max_players_display
        )
        players = await self.get_players(sport)
        return [{**trend, "player": players.get(trend.get("player_id"))} for trend in trending]

    # ==================== Cache administration ====================

    def caches(self) -> Dict[str, TTLCache]:
        return {
            "players": self.players_cache,
            "rosters": self.rosters_cache,
            "users": self.users_cache,
            "settings": self.settings_cache,
        }

    def clear(self) -> None:
        for cache in self.caches().values():
            cache.clear()

    def status(self) -> Dict[str, Any]:
        return {name: cache.status() for name, cache in self.caches().items()}
