"""
Projection and Stat Access
Cached accessors for weekly bulk projections, per-player season projections
and stats, league-wide weekly stats and the current NFL state.
"""
from typing import Any, Dict, Optional
import logging

from lineup_service.core.config import detect_default_season
from lineup_service.exceptions import AppException

from .cache import TTLCache
from .client import SleeperHTTPClient
from .processors import SleeperDataProcessor

logger = logging.getLogger(__name__)


class ProjectionStatAccess:
    """
    Cache-or-fetch access to projection and stat payloads.

    Each payload family has its own 30 minute cache so that projections can
    be force-refreshed without discarding stats. Network errors propagate to
    the caller; only the NFL state lookup falls back to defaults.
    """

    def __init__(
        self,
        client: SleeperHTTPClient,
        weekly_projections_cache: TTLCache,
        player_projections_cache: TTLCache,
        player_stats_cache: TTLCache,
        weekly_stats_cache: TTLCache,
        state_cache: TTLCache,
        processor: Optional[SleeperDataProcessor] = None,
        default_season: Optional[str] = None,
    ) -> None:
        """
        Initialize projection/stat access.

        Args:
            client: Rate-limited Sleeper HTTP client
            weekly_projections_cache: Bulk weekly projections
            player_projections_cache: Per-player season projections
            player_stats_cache: Per-player season stats
            weekly_stats_cache: League-wide stats for one week
            state_cache: Current NFL state
            processor: Optional SleeperDataProcessor instance
            default_season: Season reported when the state lookup fails
        """
        self.client = client
        self.weekly_projections_cache = weekly_projections_cache
        self.player_projections_cache = player_projections_cache
        self.player_stats_cache = player_stats_cache
        self.weekly_stats_cache = weekly_stats_cache
        self.state_cache = state_cache
        self.processor = processor or SleeperDataProcessor()
        self.default_season = default_season or detect_default_season()

    async def get_weekly_projections(
        self, season: Any, week: int, season_type: str = "regular"
    ) -> Dict[str, Dict[str, Any]]:
        """
        Bulk projections for every player in one week.

        Args:
            season: Season year
            week: Week number
            season_type: "regular" or "post"

        Returns:
            Mapping of player id to raw projection stats
        """
        cache_key = f"projections_{season}_{week}_{season_type}"
        cached = self.weekly_projections_cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Using cached projections for {cache_key}")
            return cached

        generation = self.weekly_projections_cache.generation
        payload = await self.client.get_weekly_projections(season_type, season, week)
        projections = self.processor.normalize_projection_map(payload)
        logger.info(f"Fetched week {week} projections for {len(projections)} players")
        return self.weekly_projections_cache.put_if_absent(cache_key, projections, generation)

    async def get_player_projections(
        self, player_id: str, season: Any, season_type: str = "regular"
    ) -> Dict[int, Any]:
        """Season-long projections for one player, keyed by week number."""
        cache_key = f"player_projections_{player_id}_{season}_{season_type}"
        cached = self.player_projections_cache.get(cache_key)
        if cached is not None:
            return cached

        generation = self.player_projections_cache.generation
        payload = await self.client.get_player_projections(player_id, season, season_type)
        series = self.processor.normalize_weekly_series(payload)
        return self.player_projections_cache.put_if_absent(cache_key, series, generation)

    async def get_player_stats(
        self, player_id: str, season: Any, season_type: str = "regular"
    ) -> Dict[int, Any]:
        """Season-long actual stats for one player, keyed by week number."""
        cache_key = f"player_stats_{player_id}_{season}_{season_type}"
        cached = self.player_stats_cache.get(cache_key)
        if cached is not None:
            return cached

        generation = self.player_stats_cache.generation
        payload = await self.client.get_player_stats(player_id, season, season_type)
        series = self.processor.normalize_weekly_series(payload)
        return self.player_stats_cache.put_if_absent(cache_key, series, generation)

    async def get_weekly_stats(
        self, season: Any, week: int, season_type: str = "regular"
    ) -> Dict[str, Dict[str, Any]]:
        """
        League-wide actual stats for one week.

        Returns:
            Mapping of player id to that week's stats
        """
        cache_key = f"historical_stats_{season}_{week}_{season_type}"
        cached = self.weekly_stats_cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Using cached historical stats for {cache_key}")
            return cached

        generation = self.weekly_stats_cache.generation
        rows = await self.client.get_weekly_stats(season, week, season_type)
        stats = self.processor.reshape_weekly_stats(rows)
        logger.info(f"Fetched week {week} stats for {len(stats)} players")
        return self.weekly_stats_cache.put_if_absent(cache_key, stats, generation)

    async def get_current_state(self) -> Dict[str, Any]:
        """
        Current week, season and season type.

        Falls back to week 1 of the configured default season if the state
        endpoint cannot be reached.
        """
        cache_key = "nfl_state"
        cached = self.state_cache.get(cache_key)
        if cached is not None:
            return cached

        generation = self.state_cache.generation
        try:
            raw = await self.client.get_state("nfl")
        except AppException as e:
            logger.error(f"Failed to get NFL state: {str(e)}")
            return {"week": 1, "season": self.default_season, "season_type": "regular"}

        state = {
            "week": int(raw.get("week") or 1),
            "season": str(raw.get("season") or self.default_season),
            "season_type": raw.get("season_type") or "regular",
        }
        return self.state_cache.put_if_absent(cache_key, state, generation)

    # ==================== Cache administration ====================

    def caches(self) -> Dict[str, TTLCache]:
        return {
            "weekly_projections": self.weekly_projections_cache,
            "player_projections": self.player_projections_cache,
            "player_stats": self.player_stats_cache,
            "weekly_stats": self.weekly_stats_cache,
            "nfl_state": self.state_cache,
        }

    def clear_projection_caches(self) -> None:
        """Drop cached projections so the next read goes to the network."""
        self.weekly_projections_cache.clear()
        self.player_projections_cache.clear()
        logger.info("Projections cache cleared")

    def clear(self) -> None:
        for cache in self.caches().values():
            cache.clear()

    def status(self) -> Dict[str, Any]:
        return {name: cache.status() for name, cache in self.caches().items()}
