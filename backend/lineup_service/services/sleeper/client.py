"""
Sleeper HTTP Client with Rate Limiting
Handles HTTP requests to the Sleeper API with a per-minute request window,
in-flight request deduplication and exponential backoff on rate-limit errors.
"""

import httpx
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging

from lineup_service.exceptions import RateLimitExceeded, UpstreamHttpError
from lineup_service.services.ratelimit import (
    RateLimitedClient,
    RateLimitWindow,
    SleepFunc,
    parse_retry_after,
)

logger = logging.getLogger(__name__)


class SleeperHTTPClient:
    """
    Async HTTP client for the Sleeper API with rate limiting.

    All requests share one RateLimitedClient, so league, catalog, projection
    and stats endpoints draw from the same per-minute budget.
    """

    SERVICE = "sleeper"
    FANTASY_POSITIONS = ["DEF", "FLEX", "K", "QB", "RB", "TE", "WR"]

    def __init__(
        self,
        base_url: str,
        stats_base_url: str,
        limiter: RateLimitedClient,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ) -> None:
        """
        Initialize HTTP client.

        Args:
            base_url: Versioned league API root (e.g. https://api.sleeper.app/v1)
            stats_base_url: Root serving per-player projections and stats
            limiter: Rate limiting / dedup / retry wrapper
            client: Optional preconfigured httpx.AsyncClient
            timeout: Per-attempt timeout in seconds (default: 30s)
        """
        self.base_url = base_url.rstrip("/")
        self.stats_base_url = stats_base_url.rstrip("/")
        self.limiter = limiter
        self.client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    @classmethod
    def from_settings(
        cls,
        settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[SleepFunc] = None,
    ) -> "SleeperHTTPClient":
        """Build a client from application settings."""
        window = RateLimitWindow(
            limit=settings.SLEEPER_RATE_LIMIT, clock=clock, name=cls.SERVICE
        )
        limiter = RateLimitedClient(
            window,
            max_retries=settings.MAX_RETRIES,
            backoff_base_seconds=settings.BACKOFF_BASE_SECONDS,
            sleep=sleep,
        )
        client = httpx.AsyncClient(
            timeout=settings.HTTP_TIMEOUT_SECONDS,
            follow_redirects=True,
            transport=transport,
        )
        return cls(
            settings.SLEEPER_BASE_URL,
            settings.SLEEPER_STATS_BASE_URL,
            limiter,
            client=client,
        )

    async def get(self, url: str, params: Optional[Any] = None) -> Any:
        """
        Make a rate-limited GET request and decode its JSON body.

        Args:
            url: Absolute URL
            params: Optional query parameters (mapping or list of pairs)

        Returns:
            Decoded JSON payload
        """
        request_url = str(httpx.URL(url, params=params)) if params else url
        return await self.limiter.call(request_url, lambda: self._fetch_json(request_url))

    async def _fetch_json(self, url: str) -> Any:
        try:
            response = await self.client.get(url)
        except httpx.HTTPError as e:
            logger.error(f"HTTP request failed for {url}: {str(e)}")
            raise UpstreamHttpError(self.SERVICE, str(e) or type(e).__name__) from e

        if response.status_code == 429:
            raise RateLimitExceeded(
                f"Upstream rate limit hit for {url}",
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
                service=self.SERVICE,
            )
        if not response.is_success:
            logger.error(f"HTTP request failed for {url}: status {response.status_code}")
            raise UpstreamHttpError(
                self.SERVICE, f"GET {url} failed", upstream_status=response.status_code
            )
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamHttpError(
                self.SERVICE,
                f"Malformed JSON body from {url}",
                upstream_status=response.status_code,
            ) from e

    def _position_params(self) -> List[Tuple[str, str]]:
        return [("position[]", position) for position in self.FANTASY_POSITIONS]

    # ==================== User / League endpoints ====================

    async def get_user(self, username_or_id: str) -> Dict:
        return await self.get(f"{self.base_url}/user/{username_or_id}")

    async def get_user_leagues(self, user_id: str, sport: str, season: str) -> List[Dict]:
        return await self.get(f"{self.base_url}/user/{user_id}/leagues/{sport}/{season}")

    async def get_league(self, league_id: str) -> Dict:
        return await self.get(f"{self.base_url}/league/{league_id}")

    async def get_league_rosters(self, league_id: str) -> List[Dict]:
        return await self.get(f"{self.base_url}/league/{league_id}/rosters")

    async def get_league_users(self, league_id: str) -> List[Dict]:
        return await self.get(f"{self.base_url}/league/{league_id}/users")

    async def get_league_matchups(self, league_id: str, week: int) -> List[Dict]:
        return await self.get(f"{self.base_url}/league/{league_id}/matchups/{week}")

    # ==================== Player endpoints ====================

    async def get_all_players(self, sport: str) -> Dict[str, Dict]:
        """
        Fetch the full player catalog. Sleeper asks clients to call this at
        most once per day.
        """
        return await self.get(f"{self.base_url}/players/{sport}")

    async def get_trending_players(
        self, sport: str, trend_type: str = "add", lookback_hours: int = 24, limit: int = 25
    ) -> List[Dict]:
        return await self.get(
            f"{self.base_url}/players/{sport}/trending/{trend_type}",
            params={"lookback_hours": str(lookback_hours), "limit": str(limit)},
        )

    async def get_state(self, sport: str = "nfl") -> Dict:
        """Fetch the current week / season state."""
        return await self.get(f"{self.base_url}/state/{sport}")

    # ==================== Projection / stat endpoints ====================

    async def get_weekly_projections(self, season_type: str, season: Any, week: int) -> Any:
        return await self.get(
            f"{self.base_url}/projections/nfl/{season_type}/{season}/{week}",
            params=self._position_params(),
        )

    async def get_player_projections(self, player_id: str, season: Any, season_type: str) -> Any:
        return await self.get(
            f"{self.stats_base_url}/projections/nfl/player/{player_id}",
            params={"season_type": season_type, "season": str(season), "grouping": "week"},
        )

    async def get_player_stats(self, player_id: str, season: Any, season_type: str) -> Any:
        return await self.get(
            f"{self.stats_base_url}/stats/nfl/player/{player_id}",
            params={"season_type": season_type, "season": str(season), "grouping": "week"},
        )

    async def get_weekly_stats(self, season: Any, week: int, season_type: str) -> Any:
        params = [("season_type", season_type), *self._position_params(), ("order_by", "pts_ppr")]
        return await self.get(f"{self.stats_base_url}/stats/nfl/{season}/{week}", params=params)

    def rate_limit_status(self) -> Dict[str, Any]:
        return self.limiter.status()

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()
