"""
ESPN Fantasy Client
Secondary platform support. Live ESPN calls need a server-side proxy; without
one the client serves canned fixture payloads.
"""

import copy
from typing import Any, Callable, Dict, List, Optional
import logging

import httpx

from lineup_service.exceptions import RateLimitExceeded, UpstreamHttpError
from lineup_service.services.ratelimit import (
    RateLimitedClient,
    RateLimitWindow,
    SleepFunc,
    parse_retry_after,
)

logger = logging.getLogger(__name__)

FIXTURE_ROSTER: Dict[str, Any] = {
    "entries": [
        {
            "playerPoolEntry": {
                "player": {
                    "id": "12345",
                    "firstName": "Patrick",
                    "lastName": "Mahomes",
                    "defaultPositionId": "QB",
                    "proTeamId": "KC",
                }
            },
            "lineupSlotId": 0,
        },
        {
            "playerPoolEntry": {
                "player": {
                    "id": "12346",
                    "firstName": "Christian",
                    "lastName": "McCaffrey",
                    "defaultPositionId": "RB",
                    "proTeamId": "SF",
                }
            },
            "lineupSlotId": 2,
        },
    ]
}

FIXTURE_SCHEDULE: List[Dict[str, Any]] = [
    {"away": {"roster": {"entries": []}}, "home": {"roster": {"entries": []}}}
]

FIXTURE_PLAYER_POOL: List[Dict[str, Any]] = [
    {
        "playerPoolEntry": {
            "player": {
                "id": "12347",
                "firstName": "Tyreek",
                "lastName": "Hill",
                "defaultPositionId": "WR",
                "proTeamId": "MIA",
            }
        }
    }
]


class EspnClient:
    """Roster, matchup and free-agent lookups against ESPN Fantasy."""

    SERVICE = "espn"

    def __init__(
        self,
        base_url: str,
        limiter: RateLimitedClient,
        use_fixtures: bool = True,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.limiter = limiter
        self.use_fixtures = use_fixtures
        self.client = client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(
        cls,
        settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[SleepFunc] = None,
    ) -> "EspnClient":
        window = RateLimitWindow(limit=settings.ESPN_RATE_LIMIT, clock=clock, name=cls.SERVICE)
        limiter = RateLimitedClient(
            window,
            max_retries=settings.MAX_RETRIES,
            backoff_base_seconds=settings.BACKOFF_BASE_SECONDS,
            sleep=sleep,
        )
        return cls(
            settings.ESPN_BASE_URL,
            limiter,
            use_fixtures=settings.ESPN_USE_FIXTURES,
            client=httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS, transport=transport),
        )

    def _league_url(self, league_id: str, season: Any) -> str:
        return f"{self.base_url}/seasons/{season}/segments/0/leagues/{league_id}"

    async def _fetch(self, url: str, params: Dict[str, Any], fixture: Any) -> Any:
        request_url = str(httpx.URL(url, params=params))
        if self.use_fixtures:
            # Still charged against the window so status reflects real usage.
            self.limiter.window.acquire()
            logger.debug(f"ESPN fixture mode, returning canned data for {request_url}")
            return copy.deepcopy(fixture)
        return await self.limiter.call(request_url, lambda: self._fetch_json(request_url))

    async def _fetch_json(self, url: str) -> Any:
        try:
            response = await self.client.get(url)
        except httpx.HTTPError as e:
            logger.error(f"ESPN request failed for {url}: {str(e)}")
            raise UpstreamHttpError(self.SERVICE, str(e) or type(e).__name__) from e
        if response.status_code == 429:
            raise RateLimitExceeded(
                "ESPN API rate limit exceeded",
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
                service=self.SERVICE,
            )
        if not response.is_success:
            raise UpstreamHttpError(
                self.SERVICE, f"GET {url} failed", upstream_status=response.status_code
            )
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamHttpError(self.SERVICE, f"Malformed JSON body from {url}") from e

    async def get_team_roster(self, league_id: str, team_id: str, season: Any) -> Optional[Dict]:
        """Roster of one team, or None when the team is not in the league."""
        data = await self._fetch(
            self._league_url(league_id, season),
            {"view": "mRoster", "forTeamId": team_id},
            {"teams": [{"id": _as_int(team_id), "roster": FIXTURE_ROSTER}]},
        )
        for team in data.get("teams") or []:
            if team.get("id") == _as_int(team_id):
                return team.get("roster")
        return None

    async def get_matchups(self, league_id: str, season: Any, week: Optional[int] = None) -> List[Dict]:
        data = await self._fetch(
            self._league_url(league_id, season),
            {"view": "mMatchup", "scoringPeriodId": week or "current"},
            {"schedule": FIXTURE_SCHEDULE},
        )
        return data.get("schedule") or []

    async def get_free_agents(
        self, league_id: str, season: Any, position: Optional[str] = None, limit: int = 50
    ) -> List[Dict]:
        params: Dict[str, Any] = {"view": "kona_player_info"}
        if position:
            params["filterPosition"] = position
        data = await self._fetch(
            self._league_url(league_id, season), params, {"players": FIXTURE_PLAYER_POOL}
        )
        return (data.get("players") or [])[:limit]

    def rate_limit_status(self) -> Dict[str, Any]:
        return self.limiter.status()

    async def close(self) -> None:
        await self.client.aclose()


def _as_int(value: Any) -> Any:
    try:
        return int(value)
    except (TypeError, ValueError):
        return value
