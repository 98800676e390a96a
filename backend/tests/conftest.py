"""
Pytest configuration and fixtures for the Fantasy Lineup Data Service.

This module provides:
- A controllable clock and a recording sleep for rate-limit/TTL tests
- A fake Sleeper upstream served through httpx.MockTransport
- A fully wired FantasyDataService and an async client for the FastAPI app
"""

import json
import os
import pytest
import asyncio
from typing import Any, AsyncGenerator, Dict, List, Optional

import httpx
from httpx import AsyncClient

# Set test mode before importing app modules
os.environ["MODE"] = "TEST"

from lineup_service.core.config import settings
from lineup_service.services.sleeper import FantasyDataService


SLEEPER_BASE_URL = "https://api.sleeper.app/v1"
SLEEPER_STATS_BASE_URL = "https://api.sleeper.com"

SEASON = "2024"
CURRENT_WEEK = 5
LEAGUE_ID = "L1"


# ============================================================================
# Time control
# ============================================================================


class FakeClock:
    """Epoch-seconds clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Awaitable sleep that records requested delays and returns immediately."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


# ============================================================================
# Fake upstream
# ============================================================================


class FakeUpstream:
    """
    Path-routed fake HTTP API for httpx.MockTransport.

    Each path holds a queue of responses; the last one is repeated once the
    others have been served. Unknown paths answer 404.
    """

    def __init__(self) -> None:
        self.routes: Dict[str, List[Dict[str, Any]]] = {}
        self.requests: List[httpx.Request] = []

    def add(
        self,
        path: str,
        payload: Any = None,
        status_code: int = 200,
        headers: Optional[Dict[str, str]] = None,
        content: Optional[bytes] = None,
    ) -> None:
        self.routes.setdefault(path, []).append(
            {"payload": payload, "status_code": status_code, "headers": headers, "content": content}
        )

    def set(self, path: str, payload: Any = None, **kwargs) -> None:
        self.routes.pop(path, None)
        self.add(path, payload, **kwargs)

    def count(self, path: str) -> int:
        return sum(1 for request in self.requests if request.url.path == path)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        await asyncio.sleep(0)
        queue = self.routes.get(request.url.path)
        if not queue:
            return httpx.Response(404, json={"error": "not found"})
        spec = queue.pop(0) if len(queue) > 1 else queue[0]
        if spec["content"] is not None:
            return httpx.Response(spec["status_code"], content=spec["content"], headers=spec["headers"])
        headers = {"content-type": "application/json", **(spec["headers"] or {})}
        return httpx.Response(spec["status_code"], content=json.dumps(spec["payload"]).encode(), headers=headers)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


PLAYERS: Dict[str, Dict[str, Any]] = {
    "4046": {
        "player_id": "4046", "first_name": "Patrick", "last_name": "Mahomes",
        "position": "QB", "team": "KC", "fantasy_positions": ["QB"],
        "status": "Active", "search_rank": 10,
    },
    "4034": {
        "player_id": "4034", "first_name": "Christian", "last_name": "McCaffrey",
        "position": "RB", "team": "SF", "fantasy_positions": ["RB"],
        "status": "Active", "search_rank": 1,
    },
    "6794": {
        "player_id": "6794", "first_name": "Justin", "last_name": "Jefferson",
        "position": "WR", "team": "MIN", "fantasy_positions": ["WR"],
        "status": "Active", "search_rank": 2,
    },
    "5859": {
        "player_id": "5859", "first_name": "A.J.", "last_name": "Brown",
        "position": "WR", "team": "PHI", "fantasy_positions": ["WR"],
        "status": "Injured Reserve", "search_rank": 8,
    },
    "2133": {
        "player_id": "2133", "first_name": "Davante", "last_name": "Adams",
        "position": "WR", "team": "NYJ", "fantasy_positions": ["WR"],
        "status": "Active", "search_rank": 30,
    },
    "7564": {
        "player_id": "7564", "first_name": "Ja'Marr", "last_name": "Chase",
        "position": "WR", "team": "CIN", "fantasy_positions": ["WR"],
        "status": "Active", "search_rank": 3,
    },
    "9999": {
        "player_id": "9999", "first_name": "Backup", "last_name": "Runner",
        "position": "RB", "team": None, "fantasy_positions": ["RB"],
        "status": "Inactive", "search_rank": 5,
    },
    "KC": {
        "player_id": "KC", "first_name": "Kansas City", "last_name": "Chiefs",
        "position": "DEF", "team": "KC", "fantasy_positions": ["DEF"],
    },
}

ROSTERS: List[Dict[str, Any]] = [
    {
        "roster_id": 1,
        "owner_id": "u1",
        "starters": ["4046", "4034", "0"],
        "players": ["4046", "4034", "6794", "5859"],
        "reserve": ["5859"],
        "settings": {"wins": 3, "losses": 1},
    },
    {
        "roster_id": 2,
        "owner_id": "u2",
        "starters": ["2133"],
        "players": ["2133"],
        "reserve": None,
        "settings": {"wins": 1, "losses": 3},
    },
]

USERS: List[Dict[str, Any]] = [
    {"user_id": "u1", "display_name": "Alice"},
    {"user_id": "u2", "display_name": "Bob"},
]

LEAGUE: Dict[str, Any] = {
    "league_id": LEAGUE_ID,
    "name": "Test League",
    "season": SEASON,
    "scoring_settings": {"rec": 1.0, "pass_td": 4.0},
}


def player_projection_series() -> Dict[str, Any]:
    """Week 5 projects 9 points, weeks 6-18 one point each."""
    series = {str(week): {"stats": {"pts_ppr": 1.0, "pts_half_ppr": 0.5}} for week in range(6, 19)}
    series["5"] = {"stats": {"pts_ppr": 9.0, "pts_half_ppr": 8.0}}
    return series


def player_stat_series() -> Dict[str, Any]:
    """Scores in weeks 1, 2 and 4; week 3 has no points recorded."""
    return {
        "1": {"stats": {"pts_ppr": 10.0}},
        "2": {"stats": {"pts_ppr": 20.0}},
        "3": {"stats": {}},
        "4": {"stats": {"pts_ppr": 15.0}},
    }


def seed_sleeper(fake: FakeUpstream) -> FakeUpstream:
    """Register a small but complete league on the fake upstream."""
    fake.add("/v1/state/nfl", {"week": CURRENT_WEEK, "season": SEASON, "season_type": "regular"})
    fake.add("/v1/players/nfl", PLAYERS)
    fake.add(f"/v1/league/{LEAGUE_ID}", LEAGUE)
    fake.add(f"/v1/league/{LEAGUE_ID}/rosters", ROSTERS)
    fake.add(f"/v1/league/{LEAGUE_ID}/users", USERS)
    fake.add(
        f"/v1/league/{LEAGUE_ID}/matchups/{CURRENT_WEEK}",
        [
            {"roster_id": 1, "matchup_id": 1, "owner_id": "u1", "starters": ["4046", "4034"],
             "players": ["4046", "4034", "6794"], "points": 101.5},
            {"roster_id": 2, "matchup_id": 1, "owner_id": "u2", "starters": ["2133"],
             "players": ["2133"], "points": 88.0},
        ],
    )
    fake.add(
        f"/v1/projections/nfl/regular/{SEASON}/{CURRENT_WEEK}",
        {
            "4046": {"stats": {"pts_ppr": 22.5, "pts_half_ppr": 21.0}},
            "4034": {"stats": {"pts_ppr": 18.0, "pts_half_ppr": 16.0}},
        },
    )
    fake.add(
        f"/stats/nfl/{SEASON}/{CURRENT_WEEK - 1}",
        [
            {"player_id": "4046", "stats": {"pts_ppr": 25.0, "pts_half_ppr": 25.0},
             "team": "KC", "opponent": "NO", "week": CURRENT_WEEK - 1,
             "player": {"first_name": "Patrick", "last_name": "Mahomes"}},
        ],
    )
    for player_id in ("4046", "4034", "6794", "5859"):
        fake.add(f"/projections/nfl/player/{player_id}", player_projection_series())
        fake.add(f"/stats/nfl/player/{player_id}", player_stat_series())
    fake.add(
        "/v1/players/nfl/trending/add",
        [{"player_id": "7564", "count": 812}, {"player_id": "0000", "count": 5}],
    )
    fake.add("/v1/user/u1", {"user_id": "u1", "username": "alice", "display_name": "Alice"})
    fake.add("/v1/user/u1/leagues/nfl/" + SEASON, [{"league_id": LEAGUE_ID, "name": "Test League"}])
    return fake


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def fake_sleeper() -> FakeUpstream:
    """Fake Sleeper API seeded with one league."""
    return seed_sleeper(FakeUpstream())


@pytest.fixture
def test_settings(tmp_path):
    """
    Provide test settings configuration.

    Returns:
        Settings copy pointing snapshots at a temporary directory.
    """
    return settings.model_copy(
        update={
            "SLEEPER_BASE_URL": SLEEPER_BASE_URL,
            "SLEEPER_STATS_BASE_URL": SLEEPER_STATS_BASE_URL,
            "SNAPSHOT_DIR": str(tmp_path / "snapshots"),
            "ENABLE_OFFLINE_MODE": True,
            "DEFAULT_SEASON": SEASON,
            "ESPN_USE_FIXTURES": True,
        }
    )


@pytest.fixture
async def service(test_settings, fake_sleeper, clock, sleep_recorder) -> AsyncGenerator[FantasyDataService, None]:
    """FantasyDataService wired to the fake upstream."""
    svc = FantasyDataService.from_settings(
        test_settings,
        transport=fake_sleeper.transport(),
        clock=clock,
        sleep=sleep_recorder,
    )
    yield svc
    await svc.close()


@pytest.fixture
async def async_client(service) -> AsyncGenerator[AsyncClient, None]:
    """
    Provide an async HTTP client for testing FastAPI endpoints.

    The app's service dependency is overridden with the fake-backed service.

    Yields:
        httpx.AsyncClient configured for the FastAPI app.
    """
    from lineup_service.main import app, get_service

    app.dependency_overrides[get_service] = lambda: service

    async with AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
