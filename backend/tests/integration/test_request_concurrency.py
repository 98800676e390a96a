"""
Integration tests for request deduplication and cache safety under concurrency.

Tests verify that concurrent lineup requests:
1. Share one upstream call per distinct URL
2. Leave no in-flight entries behind, on success or failure
3. Write each cache entry once
4. Keep per-player enrichment failures isolated
"""

import pytest
import asyncio

from lineup_service.exceptions import UpstreamHttpError

from conftest import CURRENT_WEEK, LEAGUE_ID, SEASON


@pytest.mark.asyncio
async def test_concurrent_lineups_share_upstream_calls(service, fake_sleeper):
    """
    Test that concurrent lineup requests for the same league hit each endpoint once.
    """
    num_concurrent = 10
    results = await asyncio.gather(
        *(service.get_current_lineup("u1", LEAGUE_ID) for _ in range(num_concurrent)),
        return_exceptions=True,
    )

    exceptions = [r for r in results if isinstance(r, Exception)]
    assert len(exceptions) == 0, f"Unexpected exceptions: {exceptions}"

    assert fake_sleeper.count(f"/v1/league/{LEAGUE_ID}/rosters") == 1
    assert fake_sleeper.count(f"/v1/league/{LEAGUE_ID}/users") == 1
    assert fake_sleeper.count("/v1/players/nfl") == 1
    assert len(service.sleeper.limiter.pending) == 0
    assert all([p.player_id for p in r.starters] == ["4046", "4034"] for r in results)


@pytest.mark.asyncio
async def test_concurrent_enhanced_lineups_share_projection_calls(service, fake_sleeper):
    """
    Test that concurrent enhanced lineups fetch bulk data once.
    """
    await asyncio.gather(*(service.get_enhanced_lineup("u1", LEAGUE_ID) for _ in range(5)))

    assert fake_sleeper.count(f"/v1/projections/nfl/regular/{SEASON}/{CURRENT_WEEK}") == 1
    assert fake_sleeper.count(f"/stats/nfl/{SEASON}/{CURRENT_WEEK - 1}") == 1
    assert fake_sleeper.count("/v1/state/nfl") == 1
    assert len(service.sleeper.limiter.pending) == 0


@pytest.mark.asyncio
async def test_shared_failure_reaches_all_callers(service, fake_sleeper):
    """
    Test that a failed shared call is reported to every caller and then forgotten.
    """
    path = f"/v1/league/{LEAGUE_ID}/rosters"
    fake_sleeper.set(path, {"error": "down"}, status_code=500)
    fake_sleeper.add(path, [])

    results = await asyncio.gather(
        *(service.league.get_rosters(LEAGUE_ID) for _ in range(4)),
        return_exceptions=True,
    )

    assert all(isinstance(r, UpstreamHttpError) for r in results)
    assert len(service.sleeper.limiter.pending) == 0
    assert fake_sleeper.count(path) == 1

    # The next request goes back to the network.
    assert await service.league.get_rosters(LEAGUE_ID) == []
    assert fake_sleeper.count(path) == 2


@pytest.mark.asyncio
async def test_clear_during_flight_does_not_break_new_requests(service, fake_sleeper):
    """
    Test that clearing caches while a request is in flight leaves later requests working.
    """
    first = asyncio.ensure_future(service.league.get_users(LEAGUE_ID))
    await asyncio.sleep(0)
    service.clear_all_caches()
    second = asyncio.ensure_future(service.league.get_users(LEAGUE_ID))

    assert await first == await second
    assert len(service.sleeper.limiter.pending) == 0


@pytest.mark.asyncio
async def test_result_fetched_before_clear_is_not_cached(service, fake_sleeper):
    """
    Test that a request in flight during a clear cannot overwrite fresher data.
    """
    path = f"/v1/league/{LEAGUE_ID}/users"
    fake_sleeper.set(path, [{"user_id": "old"}])
    fake_sleeper.add(path, [{"user_id": "new"}])

    first = asyncio.ensure_future(service.league.get_users(LEAGUE_ID))
    await asyncio.sleep(0)
    service.clear_all_caches()
    second = asyncio.ensure_future(service.league.get_users(LEAGUE_ID))

    assert await first == [{"user_id": "old"}]
    assert await second == [{"user_id": "new"}]
    assert fake_sleeper.count(path) == 2
    assert await service.league.get_users(LEAGUE_ID) == [{"user_id": "new"}]
    assert fake_sleeper.count(path) == 2


@pytest.mark.asyncio
async def test_concurrent_catalog_fetch_writes_cache_and_snapshot_once(service, fake_sleeper, monkeypatch):
    """
    Test that callers sharing one catalog fetch store it and its snapshot once.
    """
    puts = []
    saves = []
    real_put = service.league.players_cache.put
    real_save = service.league.snapshot_store.save

    def recording_put(key, data, timestamp=None):
        puts.append(key)
        real_put(key, data, timestamp=timestamp)

    def recording_save(key, data, timestamp):
        saves.append(key)
        real_save(key, data, timestamp)

    monkeypatch.setattr(service.league.players_cache, "put", recording_put)
    monkeypatch.setattr(service.league.snapshot_store, "save", recording_save)

    results = await asyncio.gather(*(service.league.get_players() for _ in range(5)))

    assert fake_sleeper.count("/v1/players/nfl") == 1
    assert puts == ["players_nfl"]
    assert saves == ["players_nfl"]
    assert all(r == results[0] for r in results)
