"""
Unit tests for the TTL cache.
"""

import pytest

from lineup_service.services.sleeper.cache import CacheEntry, TTLCache


class TestCacheEntry:
    """Test entry age and validity."""

    def test_valid_strictly_below_duration(self):
        entry = CacheEntry(data={"a": 1}, timestamp=100.0)

        assert entry.age(150.0) == 50.0
        assert entry.is_valid(399.9, 300)
        assert not entry.is_valid(400.0, 300)


class TestTTLCache:
    """Test keyed storage with expiry."""

    def test_get_returns_value_within_duration(self, clock):
        cache = TTLCache("rosters", 300, clock=clock)
        cache.put("rosters_L1", [{"roster_id": 1}])

        clock.advance(299)

        assert cache.get("rosters_L1") == [{"roster_id": 1}]
        assert "rosters_L1" in cache

    def test_entry_expires_at_exact_duration(self, clock):
        cache = TTLCache("rosters", 300, clock=clock)
        cache.put("rosters_L1", [1, 2])

        clock.advance(300)

        assert cache.get("rosters_L1") is None
        assert len(cache) == 0

    def test_missing_key_is_a_miss(self, clock):
        cache = TTLCache("users", 300, clock=clock)

        assert cache.get("users_nope") is None
        assert "users_nope" not in cache

    def test_put_with_earlier_timestamp_keeps_original_age(self, clock):
        cache = TTLCache("players", 86400, clock=clock)
        cache.put("players_nfl", {"1": {}}, timestamp=clock() - 86000)

        assert cache.get("players_nfl") == {"1": {}}
        clock.advance(400)
        assert cache.get("players_nfl") is None

    def test_put_if_absent_keeps_existing_valid_entry(self, clock):
        cache = TTLCache("settings", 300, clock=clock)
        cache.put("settings_L1", {"rec": 1})

        held = cache.put_if_absent("settings_L1", {"rec": 0.5})

        assert held == {"rec": 1}
        assert cache.get("settings_L1") == {"rec": 1}

    def test_put_if_absent_replaces_expired_entry(self, clock):
        cache = TTLCache("settings", 300, clock=clock)
        cache.put("settings_L1", {"rec": 1})
        clock.advance(301)

        held = cache.put_if_absent("settings_L1", {"rec": 0.5})

        assert held == {"rec": 0.5}

    def test_put_if_absent_drops_result_fetched_before_clear(self, clock):
        cache = TTLCache("users", 300, clock=clock)
        generation = cache.generation
        cache.clear()

        held = cache.put_if_absent("users_L1", [{"user_id": "old"}], generation)

        assert held == [{"user_id": "old"}]
        assert cache.get("users_L1") is None
        assert cache.put_if_absent("users_L1", [{"user_id": "new"}], cache.generation) == [{"user_id": "new"}]
        assert cache.get("users_L1") == [{"user_id": "new"}]

    def test_invalidate_and_clear(self, clock):
        cache = TTLCache("rosters", 300, clock=clock)
        cache.put("a", 1)
        cache.put("b", 2)

        cache.invalidate("a")
        assert cache.get("a") is None
        assert cache.get("b") == 2

        cache.clear()
        assert len(cache) == 0

    def test_status_reports_age_validity_and_remaining(self, clock):
        cache = TTLCache("projections", 1800, clock=clock)
        cache.put("fresh", 1)
        cache.put("stale", 2, timestamp=clock() - 2000)
        clock.advance(600)

        status = cache.status()

        assert status["name"] == "projections"
        assert status["size"] == 2
        assert status["duration_seconds"] == 1800
        assert status["entries"]["fresh"] == {
            "age_seconds": 600,
            "is_valid": True,
            "remaining_seconds": 1200,
        }
        assert status["entries"]["stale"]["is_valid"] is False
        assert status["entries"]["stale"]["remaining_seconds"] == 0
