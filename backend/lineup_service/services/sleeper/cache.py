"""
In-Memory Cache with TTL
Time-boxed caching for Sleeper API payloads, one instance per data class.
"""
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """
    Cache entry with the time it was written.

    Attributes:
        data: Cached payload
        timestamp: Epoch seconds when the entry was stored
    """

    data: Any
    timestamp: float

    def age(self, now: float) -> float:
        return now - self.timestamp

    def is_valid(self, now: float, duration: float) -> bool:
        """Entries stay valid while their age is strictly below the duration."""
        return self.age(now) < duration


class TTLCache:
    """
    Keyed in-memory store whose entries expire a fixed duration after write.

    The duration belongs to the cache, not to the caller of ``get``. All
    methods are synchronous, so a lookup and the write that may follow it
    never straddle an ``await``.
    """

    def __init__(
        self,
        name: str,
        duration_seconds: float,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        """
        Initialize an empty cache.

        Args:
            name: Data class name used in logs and status reports
            duration_seconds: How long an entry stays valid after it is written
            clock: Time source returning epoch seconds (default: time.time)
        """
        self.name = name
        self.duration_seconds = duration_seconds
        self._clock = clock or time.time
        self._entries: Dict[str, CacheEntry] = {}
        self.generation = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache if not expired.

        Args:
            key: Cache key

        Returns:
            Cached value if present and still valid, None otherwise
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_valid(self._clock(), self.duration_seconds):
            return entry.data
        # Remove expired entry
        del self._entries[key]
        logger.debug(f"[{self.name}] expired cache entry: {key}")
        return None

    def put(self, key: str, data: Any, timestamp: Optional[float] = None) -> None:
        """
        Store a value, replacing any previous entry for the key.

        Args:
            key: Cache key
            data: Value to cache
            timestamp: Write time to record (default: now). Used when restoring
                data that was fetched earlier, e.g. from an offline snapshot.
        """
        self._entries[key] = CacheEntry(
            data=data,
            timestamp=self._clock() if timestamp is None else timestamp,
        )

    def put_if_absent(self, key: str, data: Any, generation: Optional[int] = None) -> Any:
        """
        Store ``data`` unless a valid entry already exists.

        Callers that fetched after a miss use this to re-check the cache
        once the fetch has resumed, so concurrent misses sharing one network
        call produce a single write.

        Args:
            key: Cache key
            data: Freshly fetched value
            generation: ``self.generation`` read before the fetch started. If
                the cache was cleared since, the value is returned but not stored.

        Returns:
            The value now held in the cache, or ``data`` when nothing was stored
        """
        existing = self.get(key)
        if existing is not None:
            return existing
        if not self.accepts(generation):
            logger.debug(f"[{self.name}] dropping result fetched before clear: {key}")
            return data
        self.put(key, data)
        return data

    def accepts(self, generation: Optional[int]) -> bool:
        """Whether a fetch started at ``generation`` may still write."""
        return generation is None or generation == self.generation

    def invalidate(self, key: str) -> None:
        """Drop a single entry if present."""
        if self._entries.pop(key, None) is not None:
            logger.info(f"[{self.name}] cleared cache entry: {key}")

    def clear(self) -> None:
        """Drop every entry and reject writes from fetches already in flight."""
        self._entries.clear()
        self.generation += 1
        logger.info(f"[{self.name}] cleared all cache entries")

    def status(self) -> Dict[str, Any]:
        """
        Describe the cache for the administration surface.

        Returns:
            Dictionary with size, duration and per-key age / validity /
            remaining time (seconds)
        """
        now = self._clock()
        entries = {}
        for key, entry in self._entries.items():
            age = entry.age(now)
            valid = entry.is_valid(now, self.duration_seconds)
            entries[key] = {
                "age_seconds": round(age, 3),
                "is_valid": valid,
                "remaining_seconds": round(self.duration_seconds - age, 3) if valid else 0,
            }
        return {
            "name": self.name,
            "size": len(self._entries),
            "duration_seconds": self.duration_seconds,
            "entries": entries,
        }
