"""
Upstream Rate Limiting
Per-minute admission window, in-flight request deduplication and
exponential backoff shared by every upstream client.
"""

import asyncio
import time
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional
import logging

from lineup_service.exceptions import RateLimitExceeded

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class RateLimitWindow:
    """
    Fixed per-minute request window for one upstream API.

    Attributes:
        limit: Maximum admitted requests per window
        window_seconds: Window length in seconds
        count: Requests admitted in the current window
        window_start: Epoch seconds at which the current window opened
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float = 60.0,
        clock: Optional[Callable[[], float]] = None,
        name: str = "upstream",
    ) -> None:
        """
        Initialize rate limit window.

        Args:
            limit: Maximum requests per window
            window_seconds: Time window in seconds (default: 60)
            clock: Time source returning epoch seconds (default: time.time)
            name: Upstream name used in logs and errors
        """
        if limit <= 0:
            raise ValueError("Rate limit must be positive")
        self.limit = limit
        self.window_seconds = window_seconds
        self.name = name
        self._clock = clock or time.time
        self.count = 0
        self.window_start = self._clock()

    def _roll(self, now: float) -> None:
        if now - self.window_start >= self.window_seconds:
            self.count = 0
            self.window_start = now

    def acquire(self) -> None:
        """
        Admit one request or refuse it.

        Raises:
            RateLimitExceeded: If the window already holds ``limit`` requests
        """
        self._roll(self._clock())
        if self.count >= self.limit:
            raise RateLimitExceeded(
                f"Rate limit exceeded. Maximum {self.limit} requests per minute allowed.",
                service=self.name,
            )
        self.count += 1

    def status(self) -> Dict[str, Any]:
        now = self._clock()
        self._roll(now)
        time_until_reset = max(0.0, self.window_seconds - (now - self.window_start))
        return {
            "current_count": self.count,
            "max_count": self.limit,
            "remaining": self.limit - self.count,
            "time_until_reset": round(time_until_reset, 3),
            "reset_time": datetime.fromtimestamp(
                self.window_start + self.window_seconds
            ).isoformat(),
        }


class PendingRequestRegistry:
    """Map of request key to the task currently fetching it."""

    def __init__(self) -> None:
        self._tasks: Dict[str, "asyncio.Task[Any]"] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def get(self, key: str) -> Optional["asyncio.Task[Any]"]:
        return self._tasks.get(key)

    def register(self, key: str, task: "asyncio.Task[Any]") -> None:
        if key in self._tasks:
            raise RuntimeError(f"Request already in flight for key: {key}")
        self._tasks[key] = task

    def release(self, key: str, task: Optional["asyncio.Task[Any]"]) -> None:
        # Only the owning task may remove its entry.
        if self._tasks.get(key) is task:
            del self._tasks[key]

    def clear(self) -> None:
        self._tasks.clear()


class RateLimitedClient:
    """
    Wraps network calls with admission control, deduplication and retry.

    Every call is identified by a key (URL plus query). Identical keys issued
    while a call is in flight share that call's result instead of hitting the
    network again.
    """

    def __init__(
        self,
        window: RateLimitWindow,
        max_retries: int = 3,
        backoff_base_seconds: float = 1.0,
        sleep: Optional[SleepFunc] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            window: Shared rate limit window for the upstream
            max_retries: Additional attempts after a rate-limit failure (default: 3)
            backoff_base_seconds: Base of the exponential backoff (default: 1s)
            sleep: Awaitable sleep used between retries (default: asyncio.sleep)
        """
        self.window = window
        self.max_retries = max_retries
        self.backoff_base_seconds = backoff_base_seconds
        self.pending = PendingRequestRegistry()
        self._sleep = sleep or asyncio.sleep

    async def call(self, key: str, invoke: Callable[[], Awaitable[Any]]) -> Any:
        """
        Run ``invoke`` at most once concurrently per key.

        Args:
            key: Unique request key
            invoke: Zero-argument coroutine factory performing one exchange

        Returns:
            Parsed response data

        Raises:
            RateLimitExceeded: When every attempt was refused
            UpstreamHttpError: On any non-retryable upstream failure
        """
        task = self.pending.get(key)
        if task is not None:
            logger.debug(f"Joining in-flight request: {key}")
            return await asyncio.shield(task)

        task = asyncio.ensure_future(self._execute(key, invoke))
        self.pending.register(key, task)
        return await asyncio.shield(task)

    def backoff_delay(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """
        Delay before retrying after the given 0-based attempt.

        Exponential backoff: 1s, 2s, 4s with the default base, capped by the
        server's Retry-After hint when one was supplied.
        """
        delay = self.backoff_base_seconds * (2 ** attempt)
        if retry_after is not None:
            return min(retry_after, delay)
        return delay

    async def _execute(self, key: str, invoke: Callable[[], Awaitable[Any]]) -> Any:
        try:
            attempt = 0
            while True:
                try:
                    self.window.acquire()
                    return await invoke()
                except RateLimitExceeded as e:
                    if attempt >= self.max_retries:
                        logger.error(
                            f"Giving up on {key} after {attempt + 1} rate-limited attempts"
                        )
                        raise
                    delay = self.backoff_delay(attempt, e.retry_after)
                    logger.warning(
                        f"Rate limited on {key} (attempt {attempt + 1}), retrying in {delay:.2f}s"
                    )
                    await self._sleep(delay)
                    attempt += 1
        finally:
            self.pending.release(key, asyncio.current_task())

    def status(self) -> Dict[str, Any]:
        """Rate limit consumption plus the number of in-flight requests."""
        return {**self.window.status(), "in_flight": len(self.pending)}

    def reset_pending(self) -> None:
        """Forget every in-flight request (manual recovery)."""
        self.pending.clear()


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Return the Retry-After header as seconds, or None if absent or not numeric."""
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return max(0.0, seconds)
