"""Request cache with TTL expiry and single-flight execution.

Guards the expensive recognition calls: identical request keys issued
concurrently share one execution, and successful results are reused until
their TTL elapses.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from labelscan.config import settings

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Cached value with its absolute expiry time."""

    key: str
    value: Any
    expires_at: float


class RequestCache:
    """Key/value TTL cache plus per-key single-flight execution.

    Failures are never cached: a failed producer clears its in-flight slot
    so a later call runs it again.
    """

    def __init__(
        self,
        default_ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the cache.

        Args:
            default_ttl: TTL in seconds for ``execute`` results (default from settings).
            clock: Monotonic time source, injectable for tests.
        """
        self.default_ttl = default_ttl if default_ttl is not None else settings.ocr_cache_ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._inflight: dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if absent or expired.

        Expired entries are evicted on read.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() > entry.expires_at:
            del self._entries[key]
            logger.debug("Cache entry expired: %s", key)
            return None
        return entry.value

    def store(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store a value for ``ttl`` seconds."""
        ttl = self.default_ttl if ttl is None else ttl
        self._entries[key] = CacheEntry(key=key, value=value, expires_at=self._clock() + ttl)

    def invalidate(self, key: str) -> None:
        """Drop a cached value if present."""
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop all cached values. In-flight executions are unaffected."""
        self._entries.clear()

    def in_flight(self, key: str) -> bool:
        """Whether a producer is currently running for ``key``."""
        return key in self._inflight

    async def execute(
        self,
        key: str,
        producer: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
    ) -> Any:
        """Run ``producer`` at most once concurrently per key.

        Callers arriving while a producer is pending await the same task and
        observe the same value or exception.

        Args:
            key: Request key.
            producer: Zero-argument coroutine function producing the value.
            ttl: Cache TTL for a successful result (default ``default_ttl``).

        Returns:
            The producer's value.
        """
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._run(key, producer, ttl))
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._release(k, t))
        else:
            logger.debug("Joining in-flight execution: %s", key)

        # One waiter being cancelled must not cancel the shared execution
        return await asyncio.shield(task)

    async def _run(
        self,
        key: str,
        producer: Callable[[], Awaitable[Any]],
        ttl: Optional[float],
    ) -> Any:
        value = await producer()
        self.store(key, value, ttl)
        return value

    def _release(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Producer failed for %s: %r", key, task.exception())


# Process-wide cache for recognition results
recognition_cache = RequestCache()
