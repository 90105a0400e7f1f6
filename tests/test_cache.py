"""Tests for the request cache and single-flight execution."""

import asyncio

import pytest

from labelscan.pipeline.cache import RequestCache


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestLookupAndStore:
    """Tests for TTL storage."""

    def test_lookup_missing_key(self):
        """Unknown keys are absent."""
        cache = RequestCache(default_ttl=60)
        assert cache.lookup("missing") is None

    def test_store_then_lookup(self):
        """Stored values are returned before expiry."""
        clock = FakeClock()
        cache = RequestCache(default_ttl=60, clock=clock)
        cache.store("k", {"text": "우유"})

        clock.now += 59
        assert cache.lookup("k") == {"text": "우유"}

    def test_expired_entry_is_evicted(self):
        """Entries past their TTL are unreadable and removed on read."""
        clock = FakeClock()
        cache = RequestCache(default_ttl=60, clock=clock)
        cache.store("k", "value", ttl=10)
        assert len(cache) == 1

        clock.now += 10.5
        assert cache.lookup("k") is None
        assert len(cache) == 0

    def test_entry_readable_exactly_at_expiry(self):
        """Expiry is strict: now > expires_at."""
        clock = FakeClock()
        cache = RequestCache(default_ttl=60, clock=clock)
        cache.store("k", "value", ttl=10)

        clock.now += 10
        assert cache.lookup("k") == "value"

    def test_invalidate_and_clear(self):
        """Entries can be dropped individually or all at once."""
        cache = RequestCache(default_ttl=60)
        cache.store("a", 1)
        cache.store("b", 2)

        cache.invalidate("a")
        assert cache.lookup("a") is None
        assert cache.lookup("b") == 2

        cache.clear()
        assert len(cache) == 0


class TestExecute:
    """Tests for single-flight execution."""

    @pytest.mark.asyncio
    async def test_concurrent_calls_share_one_run(self):
        """Two concurrent calls run the producer once and see the same result."""
        cache = RequestCache(default_ttl=60)
        calls = 0
        release = asyncio.Event()

        async def producer():
            nonlocal calls
            calls += 1
            await release.wait()
            return object()

        first = asyncio.ensure_future(cache.execute("k", producer))
        second = asyncio.ensure_future(cache.execute("k", producer))
        await asyncio.sleep(0)
        assert cache.in_flight("k")

        release.set()
        a, b = await asyncio.gather(first, second)

        assert calls == 1
        assert a is b
        assert not cache.in_flight("k")

    @pytest.mark.asyncio
    async def test_success_is_cached(self):
        """A successful result is written to the cache with the given TTL."""
        clock = FakeClock()
        cache = RequestCache(default_ttl=600, clock=clock)

        async def producer():
            return "text"

        assert await cache.execute("k", producer, ttl=30) == "text"
        assert cache.lookup("k") == "text"

        clock.now += 31
        assert cache.lookup("k") is None

    @pytest.mark.asyncio
    async def test_failure_shared_and_not_cached(self):
        """Concurrent callers see the same failure; a later call retries."""
        cache = RequestCache(default_ttl=60)
        calls = 0
        release = asyncio.Event()

        async def failing():
            nonlocal calls
            calls += 1
            await release.wait()
            raise RuntimeError("engine down")

        first = asyncio.ensure_future(cache.execute("k", failing))
        second = asyncio.ensure_future(cache.execute("k", failing))
        await asyncio.sleep(0)
        release.set()

        results = await asyncio.gather(first, second, return_exceptions=True)
        assert calls == 1
        assert all(isinstance(r, RuntimeError) for r in results)
        assert results[0] is results[1]
        assert cache.lookup("k") is None
        assert not cache.in_flight("k")

        async def working():
            nonlocal calls
            calls += 1
            return "ok"

        assert await cache.execute("k", working) == "ok"
        assert calls == 2

    @pytest.mark.asyncio
    async def test_distinct_keys_run_independently(self):
        """Different keys never share an execution."""
        cache = RequestCache(default_ttl=60)

        def producer_for(value):
            async def producer():
                await asyncio.sleep(0)
                return value

            return producer

        a, b = await asyncio.gather(
            cache.execute("a", producer_for(1)),
            cache.execute("b", producer_for(2)),
        )
        assert (a, b) == (1, 2)

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_shared_run(self):
        """Cancelling one waiter leaves the shared execution running."""
        cache = RequestCache(default_ttl=60)
        release = asyncio.Event()

        async def producer():
            await release.wait()
            return "done"

        first = asyncio.ensure_future(cache.execute("k", producer))
        second = asyncio.ensure_future(cache.execute("k", producer))
        await asyncio.sleep(0)

        first.cancel()
        release.set()

        assert await second == "done"
        assert cache.lookup("k") == "done"
