"""Tests for ConnectionPool and CancellationToken."""

import asyncio

import pytest
from fakes import FakeClock

from agentflow.domain.exceptions import ProviderError
from agentflow.infrastructure.pool import (
    CancellationToken,
    ConnectionCancelled,
    ConnectionPool,
    PoolStats,
)


class TestCancellationToken:
    """Tests for CancellationToken."""

    @pytest.mark.asyncio
    async def test_run_returns_result(self) -> None:
        """A live token just awaits the request."""
        token = CancellationToken()

        assert await token.run(asyncio.sleep(0, result="done")) == "done"

    @pytest.mark.asyncio
    async def test_cancel_interrupts_in_flight(self) -> None:
        """Cancelling the token fails requests that are still running."""
        token = CancellationToken()
        request = asyncio.create_task(token.run(asyncio.sleep(10)))
        await asyncio.sleep(0)

        token.cancel()

        with pytest.raises(ConnectionCancelled):
            await request
        assert token.cancelled

    @pytest.mark.asyncio
    async def test_cancelled_token_rejects_new_requests(self) -> None:
        """run() on a cancelled token fails without starting the request."""
        token = CancellationToken()
        token.cancel()

        with pytest.raises(ConnectionCancelled):
            await token.run(asyncio.sleep(10))

    def test_cancelled_is_provider_error(self) -> None:
        """Backends treat cancellation like any other provider failure."""
        assert issubclass(ConnectionCancelled, ProviderError)


class TestConnectionPool:
    """Tests for acquire, release and eviction."""

    @pytest.mark.asyncio
    async def test_reuses_idle_connection(self, clock: FakeClock) -> None:
        """Acquire after release returns the same token."""
        pool = ConnectionPool(clock=clock)
        first = await pool.acquire("a")
        pool.release("a", first)
        clock.advance(1)

        second = await pool.acquire("a")

        assert second is first
        assert pool.stats() == PoolStats(total=1, active=1, idle=0)
        await pool.aclose()

    @pytest.mark.asyncio
    async def test_idle_timeout_replaces_connection(self, clock: FakeClock) -> None:
        """A connection idle past the timeout is cancelled and replaced."""
        pool = ConnectionPool(idle_timeout=10, clock=clock)
        first = await pool.acquire("a")
        pool.release("a", first)
        clock.advance(10)

        second = await pool.acquire("a")

        assert second is not first
        assert first.cancelled
        await pool.aclose()

    @pytest.mark.asyncio
    async def test_max_lifetime_replaces_connection(self, clock: FakeClock) -> None:
        """A connection older than max_lifetime is replaced even if busy recently."""
        pool = ConnectionPool(idle_timeout=100, max_lifetime=50, clock=clock)
        first = await pool.acquire("a")
        for _ in range(5):
            pool.release("a", first)
            clock.advance(9)
            assert await pool.acquire("a") is first
        pool.release("a", first)
        clock.advance(9)

        assert await pool.acquire("a") is not first
        await pool.aclose()

    @pytest.mark.asyncio
    async def test_evicts_least_recently_used_idle(self, clock: FakeClock) -> None:
        """At capacity the oldest idle connection makes room."""
        pool = ConnectionPool(max_connections=2, clock=clock)
        a = await pool.acquire("a")
        pool.release("a", a)
        clock.advance(1)
        b = await pool.acquire("b")
        pool.release("b", b)
        clock.advance(1)

        await pool.acquire("c")

        assert a.cancelled
        assert not b.cancelled
        assert pool.stats().total == 2
        await pool.aclose()

    @pytest.mark.asyncio
    async def test_busy_connections_are_not_evicted(self, clock: FakeClock) -> None:
        """With every connection in use the pool grows past capacity."""
        pool = ConnectionPool(max_connections=1, clock=clock)
        a = await pool.acquire("a")

        await pool.acquire("b")

        assert not a.cancelled
        assert pool.stats() == PoolStats(total=2, active=2, idle=0)
        await pool.aclose()

    @pytest.mark.asyncio
    async def test_busy_key_gets_new_connection(self, clock: FakeClock) -> None:
        """Acquiring a key that is in use opens a fresh connection for it."""
        pool = ConnectionPool(clock=clock)
        first = await pool.acquire("a")

        second = await pool.acquire("a")

        assert second is not first
        assert pool.stats() == PoolStats(total=2, active=2, idle=0)
        await pool.aclose()

    @pytest.mark.asyncio
    async def test_close_cancels_displaced_connection(self, clock: FakeClock) -> None:
        """A busy connection replaced under its key is still cancelled on close."""
        pool = ConnectionPool(clock=clock)
        first = await pool.acquire("a")
        second = await pool.acquire("a")

        await pool.aclose()

        assert first.cancelled
        assert second.cancelled
        assert pool.stats() == PoolStats(total=0, active=0, idle=0)

    @pytest.mark.asyncio
    async def test_release_only_frees_own_connection(self, clock: FakeClock) -> None:
        """Releasing the displaced token leaves the newer request busy."""
        pool = ConnectionPool(max_connections=1, idle_timeout=10, clock=clock)
        first = await pool.acquire("a")
        second = await pool.acquire("a")

        pool.release("a", first)
        clock.advance(20)

        assert pool.sweep() == 0
        assert not second.cancelled
        assert pool.stats() == PoolStats(total=1, active=1, idle=0)

        pool.release("a", second)
        assert pool.stats() == PoolStats(total=1, active=0, idle=1)
        await pool.aclose()

    @pytest.mark.asyncio
    async def test_release_unknown_key_is_ignored(self, clock: FakeClock) -> None:
        """Releasing a key that was never acquired does nothing."""
        pool = ConnectionPool(clock=clock)

        pool.release("missing", CancellationToken())

        assert pool.stats() == PoolStats(total=0, active=0, idle=0)


class TestSweep:
    """Tests for idle sweeping and shutdown."""

    @pytest.mark.asyncio
    async def test_sweep_removes_only_stale_idle(self, clock: FakeClock) -> None:
        """In-use connections survive a sweep even when old."""
        pool = ConnectionPool(idle_timeout=10, clock=clock)
        stale = await pool.acquire("stale")
        pool.release("stale", stale)
        busy = await pool.acquire("busy")
        clock.advance(20)

        assert pool.sweep() == 1

        assert stale.cancelled
        assert not busy.cancelled
        assert pool.stats() == PoolStats(total=1, active=1, idle=0)
        await pool.aclose()

    def test_sweep_interval(self) -> None:
        """Sweeps run at half the idle timeout, at most every 30s."""
        assert ConnectionPool(idle_timeout=20).sweep_interval == 10
        assert ConnectionPool(idle_timeout=600).sweep_interval == 30

    @pytest.mark.asyncio
    async def test_background_sweep(self, clock: FakeClock) -> None:
        """The sweeper started by acquire() drops stale connections on its own."""
        pool = ConnectionPool(idle_timeout=0.02, max_lifetime=60, clock=clock)
        token = await pool.acquire("a")
        pool.release("a", token)
        clock.advance(1)

        await asyncio.sleep(0.05)

        assert pool.stats().total == 0
        await pool.aclose()

    @pytest.mark.asyncio
    async def test_close_cancels_in_flight_requests(self, clock: FakeClock) -> None:
        """Closing the pool cancels requests running on its connections."""
        pool = ConnectionPool(clock=clock)
        token = await pool.acquire("a")
        request = asyncio.create_task(token.run(asyncio.sleep(10)))
        await asyncio.sleep(0)

        await pool.aclose()

        with pytest.raises(ConnectionCancelled):
            await request
        assert pool.stats().total == 0
