"""
Connection pool for model backends.

Tracks one logical connection per endpoint key. A connection here is a
CancellationToken: requests run through the token, and closing or evicting
the connection cancels whatever is still in flight on it. A background
sweep drops idle connections that outlived their idle or lifetime limits.
"""

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from agentflow.domain.exceptions import ProviderError

logger = logging.getLogger(__name__)

MAX_SWEEP_INTERVAL = 30.0


class ConnectionCancelled(ProviderError):
    """Raised when a request's pooled connection is cancelled."""


class CancellationToken:
    """Cancellation handle shared by every request made on one connection."""

    def __init__(self) -> None:
        self._cancelled = False
        self._tasks: set[asyncio.Task] = set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Cancel all in-flight requests; later run() calls fail at once."""
        self._cancelled = True
        for task in list(self._tasks):
            task.cancel()

    async def run[T](self, awaitable: Awaitable[T]) -> T:
        """
        Await a request bound to this token.

        Raises:
            ConnectionCancelled: If the token is or becomes cancelled
        """
        if self._cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise ConnectionCancelled("Connection was cancelled")

        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        try:
            return await task
        except asyncio.CancelledError:
            if self._cancelled:
                raise ConnectionCancelled("Connection was cancelled") from None
            raise
        finally:
            self._tasks.discard(task)


@dataclass
class PooledConnection:
    """Pool bookkeeping for one connection."""

    created_at: float
    last_used: float
    in_use: bool = False
    token: CancellationToken = field(default_factory=CancellationToken)


@dataclass(frozen=True)
class PoolStats:
    total: int
    active: int
    idle: int


class ConnectionPool:
    """
    Pool of per-endpoint connections with LRU eviction and idle sweeping.

    One pool is built per process and shared by every backend. Each key has
    one pooled connection; acquiring a key whose connection is busy opens a
    new one and keeps the busy one as displaced until it is released.

    Example:
        pool = ConnectionPool(max_connections=4)
        token = await pool.acquire("http://localhost:11434/v1")
        try:
            response = await token.run(client.chat.completions.create(...))
        finally:
            pool.release("http://localhost:11434/v1", token)
    """

    def __init__(
        self,
        max_connections: int = 10,
        idle_timeout: float = 60.0,
        max_lifetime: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            max_connections: Capacity before idle connections are evicted
            idle_timeout: Seconds an idle connection stays valid
            max_lifetime: Seconds a connection may live regardless of use
            clock: Monotonic time source in seconds
        """
        self._max_connections = max_connections
        self._idle_timeout = idle_timeout
        self._max_lifetime = max_lifetime
        self._clock = clock
        self._connections: dict[str, PooledConnection] = {}
        self._displaced: dict[str, list[PooledConnection]] = {}
        self._sweeper: asyncio.Task | None = None

    @property
    def sweep_interval(self) -> float:
        return min(self._idle_timeout / 2, MAX_SWEEP_INTERVAL)

    def _is_valid(self, conn: PooledConnection, now: float) -> bool:
        return (
            now - conn.created_at < self._max_lifetime
            and now - conn.last_used < self._idle_timeout
        )

    async def acquire(self, key: str) -> CancellationToken:
        """
        Get a connection token for an endpoint key.

        Reuses the key's idle connection while it is valid. Otherwise a new
        connection is created, evicting the least recently used idle
        connection first when the pool is full.
        """
        self._ensure_sweeper()
        now = self._clock()

        existing = self._connections.get(key)
        if existing is not None:
            if existing.in_use:
                self._displaced.setdefault(key, []).append(existing)
            elif self._is_valid(existing, now):
                existing.in_use = True
                existing.last_used = now
                return existing.token
            else:
                existing.token.cancel()
            del self._connections[key]

        if len(self._connections) >= self._max_connections:
            self._evict_lru()

        conn = PooledConnection(created_at=now, last_used=now, in_use=True)
        self._connections[key] = conn
        logger.debug("Opened pooled connection for %s", key)
        return conn.token

    def release(self, key: str, token: CancellationToken) -> None:
        """
        Hand back the connection a token came from. Does not close it.

        A displaced connection is dropped from the pool; the key's current
        connection is marked idle. Unknown tokens are ignored.
        """
        conn = self._connections.get(key)
        if conn is not None and conn.token is token:
            conn.in_use = False
            conn.last_used = self._clock()
            return

        displaced = self._displaced.get(key, [])
        for old in displaced:
            if old.token is token:
                displaced.remove(old)
                break
        if not displaced:
            self._displaced.pop(key, None)

    def _evict_lru(self) -> None:
        oldest_key: str | None = None
        oldest_time = float("inf")
        for key, conn in self._connections.items():
            if not conn.in_use and conn.last_used < oldest_time:
                oldest_key = key
                oldest_time = conn.last_used

        if oldest_key is not None:
            self._connections.pop(oldest_key).token.cancel()
            logger.debug("Evicted pooled connection for %s", oldest_key)

    def sweep(self) -> int:
        """Drop idle connections that are no longer valid. Returns the count removed."""
        now = self._clock()
        stale = [
            key
            for key, conn in self._connections.items()
            if not conn.in_use and not self._is_valid(conn, now)
        ]
        for key in stale:
            self._connections.pop(key).token.cancel()
        if stale:
            logger.debug("Swept %d idle connection(s)", len(stale))
        return len(stale)

    def _ensure_sweeper(self) -> None:
        if self._sweeper is not None and not self._sweeper.done():
            return
        self._sweeper = asyncio.get_running_loop().create_task(self._sweep_loop())

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.sweep()

    def stats(self) -> PoolStats:
        displaced = sum(len(conns) for conns in self._displaced.values())
        active = displaced + sum(1 for conn in self._connections.values() if conn.in_use)
        total = displaced + len(self._connections)
        return PoolStats(total=total, active=active, idle=total - active)

    def close(self) -> None:
        """Stop sweeping, cancel every connection and empty the pool."""
        if self._sweeper is not None:
            self._sweeper.cancel()
            self._sweeper = None
        for conn in self._connections.values():
            conn.token.cancel()
        for conns in self._displaced.values():
            for conn in conns:
                conn.token.cancel()
        self._connections.clear()
        self._displaced.clear()

    async def aclose(self) -> None:
        """close(), then wait for the sweep task to finish unwinding."""
        sweeper = self._sweeper
        self.close()
        if sweeper is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper
