"""
In-memory response cache with LRU eviction and TTL expiry.

Keys are request fingerprints from generate_cache_key(); identical
requests to the same model with the same parameters share an entry.
"""

import hashlib
import json
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from agentflow.domain.models import ChatMessage

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry[T]:
    value: T
    created_at: float
    last_accessed: float
    access_count: int = 0


@dataclass(frozen=True)
class CacheStats:
    size: int
    hits: int
    misses: int
    hit_rate: float
    evictions: int


class ResponseCache[T]:
    """
    Bounded LRU cache whose entries expire after a fixed TTL.

    Expired entries are dropped when they are found (counting as a miss)
    or by cleanup().
    """

    def __init__(
        self,
        max_size: int = 100,
        ttl: float = 3600.0,
        log_metrics: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            max_size: Entries held before the least recently used is evicted
            ttl: Seconds an entry stays fresh after it was first stored
            log_metrics: Log hits and misses at DEBUG level
            clock: Monotonic time source in seconds
        """
        self._max_size = max_size
        self._ttl = ttl
        self._log_metrics = log_metrics
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def _expired(self, entry: CacheEntry[T], now: float) -> bool:
        return now - entry.created_at > self._ttl

    def get(self, key: str) -> T | None:
        """Return the cached value, or None on a miss or expiry."""
        now = self._clock()
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            if self._log_metrics:
                logger.debug("Cache miss: %s", key[:16])
            return None

        if self._expired(entry, now):
            del self._entries[key]
            self._misses += 1
            if self._log_metrics:
                logger.debug("Cache expired: %s", key[:16])
            return None

        entry.last_accessed = now
        entry.access_count += 1
        self._hits += 1
        if self._log_metrics:
            logger.debug("Cache hit: %s", key[:16])
        return entry.value

    def set(self, key: str, value: T) -> None:
        """
        Store a value.

        Overwriting an existing key keeps its creation time and access
        count. A new key evicts the least recently accessed entry first
        when the cache is full.
        """
        now = self._clock()
        existing = self._entries.get(key)
        if existing is not None:
            existing.value = value
            existing.last_accessed = now
            return

        if len(self._entries) >= self._max_size:
            self._evict_lru()

        self._entries[key] = CacheEntry(value=value, created_at=now, last_accessed=now)

    def has(self, key: str) -> bool:
        """True if a fresh entry exists. Does not touch statistics."""
        entry = self._entries.get(key)
        if entry is None:
            return False
        if self._expired(entry, self._clock()):
            del self._entries[key]
            return False
        return True

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Drop every entry and reset statistics."""
        self._entries.clear()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def _evict_lru(self) -> None:
        oldest_key: str | None = None
        oldest_time = float("inf")
        for key, entry in self._entries.items():
            if entry.last_accessed < oldest_time:
                oldest_key = key
                oldest_time = entry.last_accessed

        if oldest_key is not None:
            del self._entries[oldest_key]
            self._evictions += 1

    def cleanup(self) -> int:
        """Remove expired entries. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if self._expired(entry, now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def stats(self) -> CacheStats:
        lookups = self._hits + self._misses
        return CacheStats(
            size=len(self._entries),
            hits=self._hits,
            misses=self._misses,
            hit_rate=self._hits / lookups if lookups else 0.0,
            evictions=self._evictions,
        )

    def __len__(self) -> int:
        return len(self._entries)


def generate_cache_key(
    messages: Sequence[ChatMessage],
    model: str | None = None,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> str:
    """
    Fingerprint a request.

    SHA-256 over a JSON encoding of the ordered role/content pairs and
    the model parameters, so the same conversation sent with different
    parameters gets a different key.
    """
    payload = json.dumps(
        {
            "messages": [[m.role, m.content] for m in messages],
            "params": [model, temperature, max_tokens],
        },
        ensure_ascii=False,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
