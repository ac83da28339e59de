"""
Cache - Simple in-memory TTL cache.

Usage:
    from portfel.cache import Cache

    cache = Cache('portfolio', ttl_seconds=5)
    cache.set('positions', positions)
    cached = cache.get('positions')  # Returns None if expired
    cache.invalidate('positions')    # Remove single entry
    cache.clear()                    # Remove all entries
"""

import time
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A cached value with expiration timestamp."""

    value: T
    expires_at: float
    created_at: float


class Cache(Generic[T]):
    """
    Simple in-memory TTL cache.

    Each owner constructs its own instance. The clock defaults to
    time.monotonic so wall-clock adjustments never extend or shorten a TTL.
    """

    def __init__(self, name: str, ttl_seconds: float = 5.0, clock: Callable[[], float] = time.monotonic):
        self._name = name
        self._ttl = ttl_seconds
        self._clock = clock
        self._data: dict[str, CacheEntry[T]] = {}
        self._hits = 0
        self._misses = 0

    @property
    def ttl(self) -> float:
        return self._ttl

    def get(self, key: str) -> Optional[T]:
        """
        Get a cached value by key.

        Returns None if key doesn't exist or has expired.
        """
        if key not in self._data:
            self._misses += 1
            return None

        entry = self._data[key]
        if self._clock() >= entry.expires_at:
            del self._data[key]
            self._misses += 1
            return None

        self._hits += 1
        return entry.value

    def set(self, key: str, value: T, ttl_seconds: Optional[float] = None) -> None:
        """
        Store a value in the cache.

        Args:
            key: Cache key
            value: Value to store
            ttl_seconds: Optional override for TTL (uses default if not specified)
        """
        ttl = ttl_seconds if ttl_seconds is not None else self._ttl
        now = self._clock()
        self._data[key] = CacheEntry(
            value=value,
            expires_at=now + ttl,
            created_at=now,
        )

    def invalidate(self, key: str) -> bool:
        """
        Remove a single entry from the cache.

        Returns True if the key existed, False otherwise.
        """
        if key in self._data:
            del self._data[key]
            return True
        return False

    def clear(self) -> int:
        """
        Remove all entries from the cache.

        Returns the number of entries removed.
        """
        count = len(self._data)
        self._data.clear()
        return count

    def stats(self) -> dict:
        """
        Get cache statistics.

        Returns dict with entries, hits, misses, and hit rate.
        """
        now = self._clock()
        valid_entries = sum(1 for e in self._data.values() if e.expires_at > now)
        total_requests = self._hits + self._misses

        return {
            "name": self._name,
            "entries": valid_entries,
            "ttl_seconds": self._ttl,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self._hits / total_requests if total_requests > 0 else 0.0,
        }

    def reset_stats(self) -> None:
        """Reset hit/miss counters."""
        self._hits = 0
        self._misses = 0
