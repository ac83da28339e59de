"""Tests for in-memory TTL cache.

These tests verify the intended behavior of the Cache class:
1. Basic get/set operations
2. TTL expiration against an injected clock
3. Statistics tracking
4. Cache invalidation
"""

from conftest import ManualClock

from portfel.cache import Cache


class TestCacheBasicOperations:
    """Tests for basic cache operations."""

    def test_set_and_get(self):
        cache = Cache("test_basic", ttl_seconds=3600)
        cache.set("key1", "value1")
        assert cache.get("key1") == "value1"

    def test_get_nonexistent_returns_none(self):
        cache = Cache("test_nonexistent", ttl_seconds=3600)
        assert cache.get("nonexistent") is None

    def test_set_overwrites_existing(self):
        cache = Cache("test_overwrite", ttl_seconds=3600)
        cache.set("key", "old_value")
        cache.set("key", "new_value")
        assert cache.get("key") == "new_value"

    def test_instances_are_independent(self):
        """Two caches with the same name do not share entries."""
        a = Cache("shared")
        b = Cache("shared")
        a.set("key", 1)
        assert b.get("key") is None


class TestCacheExpiration:
    """Tests for TTL expiration."""

    def test_value_available_before_ttl(self):
        clock = ManualClock()
        cache = Cache("ttl", ttl_seconds=5, clock=clock)
        cache.set("key", "value")
        clock.advance(4.999)
        assert cache.get("key") == "value"

    def test_value_expires_at_ttl(self):
        clock = ManualClock()
        cache = Cache("ttl", ttl_seconds=5, clock=clock)
        cache.set("key", "value")
        clock.advance(5)
        assert cache.get("key") is None

    def test_per_entry_ttl_override(self):
        clock = ManualClock()
        cache = Cache("ttl", ttl_seconds=5, clock=clock)
        cache.set("short", "value", ttl_seconds=1)
        cache.set("long", "value")
        clock.advance(2)
        assert cache.get("short") is None
        assert cache.get("long") == "value"

    def test_set_restarts_ttl(self):
        clock = ManualClock()
        cache = Cache("ttl", ttl_seconds=5, clock=clock)
        cache.set("key", "v1")
        clock.advance(4)
        cache.set("key", "v2")
        clock.advance(4)
        assert cache.get("key") == "v2"


class TestCacheInvalidation:
    """Tests for cache invalidation."""

    def test_invalidate_existing_key(self):
        cache = Cache("inv")
        cache.set("key", "value")
        assert cache.invalidate("key") is True
        assert cache.get("key") is None

    def test_invalidate_missing_key(self):
        cache = Cache("inv")
        assert cache.invalidate("missing") is False

    def test_clear_returns_count(self):
        cache = Cache("clear")
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.clear() == 2
        assert cache.get("a") is None


class TestCacheStats:
    """Tests for statistics tracking."""

    def test_hits_and_misses(self):
        cache = Cache("stats")
        cache.set("key", "value")
        cache.get("key")
        cache.get("key")
        cache.get("missing")

        stats = cache.stats()
        assert stats["name"] == "stats"
        assert stats["hits"] == 2
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 2 / 3

    def test_expired_entries_not_counted(self):
        clock = ManualClock()
        cache = Cache("stats", ttl_seconds=5, clock=clock)
        cache.set("key", "value")
        clock.advance(10)
        assert cache.stats()["entries"] == 0

    def test_reset_stats(self):
        cache = Cache("stats")
        cache.get("missing")
        cache.reset_stats()
        stats = cache.stats()
        assert stats["hits"] == 0
        assert stats["misses"] == 0
        assert stats["hit_rate"] == 0.0
