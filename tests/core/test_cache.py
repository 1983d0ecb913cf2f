from unittest.mock import patch

from stratix.core.cache import TTLCache, compute_hash


class TestTTLCache:

    def test_set_and_get(self):
        cache = TTLCache(ttl_seconds=60)
        cache.set("a", {"value": 1})

        assert cache.get("a") == {"value": 1}
        assert cache.stats()["hits"] == 1

    def test_missing_key_counts_a_miss(self):
        cache = TTLCache()

        assert cache.get("nope") is None
        assert cache.stats()["misses"] == 1

    def test_entries_expire(self):
        cache = TTLCache(ttl_seconds=10)
        with patch("stratix.core.cache.time.monotonic", return_value=100.0):
            cache.set("a", 1)
        with patch("stratix.core.cache.time.monotonic", return_value=111.0):
            assert cache.get("a") is None
        assert len(cache) == 0

    def test_per_entry_ttl_overrides_default(self):
        cache = TTLCache(ttl_seconds=10)
        with patch("stratix.core.cache.time.monotonic", return_value=100.0):
            cache.set("a", 1, ttl_seconds=60)
        with patch("stratix.core.cache.time.monotonic", return_value=150.0):
            assert cache.get("a") == 1

    def test_full_cache_evicts_entry_closest_to_expiry(self):
        cache = TTLCache(ttl_seconds=60, max_entries=2)
        cache.set("short", 1, ttl_seconds=5)
        cache.set("long", 2, ttl_seconds=500)
        cache.set("third", 3)

        assert cache.get("short") is None
        assert cache.get("long") == 2
        assert cache.get("third") == 3
        assert cache.stats()["evictions"] == 1

    def test_delete_and_clear(self):
        cache = TTLCache()
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.delete("a") is True
        assert cache.delete("a") is False
        cache.clear()
        assert len(cache) == 0


class TestComputeHash:

    def test_key_order_does_not_matter(self):
        assert compute_hash({"a": 1, "b": 2}) == compute_hash({"b": 2, "a": 1})

    def test_different_parts_differ(self):
        assert compute_hash(1, {"a": 1}) != compute_hash(2, {"a": 1})
