"""Tests for BoundedCache (LRU), TTLCache and cache keys."""
from __future__ import annotations

import pytest

from translate_ms.runtime.cache import BoundedCache, TTLCache, make_cache_key


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestBoundedCache:
    """LRU behaviour."""

    def test_set_then_get(self):
        """A stored value is returned."""
        c = BoundedCache(max_items=2)
        c.set("a", 1)
        assert c.get("a") == 1

    def test_missing_key_returns_none(self):
        """Absent keys are misses."""
        c = BoundedCache(max_items=2)
        assert c.get("nope") is None
        assert c.stats()["misses"] == 1

    def test_evicts_least_recently_used(self):
        """Capacity n, n+1 inserts: the first key is gone."""
        c = BoundedCache(max_items=3)
        for k in ("a", "b", "c", "d"):
            c.set(k, k.upper())
        assert c.get("a") is None
        assert c.get("d") == "D"
        assert len(c) == 3
        assert c.stats()["evictions"] == 1

    def test_get_promotes(self):
        """Reading a key protects it from the next eviction."""
        c = BoundedCache(max_items=2)
        c.set("a", 1)
        c.set("b", 2)
        c.get("a")
        c.set("c", 3)
        assert c.get("a") == 1
        assert c.get("b") is None

    def test_set_existing_replaces_and_promotes(self):
        """Re-setting a key updates it without growing the cache."""
        c = BoundedCache(max_items=2)
        c.set("a", 1)
        c.set("b", 2)
        c.set("a", 10)
        c.set("c", 3)
        assert c.get("a") == 10
        assert c.get("b") is None
        assert len(c) == 2

    def test_never_exceeds_capacity(self):
        """Size stays at max_items under churn."""
        c = BoundedCache(max_items=5)
        for i in range(100):
            c.set(str(i), i)
            assert len(c) <= 5

    def test_delete_and_clear(self):
        """delete removes one key, clear removes all."""
        c = BoundedCache(max_items=3)
        c.set("a", 1)
        c.set("b", 2)
        assert c.delete("a") is True
        assert c.delete("a") is False
        assert c.clear() == 1
        assert len(c) == 0

    def test_contains_does_not_count(self):
        """Membership checks don't touch stats."""
        c = BoundedCache(max_items=2)
        c.set("a", 1)
        assert "a" in c
        assert c.stats()["hits"] == 0

    def test_invalid_capacity(self):
        """Capacity must be positive."""
        with pytest.raises(ValueError):
            BoundedCache(max_items=0)


class TestTTLCache:
    """Lazy expiry."""

    def test_fresh_entry_is_served(self):
        """Before the TTL the value is returned."""
        clock = FakeClock()
        c = TTLCache(max_items=2, ttl_seconds=10, clock=clock)
        c.set("a", 1)
        clock.now += 9
        assert c.get("a") == 1

    def test_expired_entry_is_absent(self):
        """After the TTL the entry is deleted on read."""
        clock = FakeClock()
        c = TTLCache(max_items=2, ttl_seconds=10, clock=clock)
        c.set("a", 1)
        clock.now += 11
        assert c.get("a") is None
        assert "a" not in c
        assert c.stats()["expirations"] == 1

    def test_reset_restarts_lifetime(self):
        """Setting again refreshes the insertion time."""
        clock = FakeClock()
        c = TTLCache(max_items=2, ttl_seconds=10, clock=clock)
        c.set("a", 1)
        clock.now += 8
        c.set("a", 2)
        clock.now += 8
        assert c.get("a") == 2

    def test_invalid_ttl(self):
        """TTL must be positive."""
        with pytest.raises(ValueError):
            TTLCache(max_items=2, ttl_seconds=0)


class TestCacheKey:
    """make_cache_key()."""

    def test_same_fields_same_key(self):
        """Field order does not matter."""
        a = make_cache_key("t", {"text": "hi", "lang": "vi", "quality": 3})
        b = make_cache_key("t", {"quality": 3, "lang": "vi", "text": "hi"})
        assert a == b

    def test_any_field_changes_key(self):
        """Each output-affecting field separates keys."""
        base = {"text": "hi", "lang": "vi", "quality": 3, "pronunciation": True, "context": ""}
        keys = {make_cache_key("t", base)}
        for field, value in [("text", "hi!"), ("lang", "ko"), ("quality", 4),
                             ("pronunciation", False), ("context", "formal")]:
            keys.add(make_cache_key("t", {**base, field: value}))
        assert len(keys) == 6

    def test_namespace_prefix(self):
        """Keys carry their namespace."""
        assert make_cache_key("speak", {"text": "x"}).startswith("speak:")
