"""
Bounded in-memory caches (LRU, optionally with TTL).

Used for three things:
    - per-process translation results (server, with TTL)
    - synthesized audio (server, with TTL)
    - API responses on the client side (no TTL)

All mutation happens on one event loop and never spans an ``await``, so
no locking is needed.

Example:
    >>> cache = BoundedCache(max_items=2)
    >>> cache.set("a", 1); cache.set("b", 2); cache.set("c", 3)
    >>> cache.get("a") is None
    True
"""
from __future__ import annotations

import hashlib
import json
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Dict, Generic, Optional, TypeVar

from translate_ms.core.logging import debug, get_logger

_LOG = get_logger("translate-ms.cache")

V = TypeVar("V")


def make_cache_key(namespace: str, fields: Dict[str, object]) -> str:
    """
    Deterministic key over every field that affects the cached output.

    Fields are serialized as JSON with sorted keys and hashed with SHA-256,
    so two requests collide only if every field matches.

    Returns:
        ``"{namespace}:{64 hex chars}"``
    """
    payload = json.dumps(fields, sort_keys=True, ensure_ascii=True, default=str).encode("utf-8")
    return f"{namespace}:{hashlib.sha256(payload).hexdigest()}"


@dataclass
class CacheEntry(Generic[V]):
    """A cached value and when it was stored (per the cache's clock)."""
    value: V
    inserted_at: float = field(default_factory=time.monotonic)


class BoundedCache(Generic[V]):
    """
    Fixed-capacity LRU map.

    ``get`` promotes a hit to most-recently-used. ``set`` replaces and
    promotes an existing key; a new key at capacity evicts the
    least-recently-used entry first. Both are O(1) via OrderedDict.

    Attributes:
        max_items: Capacity. The cache never holds more entries.
        name: Label used in logs and stats.
    """

    def __init__(
        self,
        max_items: int,
        name: str = "cache",
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_items <= 0:
            raise ValueError(f"max_items must be positive, got {max_items}")
        self.max_items = int(max_items)
        self.name = name
        self._clock = clock
        self._d: "OrderedDict[str, CacheEntry[V]]" = OrderedDict()

        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str) -> Optional[V]:
        """Return the value for ``key`` or None, promoting on hit."""
        entry = self._lookup(key)
        if entry is None:
            self._misses += 1
            return None
        self._d.move_to_end(key)
        self._hits += 1
        return entry.value

    def set(self, key: str, value: V) -> None:
        """Insert or replace ``key``, evicting the oldest entry when full."""
        if key in self._d:
            self._d.move_to_end(key)
        elif len(self._d) >= self.max_items:
            evicted, _ = self._d.popitem(last=False)
            self._evictions += 1
            debug(_LOG, "evicted", cache=self.name, key=evicted[:12])
        self._d[key] = CacheEntry(value=value, inserted_at=self._clock())

    def _lookup(self, key: str) -> Optional[CacheEntry[V]]:
        return self._d.get(key)

    def delete(self, key: str) -> bool:
        """Remove ``key``. Returns True if it was present."""
        return self._d.pop(key, None) is not None

    def clear(self) -> int:
        """Drop everything and return how many entries were removed."""
        count = len(self._d)
        self._d.clear()
        return count

    def stats(self) -> Dict[str, int]:
        return {
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
            "size": len(self._d),
            "max_items": self.max_items,
        }

    def __len__(self) -> int:
        return len(self._d)

    def __contains__(self, key: str) -> bool:
        """Membership without promotion or TTL checks."""
        return key in self._d


class TTLCache(BoundedCache[V]):
    """
    BoundedCache whose entries expire ``ttl_seconds`` after insertion.

    Expiry is checked lazily on ``get``: an expired entry is deleted and
    reported as absent, never returned stale. Re-setting a key restarts
    its lifetime.
    """

    def __init__(
        self,
        max_items: int,
        ttl_seconds: float,
        name: str = "cache",
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(max_items, name=name, clock=clock)
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self.ttl_seconds = float(ttl_seconds)
        self._expirations = 0

    def _lookup(self, key: str) -> Optional[CacheEntry[V]]:
        entry = self._d.get(key)
        if entry is None:
            return None
        age = self._clock() - entry.inserted_at
        if age > self.ttl_seconds:
            del self._d[key]
            self._expirations += 1
            debug(_LOG, "expired", cache=self.name, key=key[:12], age=round(age, 1))
            return None
        return entry

    def stats(self) -> Dict[str, int]:
        result = super().stats()
        result["expirations"] = self._expirations
        result["ttl_seconds"] = int(self.ttl_seconds)
        return result
