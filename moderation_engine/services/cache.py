"""
In-memory result cache with LRU eviction, TTL expiry and a byte budget.

All operations take an internal lock, so a single cache may be shared by the
worker tasks of a batch. Values are replaced wholesale on ``set`` and never
mutated in place; concurrent writers to the same key resolve last-writer-wins.
"""

import sys
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

V = TypeVar("V")


def estimate_size(value: Any) -> int:
    """Rough byte cost of a cached value."""
    return sys.getsizeof(value) + len(repr(value).encode("utf-8"))


@dataclass
class CacheEntry(Generic[V]):
    value: V
    created_at: float
    size: int


class ResultCache(Generic[V]):
    """
    Thread-safe LRU cache bounded by entry count and total byte size.

    Args:
        max_entries: Maximum number of entries held
        max_bytes: Maximum estimated byte size of all entries (None = unbounded)
        ttl_seconds: Entry lifetime (None = entries never expire)
        size_of: Callable estimating the byte cost of a value
        clock: Time source, injectable for tests
    """

    def __init__(
        self,
        max_entries: int = 1000,
        max_bytes: Optional[int] = None,
        ttl_seconds: Optional[float] = 3600.0,
        size_of: Callable[[Any], int] = estimate_size,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self.max_bytes = max_bytes
        self.ttl_seconds = ttl_seconds
        self._size_of = size_of
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry[V]]" = OrderedDict()
        self._total_bytes = 0
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._lock = threading.Lock()

    def _is_expired(self, entry: CacheEntry[V], now: float) -> bool:
        return self.ttl_seconds is not None and now - entry.created_at > self.ttl_seconds

    def _remove(self, key: str) -> None:
        entry = self._entries.pop(key)
        self._total_bytes -= entry.size

    def get(self, key: str) -> Optional[V]:
        """Return the cached value, or None when missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._is_expired(entry, self._clock()):
                self._remove(key)
                self._misses += 1
                return None
            self._entries.move_to_end(key)
            self._hits += 1
            return entry.value

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not self._is_expired(entry, self._clock())

    def set(self, key: str, value: V) -> None:
        size = self._size_of(value)
        with self._lock:
            if key in self._entries:
                self._remove(key)
            if self.max_bytes is not None and size > self.max_bytes:
                # Larger than the whole budget; caching it would evict everything.
                return
            self._entries[key] = CacheEntry(value=value, created_at=self._clock(), size=size)
            self._total_bytes += size
            self._evict()

    def _evict(self) -> None:
        now = self._clock()
        for key in [k for k, e in self._entries.items() if self._is_expired(e, now)]:
            self._remove(key)
            self._evictions += 1
        while len(self._entries) > self.max_entries or (
            self.max_bytes is not None and self._total_bytes > self.max_bytes
        ):
            oldest = next(iter(self._entries))
            self._remove(oldest)
            self._evictions += 1

    def invalidate(self, key: str) -> bool:
        with self._lock:
            if key not in self._entries:
                return False
            self._remove(key)
            return True

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._total_bytes = 0
            return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def stats(self) -> Dict[str, Any]:
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "size": len(self._entries),
                "maxsize": self.max_entries,
                "bytes": self._total_bytes,
                "max_bytes": self.max_bytes,
                "ttl_seconds": self.ttl_seconds,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "hit_rate": self._hits / lookups if lookups else 0.0,
            }
