"""
Response cache for the OKR endpoints.

Keyed TTL cache in front of the dashboard aggregator. Entries are immutable
once written and replaced whole. Nothing invalidates automatically on write:
ingestion runs on its own schedule and admins flush via the cache endpoint.

Two implementations share one interface:
- InMemoryResponseCache: thread-safe dict with TTL, oldest-first eviction
  and hit/miss statistics; the clock is injectable
- NullResponseCache: never stores anything
"""
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300
DEFAULT_MAX_ENTRIES = 500


def build_cache_key(prefix: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Deterministic key: prefix followed by name=value pairs sorted by name."""
    if not params:
        return prefix
    parts = [f"{name}={params[name]}" for name in sorted(params) if params[name] is not None]
    return "_".join([prefix, *parts])


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class ResponseCache:
    """Cache interface used by the aggregator and the admin endpoints."""

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        raise NotImplementedError

    def invalidate(self, key: str) -> bool:
        raise NotImplementedError

    def invalidate_by_pattern(self, pattern: str) -> int:
        raise NotImplementedError

    def clear(self) -> int:
        raise NotImplementedError

    def stats(self) -> Dict[str, Any]:
        raise NotImplementedError


class InMemoryResponseCache(ResponseCache):
    """
    In-process TTL cache.

    Args:
        default_ttl: seconds an entry lives when `set` gets no ttl
        max_entries: oldest entries are evicted beyond this size
        clock: returns seconds; defaults to time.monotonic
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._default_ttl = default_ttl
        self._max_entries = max_entries
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ttl = self._default_ttl if ttl is None else ttl
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)
            while len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted cache entry {evicted}")

    def invalidate(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate_by_pattern(self, pattern: str) -> int:
        with self._lock:
            matching = [key for key in self._entries if pattern in key]
            for key in matching:
                del self._entries[key]
        logger.info(f"Invalidated {len(matching)} cache entries matching {pattern!r}")
        return len(matching)

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info(f"Cleared {count} cache entries")
        return count

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "size": len(self._entries),
                "keys": list(self._entries),
                "hits": self._hits,
                "misses": self._misses,
            }


class NullResponseCache(ResponseCache):
    """Cache that stores nothing; every read is a miss."""

    def __init__(self):
        self._misses = 0

    def get(self, key: str) -> Optional[Any]:
        self._misses += 1
        return None

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        return None

    def invalidate(self, key: str) -> bool:
        return False

    def invalidate_by_pattern(self, pattern: str) -> int:
        return 0

    def clear(self) -> int:
        return 0

    def stats(self) -> Dict[str, Any]:
        return {"size": 0, "keys": [], "hits": 0, "misses": self._misses}
