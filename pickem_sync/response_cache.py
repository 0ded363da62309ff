"""
Short-TTL cache for raw upstream responses.

Entries are keyed by endpoint plus sorted query parameters. Freshness is
judged against the TTL of the cache class requested at lookup time, so the
same scoreboard payload can be long-lived for a schedule sync and short-lived
for a live score poll.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .config import CACHE_SCHEDULE, CACHE_SCOREBOARD, CACHE_SEASON

logger = logging.getLogger(__name__)

DEFAULT_TTLS = {
    CACHE_SCOREBOARD: 5 * 60,
    CACHE_SEASON: 60 * 60,
    CACHE_SCHEDULE: 30 * 60,
}

CacheKey = Tuple[str, Tuple[Tuple[str, str], ...]]


@dataclass
class CacheEntry:
    payload: Any
    stored_at: float
    cache_class: str


def make_cache_key(endpoint: str, params: Optional[Mapping[str, Any]] = None) -> CacheKey:
    """Build a cache key from an endpoint and its query parameters (order-insensitive)."""
    items = tuple(sorted((str(k), str(v)) for k, v in (params or {}).items()))
    return endpoint, items


class ResponseCache:
    """Thread-safe TTL cache with hit/miss accounting."""

    def __init__(
        self,
        ttls: Optional[Dict[str, float]] = None,
        clock: Callable[[], float] = time.monotonic,
        sweep_policy: str = "per_class",
    ):
        self.ttls = dict(DEFAULT_TTLS)
        if ttls:
            self.ttls.update(ttls)
        if sweep_policy not in ("per_class", "shortest"):
            raise ValueError(f"Unknown cache sweep policy: {sweep_policy}")
        self.sweep_policy = sweep_policy
        self._clock = clock
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._lock = threading.RLock()
        self.hits = 0
        self.misses = 0

    def ttl_for(self, cache_class: str) -> float:
        try:
            return self.ttls[cache_class]
        except KeyError:
            raise ValueError(f"Unknown cache class: {cache_class}")

    def get(self, endpoint: str, params: Optional[Mapping[str, Any]], cache_class: str) -> Optional[Any]:
        """Return a live payload and count a hit, or evict an expired one and return None."""
        ttl = self.ttl_for(cache_class)
        key = make_cache_key(endpoint, params)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.stored_at > ttl:
                del self._entries[key]
                logger.debug(f"[Cache] Expired {cache_class} entry evicted for {endpoint}")
                return None
            self.hits += 1
            return entry.payload

    def set(self, endpoint: str, params: Optional[Mapping[str, Any]], payload: Any, cache_class: str) -> None:
        self.ttl_for(cache_class)
        with self._lock:
            self._entries[make_cache_key(endpoint, params)] = CacheEntry(payload, self._clock(), cache_class)

    def record_miss(self) -> None:
        with self._lock:
            self.misses += 1

    def purge_stale(self) -> int:
        """
        Drop expired entries.

        With the ``per_class`` policy an entry is dropped once older than its
        own class TTL; with ``shortest`` anything older than the shortest TTL
        goes.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        shortest = min(self.ttls.values())
        with self._lock:
            stale = [
                key for key, entry in self._entries.items()
                if now - entry.stored_at > (
                    shortest if self.sweep_policy == "shortest" else self.ttls.get(entry.cache_class, shortest)
                )
            ]
            for key in stale:
                del self._entries[key]
        if stale:
            logger.info(f"[Cache] Purged {len(stale)} stale entries")
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"hits": self.hits, "misses": self.misses, "size": len(self._entries)}
