"""Cache hit-rate statistics collector.

Tracks ``hit`` / ``miss`` counts for the memory and disk tiers of the tile
cache plus free-form event counters (network fetches, corrupt entries,
winding repairs).  Thread-safe; one collector is owned by each
:class:`~mapfade.tile_cache.TileCache`.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass


@dataclass(frozen=True)
class CacheStats:
    """Immutable snapshot of cache statistics."""

    hits: int = 0
    misses: int = 0

    @property
    def total(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Hit rate as a float in [0.0, 1.0]; 0.0 when no requests."""
        if self.total == 0:
            return 0.0
        return self.hits / self.total


class CacheStatsCollector:
    """Thread-safe collector for per-tier hit/miss counters and events.

    Usage::

        stats = CacheStatsCollector()
        stats.record_hit("memory")
        stats.record_event("network_fetch")
        print(stats.get("memory").hit_rate, stats.count("network_fetch"))
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._hits: dict[str, int] = {}
        self._misses: dict[str, int] = {}
        self._events: dict[str, int] = {}

    def record_hit(self, cache_name: str) -> None:
        """Record a cache hit for *cache_name*."""
        with self._lock:
            self._hits[cache_name] = self._hits.get(cache_name, 0) + 1

    def record_miss(self, cache_name: str) -> None:
        """Record a cache miss for *cache_name*."""
        with self._lock:
            self._misses[cache_name] = self._misses.get(cache_name, 0) + 1

    def record_event(self, event: str, amount: int = 1) -> None:
        """Increase the counter of *event* by *amount*."""
        with self._lock:
            self._events[event] = self._events.get(event, 0) + amount

    def get(self, cache_name: str) -> CacheStats:
        """Return a :class:`CacheStats` snapshot for *cache_name*."""
        with self._lock:
            return CacheStats(
                hits=self._hits.get(cache_name, 0),
                misses=self._misses.get(cache_name, 0),
            )

    def count(self, event: str) -> int:
        with self._lock:
            return self._events.get(event, 0)

    def all(self) -> dict[str, CacheStats]:
        """Return snapshots for every cache that has recorded data."""
        with self._lock:
            names = set(self._hits) | set(self._misses)
            return {
                name: CacheStats(
                    hits=self._hits.get(name, 0),
                    misses=self._misses.get(name, 0),
                )
                for name in sorted(names)
            }

    def events(self) -> dict[str, int]:
        with self._lock:
            return dict(sorted(self._events.items()))

    def reset(self, cache_name: str | None = None) -> None:
        """Reset counters.  If *cache_name* is ``None``, reset all, events included."""
        with self._lock:
            if cache_name is None:
                self._hits.clear()
                self._misses.clear()
                self._events.clear()
            else:
                self._hits.pop(cache_name, None)
                self._misses.pop(cache_name, None)
