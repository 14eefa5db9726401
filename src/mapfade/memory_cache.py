"""L1: LRU in-memory cache of decoded tiles."""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Optional

from .layer import DecodedTile
from .tile_address import TileAddress


class MemoryTileCache:
    """L1: LRU memory cache for :class:`DecodedTile` objects.

    Evicts the least-recently-used tile once *max_size* is exceeded; a
    ``None`` limit keeps every tile.  Eviction only forgets the decoded
    object, the disk tier is untouched.  The internal lock keeps the LRU
    bookkeeping consistent when several readers call :meth:`get` at once.
    """

    def __init__(self, max_size: Optional[int] = None):
        if max_size is not None and max_size < 1:
            raise ValueError("max_size must be positive or None")
        self._cache: OrderedDict[TileAddress, DecodedTile] = OrderedDict()
        self._max_size = max_size
        self._lock = threading.Lock()

    def get(self, key: TileAddress) -> DecodedTile | None:
        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
                return self._cache[key]
            return None

    def put(self, key: TileAddress, tile: DecodedTile) -> list[TileAddress]:
        """Insert *tile* and return the addresses evicted to make room."""

        evicted: list[TileAddress] = []
        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
            self._cache[key] = tile
            if self._max_size is not None:
                while len(self._cache) > self._max_size:
                    evicted_key, _ = self._cache.popitem(last=False)
                    evicted.append(evicted_key)
        return evicted

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._cache

    def invalidate(self, key: TileAddress) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    @property
    def max_size(self) -> Optional[int]:
        return self._max_size

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._cache)


__all__ = ["MemoryTileCache"]
