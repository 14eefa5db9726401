"""Two-tier tile cache with network fallback and corruption recovery."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Optional, Protocol

from .cache_stats import CacheStatsCollector
from .errors import AddressInvalidError, CacheCorruptError, TileDecodeError
from .layer import DecodedTile
from .memory_cache import MemoryTileCache
from .rwlock import ReadWriteLock
from .tile_address import TileAddress
from .tile_parser import TileParser
from .tile_store import DiskTileStore

_LOGGER = logging.getLogger(__name__)

MEMORY_TIER = "memory"
DISK_TIER = "disk"
NETWORK_FETCH = "network_fetch"
CORRUPT_ENTRY = "corrupt_entry"
WINDING_REPAIR = "winding_repair"


class PayloadSource(Protocol):
    """Anything able to download the raw payload of a tile."""

    def fetch(self, address: TileAddress) -> bytes:  # pragma: no cover - protocol
        ...


class TileCache:
    """Decoded tiles in memory backed by raw payloads on disk.

    Lookups through :meth:`get` take shared access.  Loading is serialized
    per address so a tile is fetched at most once at a time by this process;
    the network wait and decoding run outside the exclusive section and only
    publishing a finished tile takes exclusive access.
    """

    def __init__(
        self,
        store: DiskTileStore,
        fetcher: PayloadSource,
        parser: TileParser,
        *,
        memory_limit: Optional[int] = None,
        stats: Optional[CacheStatsCollector] = None,
    ) -> None:
        self._store = store
        self._fetcher = fetcher
        self._parser = parser
        self._memory = MemoryTileCache(memory_limit)
        self._stats = stats or CacheStatsCollector()
        self._lock = ReadWriteLock()
        self._in_flight: dict[TileAddress, list] = {}
        self._in_flight_guard = threading.Lock()
        self._known_on_disk: set[TileAddress] = store.scan()
        _LOGGER.info(
            "Tile cache at '%s' holds %d persisted tile(s)",
            store.cache_dir,
            len(self._known_on_disk),
        )

    # ------------------------------------------------------------------
    @property
    def stats(self) -> CacheStatsCollector:
        return self._stats

    @property
    def store(self) -> DiskTileStore:
        return self._store

    # ------------------------------------------------------------------
    def get(self, address: TileAddress) -> Optional[DecodedTile]:
        """Return the decoded tile when it is already in memory."""

        with self._lock.read_locked():
            return self._memory.get(address)

    # ------------------------------------------------------------------
    def is_known_on_disk(self, address: TileAddress) -> bool:
        with self._lock.read_locked():
            return address in self._known_on_disk

    def known_on_disk(self) -> frozenset[TileAddress]:
        with self._lock.read_locked():
            return frozenset(self._known_on_disk)

    # ------------------------------------------------------------------
    def ensure_loaded(self, address: TileAddress) -> DecodedTile:
        """Make *address* available in memory and return its tile.

        Memory first, then the disk entry, then the network.  A corrupt disk
        entry is evicted and replaced by a fresh download.  Fetch, decode
        and write failures propagate; nothing is retried.
        """

        if not address.is_valid():
            raise AddressInvalidError(f"Tile {address} lies outside the zoom {address.zoom} grid")

        with self._loading(address):
            tile = self.get(address)
            if tile is not None:
                self._stats.record_hit(MEMORY_TIER)
                return tile
            self._stats.record_miss(MEMORY_TIER)

            if self.is_known_on_disk(address):
                tile = self._load_from_disk(address)
                if tile is not None:
                    self._stats.record_hit(DISK_TIER)
                    self._publish(address, tile, persisted=False)
                    return tile
            self._stats.record_miss(DISK_TIER)

            payload = self._fetcher.fetch(address)
            self._stats.record_event(NETWORK_FETCH)
            tile = self._parser.build(address, payload)
            self._store.write(address, payload)
            self._publish(address, tile, persisted=True)
            return tile

    # ------------------------------------------------------------------
    def ensure_loaded_batch(self, addresses: Iterable[TileAddress]) -> list[DecodedTile]:
        """Load *addresses* in order; the first failure aborts the batch.

        Addresses outside their zoom grid are skipped with a warning and have
        no entry in the result.  Tiles loaded before a failure stay cached.
        """

        tiles: list[DecodedTile] = []
        for address in addresses:
            if not address.is_valid():
                _LOGGER.warning("Skipping tile %s outside the zoom %d grid", address, address.zoom)
                continue
            tiles.append(self.ensure_loaded(address))
        return tiles

    # ------------------------------------------------------------------
    def _load_from_disk(self, address: TileAddress) -> Optional[DecodedTile]:
        try:
            payload = self._store.read(address)
            return self._parser.build(address, payload)
        except (CacheCorruptError, TileDecodeError) as exc:
            _LOGGER.info("Evicting tile %s from the disk cache: %s", address, exc)
            self._stats.record_event(CORRUPT_ENTRY)
            with self._lock.write_locked():
                self._known_on_disk.discard(address)
            self._store.invalidate(address)
            return None

    # ------------------------------------------------------------------
    def _publish(self, address: TileAddress, tile: DecodedTile, *, persisted: bool) -> None:
        if tile.winding_repairs:
            self._stats.record_event(WINDING_REPAIR, tile.winding_repairs)
        with self._lock.write_locked():
            if persisted:
                self._known_on_disk.add(address)
            evicted = self._memory.put(address, tile)
        if evicted:
            _LOGGER.debug("Evicted %d tile(s) from memory", len(evicted))

    # ------------------------------------------------------------------
    @contextmanager
    def _loading(self, address: TileAddress) -> Iterator[None]:
        """Serialize loads of the same address across threads."""

        with self._in_flight_guard:
            entry = self._in_flight.get(address)
            if entry is None:
                entry = self._in_flight[address] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._in_flight_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._in_flight[address]


__all__ = ["PayloadSource", "TileCache"]
