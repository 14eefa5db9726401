"""L2: on-disk store of raw tile payloads."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

import xxhash

from .config import TILE_FILE_EXTENSION
from .errors import CacheCorruptError, CacheWriteError
from .tile_address import TileAddress

_LOGGER = logging.getLogger(__name__)

# Every entry starts with the magic marker followed by the XXH3-128 digest of
# the payload.  A mismatch means the file was truncated or damaged.
_MAGIC = b"MFT1"
_DIGEST_SIZE = 16
_HEADER_SIZE = len(_MAGIC) + _DIGEST_SIZE


class DiskTileStore:
    """One file per tile named ``{zoom}_{col}_{row}.mvt`` under *cache_dir*."""

    def __init__(self, cache_dir: Path | str, extension: str = TILE_FILE_EXTENSION) -> None:
        self._cache_dir = Path(cache_dir)
        self._extension = extension
        try:
            self._cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CacheWriteError(f"Unable to create cache directory '{self._cache_dir}'") from exc

    # ------------------------------------------------------------------
    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    # ------------------------------------------------------------------
    def path_for(self, address: TileAddress) -> Path:
        return self._cache_dir / address.file_name(self._extension)

    # ------------------------------------------------------------------
    def scan(self) -> set[TileAddress]:
        """Return the addresses of every entry whose file name is well formed."""

        found: set[TileAddress] = set()
        for path in self._cache_dir.iterdir():
            if path.suffix != self._extension or not path.is_file():
                continue
            address = TileAddress.from_cache_key(path.stem)
            if address is None or not address.is_valid():
                continue
            found.add(address)
        return found

    # ------------------------------------------------------------------
    def read(self, address: TileAddress) -> bytes:
        """Return the payload stored for *address*.

        Raises :class:`CacheCorruptError` when the entry is missing,
        unreadable or fails its integrity check.
        """

        path = self.path_for(address)
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise CacheCorruptError(f"Unable to read cache entry '{path.name}'") from exc

        if len(data) < _HEADER_SIZE or not data.startswith(_MAGIC):
            raise CacheCorruptError(f"Cache entry '{path.name}' has no valid header")
        digest = data[len(_MAGIC):_HEADER_SIZE]
        payload = data[_HEADER_SIZE:]
        if xxhash.xxh3_128(payload).digest() != digest:
            raise CacheCorruptError(f"Cache entry '{path.name}' failed its checksum")
        return payload

    # ------------------------------------------------------------------
    def write(self, address: TileAddress, payload: bytes) -> Path:
        """Persist *payload* atomically and return the entry path."""

        path = self.path_for(address)
        entry = _MAGIC + xxhash.xxh3_128(payload).digest() + payload
        tmp_name: str | None = None
        try:
            with tempfile.NamedTemporaryFile(
                dir=self._cache_dir,
                prefix=f".{address.cache_key()}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                tmp_name = handle.name
                handle.write(entry)
            os.replace(tmp_name, path)
        except OSError as exc:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise CacheWriteError(f"Unable to write cache entry '{path.name}'") from exc
        return path

    # ------------------------------------------------------------------
    def invalidate(self, address: TileAddress) -> None:
        path = self.path_for(address)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            _LOGGER.warning("Unable to delete cache entry '%s': %s", path.name, exc)


__all__ = ["DiskTileStore"]
