"""Custom exception hierarchy for mapfade."""

from __future__ import annotations


class MapFadeError(Exception):
    """Base class for all custom errors raised by mapfade."""


# --- Configuration errors ---

class SettingsError(MapFadeError):
    """Raised when the settings file cannot be read or fails validation."""


class StyleLoadError(MapFadeError):
    """Raised when the style rule file cannot be read, parsed or validated."""


# --- Addressing errors ---

class AddressInvalidError(MapFadeError):
    """Raised when a tile address lies outside the quadtree grid."""


# --- Tile loading errors ---

class TileLoadingError(MapFadeError):
    """Base exception for problems while loading a tile into the cache."""


class TileFetchError(TileLoadingError):
    """Raised when the network request for a tile fails."""


class TileDecodeError(TileLoadingError):
    """Raised when a tile payload or one of its geometries cannot be decoded."""


class CacheCorruptError(TileLoadingError):
    """Raised when a persisted tile entry fails its integrity check.

    The tile cache handles this error itself by evicting the entry and
    fetching the tile again; it only reaches callers of the disk store.
    """


class CacheWriteError(TileLoadingError):
    """Raised when a fetched tile cannot be persisted to the cache directory."""


__all__ = [
    "AddressInvalidError",
    "CacheCorruptError",
    "CacheWriteError",
    "MapFadeError",
    "SettingsError",
    "StyleLoadError",
    "TileDecodeError",
    "TileFetchError",
    "TileLoadingError",
]
