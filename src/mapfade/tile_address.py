"""Quadtree tile coordinates."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from .config import TILE_FILE_EXTENSION, TILE_URL_TEMPLATE
from .viewport import Transform

_CACHE_KEY_PATTERN = re.compile(r"^(\d+)_(\d+)_(\d+)$")


@dataclass(frozen=True, slots=True, order=True)
class TileAddress:
    """Immutable ``(zoom, col, row)`` coordinate of one XYZ tile.

    Construction never validates; :meth:`is_valid` lets callers reject
    addresses that fall outside the ``2 ** zoom`` grid without exceptions.
    """

    zoom: int
    col: int
    row: int

    # ------------------------------------------------------------------
    def is_valid(self) -> bool:
        """Return ``True`` when both indices lie inside the grid of ``zoom``."""

        if self.zoom < 0:
            return False
        n = 1 << self.zoom
        return 0 <= self.col < n and 0 <= self.row < n

    # ------------------------------------------------------------------
    def cache_key(self) -> str:
        """Stable key used as disk filename stem and in-memory map key."""

        return f"{self.zoom}_{self.col}_{self.row}"

    # ------------------------------------------------------------------
    def file_name(self, extension: str = TILE_FILE_EXTENSION) -> str:
        return f"{self.cache_key()}{extension}"

    # ------------------------------------------------------------------
    def fetch_locator(self, template: str = TILE_URL_TEMPLATE) -> str:
        """Substitute the coordinates into a ``{z}/{x}/{y}`` URL template."""

        return (
            template.replace("{z}", str(self.zoom))
            .replace("{x}", str(self.col))
            .replace("{y}", str(self.row))
        )

    # ------------------------------------------------------------------
    def tile_to_world(self) -> Transform:
        """Map unit-square tile-local coordinates into world coordinates."""

        scale = 2.0 ** -self.zoom
        return Transform(scale, (self.col * scale, self.row * scale))

    # ------------------------------------------------------------------
    @classmethod
    def from_cache_key(cls, key: str) -> Optional["TileAddress"]:
        """Parse a ``{zoom}_{col}_{row}`` stem; return ``None`` when malformed."""

        match = _CACHE_KEY_PATTERN.match(key)
        if match is None:
            return None
        zoom, col, row = (int(group) for group in match.groups())
        return cls(zoom, col, row)

    def __str__(self) -> str:
        return f"{self.zoom}/{self.col}/{self.row}"


__all__ = ["TileAddress"]
