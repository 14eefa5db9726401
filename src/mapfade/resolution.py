"""Selection of the discrete zoom levels needed for a continuous view.

The fractional part of the view zoom is split into three sub-bands.  Below
``FADE_MIN`` only the floor level is drawn, at or above ``FADE_MAX`` only the
next finer level.  Inside the crossfade band both levels are drawn: the finer
level fades in over ``[FADE_MIN, FADE_MID + overlap]`` while the coarser one
fades out over ``[FADE_MID - overlap, FADE_MAX]``.  Both curves are cubic
smoothsteps, flat at their edges, and they overlap around ``FADE_MID`` so the
two levels never leave a see-through seam between them.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from .config import FADE_MAX, FADE_MID, FADE_MIN, FADE_OVERLAP, MAX_TILE_ZOOM_LEVEL
from .tile_address import TileAddress
from .viewport import ViewState

_LOGGER = logging.getLogger(__name__)


def smooth_step(x: float, edge0: float, edge1: float) -> float:
    """Cubic Hermite step from 0 at *edge0* to 1 at *edge1*, clamped."""

    t = min(max((x - edge0) / (edge1 - edge0), 0.0), 1.0)
    return t * t * (3.0 - 2.0 * t)


@dataclass(frozen=True)
class ResolutionLevel:
    """Tiles of one discrete zoom level and the opacity they are drawn with."""

    zoom: int
    opacity: float
    addresses: tuple[TileAddress, ...]


class ResolutionSelector:
    """Map a continuous view onto one or two weighted tile sets."""

    def __init__(
        self,
        max_zoom: int = MAX_TILE_ZOOM_LEVEL,
        *,
        fade_min: float = FADE_MIN,
        fade_mid: float = FADE_MID,
        fade_max: float = FADE_MAX,
        overlap: float = FADE_OVERLAP,
    ) -> None:
        if not 0.0 <= fade_min < fade_mid < fade_max <= 1.0:
            raise ValueError("Crossfade band edges must satisfy 0 <= min < mid < max <= 1")
        if not 0.0 <= overlap < min(fade_mid - fade_min, fade_max - fade_mid):
            raise ValueError("Crossfade overlap must be smaller than both half bands")
        if max_zoom < 0:
            raise ValueError("max_zoom must not be negative")
        self._max_zoom = max_zoom
        self._fade_min = fade_min
        self._fade_mid = fade_mid
        self._fade_max = fade_max
        self._overlap = overlap

    # ------------------------------------------------------------------
    @property
    def max_zoom(self) -> int:
        return self._max_zoom

    # ------------------------------------------------------------------
    def fade_in(self, fraction: float) -> float:
        """Opacity of the finer level at *fraction* inside the crossfade band."""

        return smooth_step(fraction, self._fade_min, self._fade_mid + self._overlap)

    # ------------------------------------------------------------------
    def fade_out(self, fraction: float) -> float:
        """Opacity of the coarser level at *fraction* inside the crossfade band."""

        return 1.0 - smooth_step(fraction, self._fade_mid - self._overlap, self._fade_max)

    # ------------------------------------------------------------------
    def level_weights(self, zoom: float) -> tuple[tuple[int, float], ...]:
        """Return ``(level, opacity)`` pairs, coarser level first."""

        floor_zoom = math.floor(zoom)
        if floor_zoom >= self._max_zoom:
            return ((self._max_zoom, 1.0),)
        if floor_zoom < 0:
            return ((0, 1.0),)

        fraction = zoom - floor_zoom
        if fraction < self._fade_min:
            return ((floor_zoom, 1.0),)
        if fraction < self._fade_max:
            return (
                (floor_zoom, self.fade_out(fraction)),
                (floor_zoom + 1, self.fade_in(fraction)),
            )
        return ((floor_zoom + 1, 1.0),)

    # ------------------------------------------------------------------
    def select(self, view: ViewState) -> tuple[ResolutionLevel, ...]:
        """Return the weighted tile sets needed to draw *view*."""

        return tuple(
            ResolutionLevel(zoom=level, opacity=opacity, addresses=self.tiles_for_zoom(view, level))
            for level, opacity in self.level_weights(view.zoom)
        )

    # ------------------------------------------------------------------
    def tiles_for_zoom(self, view: ViewState, zoom: int) -> tuple[TileAddress, ...]:
        """Enumerate the tiles of level *zoom* that intersect the viewport."""

        tiles_across = 1 << zoom
        min_x, min_y = view.world_min()
        max_x, max_y = view.world_max()

        start_tile_x = math.floor(min_x * tiles_across)
        start_tile_y = math.floor(min_y * tiles_across)
        end_tile_x = max(math.ceil(max_x * tiles_across), start_tile_x + 1)
        end_tile_y = max(math.ceil(max_y * tiles_across), start_tile_y + 1)

        clamped_x = range(max(start_tile_x, 0), min(end_tile_x, tiles_across))
        clamped_y = range(max(start_tile_y, 0), min(end_tile_y, tiles_across))
        addresses = [TileAddress(zoom, tile_x, tile_y) for tile_y in clamped_y for tile_x in clamped_x]

        skipped = (end_tile_x - start_tile_x) * (end_tile_y - start_tile_y) - len(addresses)

        if skipped:
            _LOGGER.warning(
                "Skipped %d tile address(es) outside the zoom %d grid for view centred at (%.6f, %.6f)",
                skipped,
                zoom,
                view.center_x,
                view.center_y,
            )
        return tuple(addresses)


__all__ = [
    "ResolutionLevel",
    "ResolutionSelector",
    "smooth_step",
]
