"""Viewport computation helpers shared by tile selection and rendering.

World coordinates use the unit square: ``(0, 0)`` is the north-west corner of
the Web-Mercator world and ``(1, 1)`` the south-east corner, so the y axis
points down exactly like screen space.  A tile at zoom ``z`` covers a square
of side ``2 ** -z`` in world space.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .config import TILE_SIZE, VIEWPORT_HEIGHT, VIEWPORT_WIDTH

if TYPE_CHECKING:  # pragma: no cover - only for type checking
    from .tile_address import TileAddress

MERCATOR_LAT_BOUND = 85.05112878

Point = tuple[float, float]


@dataclass(frozen=True)
class Transform:
    """Uniform scale followed by a translation: ``p -> scale * p + translation``."""

    scale: float
    translation: Point = (0.0, 0.0)

    def __post_init__(self) -> None:
        if not math.isfinite(self.scale) or self.scale <= 0.0:
            raise ValueError(f"Transform scale must be finite and positive, got {self.scale!r}")
        if not all(math.isfinite(component) for component in self.translation):
            raise ValueError(f"Transform translation must be finite, got {self.translation!r}")

    @classmethod
    def identity(cls) -> "Transform":
        return cls(1.0, (0.0, 0.0))

    def apply(self, point: Point) -> Point:
        """Map a single point."""

        return (
            self.scale * point[0] + self.translation[0],
            self.scale * point[1] + self.translation[1],
        )

    def compose(self, inner: "Transform") -> "Transform":
        """Return the transform that applies *inner* first and ``self`` second."""

        return Transform(
            self.scale * inner.scale,
            (
                self.scale * inner.translation[0] + self.translation[0],
                self.scale * inner.translation[1] + self.translation[1],
            ),
        )

    def invert(self) -> "Transform":
        return Transform(
            1.0 / self.scale,
            (-self.translation[0] / self.scale, -self.translation[1] / self.scale),
        )


@dataclass(frozen=True)
class ViewState:
    """Describe the camera parameters of one rendered frame.

    ``center_x``/``center_y`` are world coordinates, ``zoom`` is continuous and
    ``width``/``height`` give the viewport size in screen pixels.
    """

    center_x: float
    center_y: float
    zoom: float
    width: int = VIEWPORT_WIDTH
    height: int = VIEWPORT_HEIGHT
    tile_size: int = TILE_SIZE

    # ------------------------------------------------------------------
    @property
    def world_size(self) -> float:
        """Edge length of the whole world in screen pixels at ``zoom``."""

        return self.tile_size * (2 ** self.zoom)

    # ------------------------------------------------------------------
    def world_to_screen(self) -> Transform:
        """Project world coordinates into screen pixels."""

        scale = self.world_size
        return Transform(
            scale,
            (
                self.width / 2.0 - self.center_x * scale,
                self.height / 2.0 - self.center_y * scale,
            ),
        )

    # ------------------------------------------------------------------
    def screen_to_world(self) -> Transform:
        """Project screen pixels back into world coordinates."""

        return self.world_to_screen().invert()

    # ------------------------------------------------------------------
    def tile_to_screen(self, address: "TileAddress") -> Transform:
        """Map unit-square tile-local geometry of *address* onto the screen."""

        return self.world_to_screen().compose(address.tile_to_world())

    # ------------------------------------------------------------------
    def world_min(self) -> Point:
        """World coordinate of the top-left viewport corner."""

        return self.screen_to_world().apply((0.0, 0.0))

    # ------------------------------------------------------------------
    def world_max(self) -> Point:
        """World coordinate of the bottom-right viewport corner."""

        return self.screen_to_world().apply((float(self.width), float(self.height)))


def lonlat_to_world(lat: float, lon: float) -> Point:
    """Convert latitude/longitude in degrees into unit-square world coordinates."""

    lat = max(min(float(lat), MERCATOR_LAT_BOUND), -MERCATOR_LAT_BOUND)
    x = 0.5 + float(lon) / 360.0
    y = (math.pi - math.log(math.tan(math.pi / 4.0 + math.radians(lat) / 2.0))) / (2.0 * math.pi)
    return x, y


def compute_view_state(
    lat: float,
    lon: float,
    zoom: float,
    width: int = VIEWPORT_WIDTH,
    height: int = VIEWPORT_HEIGHT,
    tile_size: int = TILE_SIZE,
) -> ViewState:
    """Build a :class:`ViewState` centred on a geographic position."""

    center_x, center_y = lonlat_to_world(lat, lon)
    return ViewState(
        center_x=center_x,
        center_y=center_y,
        zoom=float(zoom),
        width=width,
        height=height,
        tile_size=tile_size,
    )


__all__ = [
    "MERCATOR_LAT_BOUND",
    "Transform",
    "ViewState",
    "compute_view_state",
    "lonlat_to_world",
]
