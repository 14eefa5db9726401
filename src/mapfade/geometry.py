"""Conversion of raw vector tile geometry into normalized paths and areas.

Raw features arrive in the GeoJSON-like layout produced by
:func:`mapbox_vector_tile.decode`, expressed in the integer coordinate grid of
the tile (its *extent*).  Everything leaving this module lives in the unit
square of the tile so consumers never need to know the source resolution.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Tuple

import numpy as np

from .errors import TileDecodeError

_LOGGER = logging.getLogger(__name__)

Point = Tuple[float, float]
Path = Tuple[Point, ...]


def sequence_depth(value: object) -> int:
    """Return how many list/tuple levels ``value`` contains before scalars."""

    depth = 0
    current = value
    while isinstance(current, (list, tuple)) and current:
        depth += 1
        current = current[0]
    return depth


def normalize_geometry_type(raw_type: object) -> str | None:
    """Translate geometry identifiers into canonical GeoJSON-style strings."""

    if isinstance(raw_type, str):
        return raw_type
    if raw_type == 1:
        return "Point"
    if raw_type == 2:
        return "LineString"
    if raw_type == 3:
        return "Polygon"
    return None


def is_number_pair(value: Sequence[object]) -> bool:
    """Return ``True`` when ``value`` looks like an ``(x, y)`` tuple."""

    if len(value) < 2:
        return False
    return all(isinstance(component, (int, float)) for component in value[:2])


def map_coordinate_structure(
    value: object,
    transform: Callable[[float, float], tuple[float, float]],
) -> object:
    """Apply ``transform`` to every coordinate pair in ``value``."""

    if isinstance(value, (list, tuple)):
        if is_number_pair(value):
            x, y = transform(float(value[0]), float(value[1]))
            return (x, y)
        return [map_coordinate_structure(item, transform) for item in value]
    return value


def normalize_polygons(geom_type: str | None, coordinates: object) -> list[Sequence[Sequence[Point]]]:
    """Convert raw polygon coordinates into a list of polygons."""

    polygons: list[Sequence[Sequence[Point]]] = []
    if geom_type == "Polygon":
        depth = sequence_depth(coordinates)
        if depth >= 4:
            # Legacy integer type codes do not distinguish multi polygons.
            polygons = list(coordinates) if isinstance(coordinates, (list, tuple)) else []
        else:
            polygons = [coordinates] if isinstance(coordinates, (list, tuple)) else []
    elif geom_type == "MultiPolygon":
        polygons = list(coordinates) if isinstance(coordinates, (list, tuple)) else []

    return [polygon for polygon in polygons if polygon]


def normalize_lines(geom_type: str | None, coordinates: object) -> list[Sequence[Point]]:
    """Convert raw line coordinates into a list of line strings."""

    lines: list[Sequence[Point]] = []
    if geom_type == "LineString":
        depth = sequence_depth(coordinates)
        if depth >= 3:
            lines = list(coordinates) if isinstance(coordinates, (list, tuple)) else []
        else:
            lines = [coordinates] if isinstance(coordinates, (list, tuple)) else []
    elif geom_type == "MultiLineString":
        lines = list(coordinates) if isinstance(coordinates, (list, tuple)) else []

    return [line for line in lines if line]


def signed_area(path: Sequence[Point]) -> float:
    """Return the shoelace signed area of the ring described by ``path``.

    The ring is implicitly closed.  With the y axis pointing down a positive
    value means the ring runs clockwise on screen.  Rings with fewer than
    three points have no area.
    """

    if len(path) < 3:
        return 0.0
    points = np.asarray(path, dtype=float)
    x = points[:, 0]
    y = points[:, 1]
    return float(0.5 * np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y))


@dataclass(frozen=True, slots=True)
class Area:
    """A filled region: one outer ring and any number of hole rings."""

    outer: Path
    inner: tuple[Path, ...] = ()

    def enforce_winding(self) -> tuple["Area", int]:
        """Return the area with its outer ring positive and every hole negative.

        The second item counts the rings that had to be reversed so callers
        can monitor the quality of the source data.  An already oriented
        area is returned unchanged with a count of ``0``.
        """

        repaired = 0
        outer = self.outer
        if signed_area(outer) < 0.0:
            outer = tuple(reversed(outer))
            repaired += 1
        inner: list[Path] = []
        for ring in self.inner:
            if signed_area(ring) > 0.0:
                ring = tuple(reversed(ring))
                repaired += 1
            inner.append(ring)
        if not repaired:
            return self, 0
        return Area(outer=outer, inner=tuple(inner)), repaired

    @property
    def rings(self) -> tuple[Path, ...]:
        return (self.outer, *self.inner)


@dataclass
class NormalizedGeometry:
    """Paths and areas collected from one or more raw features."""

    paths: list[Path] = field(default_factory=list)
    areas: list[Area] = field(default_factory=list)

    def extend(self, other: "NormalizedGeometry") -> None:
        self.paths.extend(other.paths)
        self.areas.extend(other.areas)

    def enforce_winding(self) -> int:
        """Run :meth:`Area.enforce_winding` once on every collected area."""

        repaired = 0
        for index, area in enumerate(self.areas):
            self.areas[index], count = area.enforce_winding()
            repaired += count
        if repaired:
            _LOGGER.debug("Reversed %d ring(s) with unexpected orientation", repaired)
        return repaired


def _to_path(coordinates: object) -> Path:
    if not isinstance(coordinates, (list, tuple)):
        raise TileDecodeError(f"Expected a coordinate sequence, got {type(coordinates).__name__}")
    path: list[Point] = []
    for point in coordinates:
        if not isinstance(point, (list, tuple)) or not is_number_pair(point):
            raise TileDecodeError(f"Malformed coordinate {point!r}")
        path.append((float(point[0]), float(point[1])))
    return tuple(path)


def _polygon_to_area(rings: Sequence[object]) -> Area | None:
    paths = [_to_path(ring) for ring in rings]
    paths = [path for path in paths if path]
    if not paths:
        return None
    return Area(outer=paths[0], inner=tuple(paths[1:]))


def _rectangle_ring(coordinates: object) -> list[Point]:
    corners = _to_path(coordinates)
    if len(corners) != 2:
        raise TileDecodeError("A rectangle needs exactly two corner points")
    (x0, y0), (x1, y1) = corners
    min_x, max_x = min(x0, x1), max(x0, x1)
    min_y, max_y = min(y0, y1), max(y0, y1)
    return [(min_x, min_y), (max_x, min_y), (max_x, max_y), (min_x, max_y), (min_x, min_y)]


def _triangle_ring(coordinates: object) -> list[Point]:
    corners = list(_to_path(coordinates))
    if len(corners) == 4 and corners[0] == corners[3]:
        corners = corners[:3]
    if len(corners) != 3:
        raise TileDecodeError("A triangle needs exactly three points")
    return [*corners, corners[0]]


def normalize_geometry(geometry: Any, extent: int) -> NormalizedGeometry:
    """Convert one raw geometry into unit-square paths and areas.

    Coordinates are divided by *extent* but not clipped, so geometry in the
    tile buffer lands slightly outside the unit square.  Points are dropped
    because they carry no drawable path.  Collections recurse.  Winding is
    *not* enforced here; call :meth:`NormalizedGeometry.enforce_winding`
    once per layer after all features have been converted.
    """

    if extent <= 0:
        raise TileDecodeError(f"Tile extent must be positive, got {extent}")
    if not isinstance(geometry, dict):
        raise TileDecodeError(f"Expected a geometry mapping, got {type(geometry).__name__}")

    result = NormalizedGeometry()
    geom_type = normalize_geometry_type(geometry.get("type"))

    if geom_type == "GeometryCollection":
        members = geometry.get("geometries") or []
        if not isinstance(members, (list, tuple)):
            raise TileDecodeError("GeometryCollection members must be a list")
        for member in members:
            result.extend(normalize_geometry(member, extent))
        return result

    scale = 1.0 / float(extent)
    coordinates = map_coordinate_structure(
        geometry.get("coordinates", []),
        lambda x, y: (x * scale, y * scale),
    )

    if geom_type in {"Point", "MultiPoint"}:
        return result
    if geom_type in {"LineString", "MultiLineString"}:
        for line in normalize_lines(geom_type, coordinates):
            path = _to_path(line)
            if len(path) >= 2:
                result.paths.append(path)
        return result
    if geom_type == "Line":
        segment = _to_path(coordinates)
        if len(segment) != 2:
            raise TileDecodeError("A line segment needs exactly two points")
        result.paths.append(segment)
        return result
    if geom_type in {"Polygon", "MultiPolygon"}:
        for polygon in normalize_polygons(geom_type, coordinates):
            area = _polygon_to_area(polygon)
            if area is not None:
                result.areas.append(area)
        return result
    if geom_type == "Rectangle":
        result.areas.append(Area(outer=tuple(_rectangle_ring(coordinates))))
        return result
    if geom_type == "Triangle":
        result.areas.append(Area(outer=tuple(_triangle_ring(coordinates))))
        return result

    raise TileDecodeError(f"Unsupported geometry type {geometry.get('type')!r}")


def extract_geometry(feature: dict) -> dict:
    """Return the geometry mapping of a decoded feature.

    Newer decoders nest ``{"type", "coordinates"}`` under ``geometry``; the
    legacy layout stores the integer type code on the feature itself and the
    bare coordinates under ``geometry``.
    """

    geometry = feature.get("geometry")
    if isinstance(geometry, dict):
        return geometry
    return {"type": feature.get("type"), "coordinates": geometry if geometry is not None else []}


__all__ = [
    "Area",
    "NormalizedGeometry",
    "Path",
    "Point",
    "extract_geometry",
    "is_number_pair",
    "map_coordinate_structure",
    "normalize_geometry",
    "normalize_geometry_type",
    "normalize_lines",
    "normalize_polygons",
    "sequence_depth",
    "signed_area",
]
