"""Integration point between tile loading and a consuming renderer.

For a view the pipeline asks :class:`~mapfade.resolution.ResolutionSelector`
for one or two weighted tile sets, makes sure the cache holds every tile of
their union and then flattens the decoded layers into a :class:`RenderPlan`.
Within a level, entries are ordered by bucket index (paint order) and then by
tile, so a renderer can walk them front to back without sorting.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

from .layer import DecodedTile, Layer
from .resolution import ResolutionLevel, ResolutionSelector
from .tile_address import TileAddress
from .tile_cache import TileCache
from .viewport import Transform, ViewState

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderEntry:
    """One layer of one tile together with the opacity it is drawn with."""

    tile: DecodedTile
    layer: Layer
    opacity: float
    transform: Transform

    @property
    def address(self) -> TileAddress:
        return self.tile.address


@dataclass(frozen=True)
class LevelPlan:
    zoom: int
    opacity: float
    entries: tuple[RenderEntry, ...]

    def layers(self) -> list[tuple[Layer, float]]:
        """Return the ``(layer, opacity)`` pairs in paint order."""

        return [(entry.layer, entry.opacity) for entry in self.entries]


@dataclass(frozen=True)
class RenderPlan:
    """Everything a renderer needs for one frame, coarser level first."""

    view: ViewState
    levels: tuple[LevelPlan, ...]
    missing: tuple[TileAddress, ...] = ()

    @property
    def zooms(self) -> tuple[int, ...]:
        return tuple(level.zoom for level in self.levels)

    def entries(self) -> list[RenderEntry]:
        return [entry for level in self.levels for entry in level.entries]


class TileDataPipeline:
    """Resolve, load and order the tiles needed to draw a view."""

    def __init__(self, cache: TileCache, selector: ResolutionSelector) -> None:
        self._cache = cache
        self._selector = selector

    # ------------------------------------------------------------------
    @property
    def cache(self) -> TileCache:
        return self._cache

    @property
    def selector(self) -> ResolutionSelector:
        return self._selector

    # ------------------------------------------------------------------
    def required_addresses(self, view: ViewState) -> list[TileAddress]:
        """Return the union of every level's addresses, coarser level first."""

        return _union(self._selector.select(view))

    # ------------------------------------------------------------------
    def load(self, view: ViewState) -> RenderPlan:
        """Load every tile *view* needs and return its render plan.

        Any fetch or decode failure aborts the whole frame.
        """

        levels = self._selector.select(view)
        addresses = _union(levels)
        tiles = self._cache.ensure_loaded_batch(addresses)
        _LOGGER.debug(
            "Loaded %d tile(s) over %d level(s) for zoom %.3f",
            len(tiles),
            len(levels),
            view.zoom,
        )
        return _build_plan(view, levels, {tile.address: tile for tile in tiles})

    # ------------------------------------------------------------------
    def plan(self, view: ViewState) -> RenderPlan:
        """Build the render plan from tiles that are already in memory.

        This only takes shared access on the cache.  Tiles that are not
        loaded are reported in :attr:`RenderPlan.missing` and left out.
        """

        levels = self._selector.select(view)
        available: dict[TileAddress, DecodedTile] = {}
        missing: list[TileAddress] = []
        for address in _union(levels):
            tile = self._cache.get(address)
            if tile is None:
                missing.append(address)
            else:
                available[address] = tile
        if missing:
            _LOGGER.error(
                "%d tile(s) are not loaded for zoom %.3f, first missing %s",
                len(missing),
                view.zoom,
                missing[0],
            )
        return _build_plan(view, levels, available, missing=tuple(missing))

    # ------------------------------------------------------------------
    def prepare_frames(
        self,
        views: Iterable[ViewState],
        max_workers: Optional[int] = None,
    ) -> list[RenderPlan]:
        """Load several independent frames on a worker pool.

        Plans are returned in the order of *views*.  The first failing frame
        re-raises its error here once the pool has shut down.
        """

        views = list(views)
        if not views:
            return []
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="mapfade-frame") as pool:
            return list(pool.map(self.load, views))


def _union(levels: Iterable[ResolutionLevel]) -> list[TileAddress]:
    seen: set[TileAddress] = set()
    ordered: list[TileAddress] = []
    for level in levels:
        for address in level.addresses:
            if address not in seen:
                seen.add(address)
                ordered.append(address)
    return ordered


def _build_plan(
    view: ViewState,
    levels: Iterable[ResolutionLevel],
    tiles: Mapping[TileAddress, DecodedTile],
    *,
    missing: tuple[TileAddress, ...] = (),
) -> RenderPlan:
    level_plans: list[LevelPlan] = []
    for level in levels:
        entries: list[tuple[int, int, RenderEntry]] = []
        for position, address in enumerate(level.addresses):
            tile = tiles.get(address)
            if tile is None:
                continue
            transform = view.tile_to_screen(address)
            for layer in tile.layers:
                entry = RenderEntry(tile=tile, layer=layer, opacity=level.opacity, transform=transform)
                entries.append((layer.index, position, entry))
        entries.sort(key=lambda item: (item[0], item[1]))
        level_plans.append(
            LevelPlan(
                zoom=level.zoom,
                opacity=level.opacity,
                entries=tuple(entry for _, _, entry in entries),
            )
        )
    return RenderPlan(view=view, levels=tuple(level_plans), missing=missing)


__all__ = ["LevelPlan", "RenderEntry", "RenderPlan", "TileDataPipeline"]
