"""Decoded tile content handed to the renderer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .geometry import Area, Path
from .style_classifier import Bucket, LayerStyle
from .tile_address import TileAddress


@dataclass(frozen=True)
class Layer:
    """Paths and areas of one tile that share a bucket and therefore a style."""

    bucket: Bucket
    paths: tuple[Path, ...] = ()
    areas: tuple[Area, ...] = ()

    @property
    def index(self) -> int:
        """Paint order of the layer."""

        return self.bucket.index

    @property
    def name(self) -> str:
        """Name of the source layer inside the vector tile."""

        return self.bucket.layer_name

    @property
    def style(self) -> LayerStyle:
        return self.bucket.style

    def is_empty(self) -> bool:
        return not self.paths and not self.areas


@dataclass(frozen=True)
class DecodedTile:
    """Classified, normalized content of one tile.

    ``layers`` is sorted by bucket index, which is the paint order.
    """

    address: TileAddress
    layers: tuple[Layer, ...]
    winding_repairs: int = 0

    def get_layer(self, bucket_index: int) -> Optional[Layer]:
        for layer in self.layers:
            if layer.index == bucket_index:
                return layer
        return None

    def layers_named(self, name: str) -> list[Layer]:
        return [layer for layer in self.layers if layer.name == name]


__all__ = ["DecodedTile", "Layer"]
