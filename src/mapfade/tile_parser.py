"""Decoding of Mapbox vector tile payloads into :class:`DecodedTile` objects.

The parser wraps :func:`mapbox_vector_tile.decode`, keeps the y axis pointing
down so ring orientation matches screen space, and runs every feature of a
tracked layer through the style classifier and the geometry normalizer.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

import mapbox_vector_tile

from .config import TILE_EXTENT
from .errors import TileDecodeError
from .geometry import NormalizedGeometry, extract_geometry, normalize_geometry
from .layer import DecodedTile, Layer
from .style_classifier import StyleClassifier
from .tile_address import TileAddress

_LOGGER = logging.getLogger(__name__)


class TileParser:
    """Turn raw tile payloads into classified, normalized tiles.

    Parameters
    ----------
    classifier:
        Shared, read-only rule set deciding which features are drawn.
    """

    def __init__(self, classifier: StyleClassifier) -> None:
        self._classifier = classifier

    # ------------------------------------------------------------------
    @property
    def classifier(self) -> StyleClassifier:
        return self._classifier

    # ------------------------------------------------------------------
    def decode(self, payload: bytes) -> Dict[str, dict]:
        """Decode the protocol buffer payload into GeoJSON-like layers."""

        try:
            decoded = mapbox_vector_tile.decode(payload, default_options={"y_coord_down": True})
        except Exception as exc:  # protobuf and geometry errors vary by backend
            raise TileDecodeError("Failed to decode vector tile payload") from exc
        if not isinstance(decoded, dict):
            raise TileDecodeError("Vector tile payload did not decode into layers")
        return decoded

    # ------------------------------------------------------------------
    def build(self, address: TileAddress, payload: bytes) -> DecodedTile:
        """Decode *payload* and assemble the :class:`DecodedTile` for *address*."""

        layers = self.decode(payload)
        per_bucket: Dict[int, NormalizedGeometry] = {}

        for layer_name, layer_data in layers.items():
            if not self._classifier.is_tracked(layer_name):
                continue
            if not isinstance(layer_data, dict):
                raise TileDecodeError(f"Layer '{layer_name}' of tile {address} is malformed")
            extent = layer_data.get("extent", TILE_EXTENT)
            if not isinstance(extent, int) or extent <= 0:
                raise TileDecodeError(f"Layer '{layer_name}' of tile {address} has invalid extent {extent!r}")

            for feature in layer_data.get("features", []):
                bucket = self._classifier.classify(
                    layer_name,
                    _feature_properties(feature),
                    address.zoom,
                )
                if bucket is None:
                    continue
                geometry = normalize_geometry(extract_geometry(feature), extent)
                per_bucket.setdefault(bucket.index, NormalizedGeometry()).extend(geometry)

        repairs = 0
        decoded_layers: list[Layer] = []
        for index in sorted(per_bucket):
            geometry = per_bucket[index]
            repairs += geometry.enforce_winding()
            layer = Layer(
                bucket=self._classifier.bucket(index),
                paths=tuple(geometry.paths),
                areas=tuple(geometry.areas),
            )
            if not layer.is_empty():
                decoded_layers.append(layer)

        if repairs:
            _LOGGER.debug("Tile %s needed %d winding repair(s)", address, repairs)
        return DecodedTile(address=address, layers=tuple(decoded_layers), winding_repairs=repairs)


def _feature_properties(feature: Any) -> Dict[str, Any]:
    if not isinstance(feature, dict):
        raise TileDecodeError(f"Feature {feature!r} is not a mapping")
    properties = feature.get("properties") or {}
    if not isinstance(properties, dict):
        raise TileDecodeError("Feature properties must be a mapping")
    return properties


__all__ = ["TileParser"]
