"""Tests for TileParser and the decoded tile model."""

from __future__ import annotations

import pytest

from conftest import encode_tile
from mapfade.errors import TileDecodeError
from mapfade.geometry import signed_area
from mapfade.tile_address import TileAddress


def _fake_decode(layers):
    def _decode(payload, default_options=None):
        return layers

    return _decode


class TestBuild:
    def test_layers_follow_bucket_order(self, parser, sample_payload):
        tile = parser.build(TileAddress(14, 0, 0), sample_payload)
        assert [layer.index for layer in tile.layers] == [0, 1, 2, 3]
        assert [layer.name for layer in tile.layers] == ["water", "roads", "roads", "buildings"]

    def test_classification_filters_features(self, parser, sample_payload):
        tile = parser.build(TileAddress(14, 0, 0), sample_payload)
        assert len(tile.get_layer(1).paths) == 1
        # "path" is blacklisted and the unnamed road has no kind at all
        assert len(tile.get_layer(2).paths) == 1
        # only the numeric height matches, not the boolean one
        assert len(tile.get_layer(3).areas) == 1
        assert tile.layers_named("pois") == []

    def test_min_zoom_applies_to_tile_zoom(self, parser, sample_payload):
        tile = parser.build(TileAddress(10, 0, 0), sample_payload)
        assert tile.get_layer(2) is None
        assert [layer.index for layer in tile.layers] == [0, 1, 3]

    def test_geometry_in_unit_square_with_winding(self, parser, sample_payload):
        tile = parser.build(TileAddress(14, 0, 0), sample_payload)
        water = tile.get_layer(0)
        assert len(water.areas) == 1
        area = water.areas[0]
        assert signed_area(area.outer) > 0
        for x, y in area.outer:
            assert 0.0 <= x <= 1.0
            assert 0.0 <= y <= 1.0
        assert max(x for x, _ in area.outer) == pytest.approx(0.5)

    def test_empty_tile(self, parser):
        tile = parser.build(TileAddress(3, 1, 1), encode_tile({"pois": [("POINT (1 1)", {})]}))
        assert tile.layers == ()
        assert tile.winding_repairs == 0

    def test_winding_repairs_are_counted(self, parser, monkeypatch):
        layers = {
            "water": {
                "extent": 4096,
                "features": [
                    {
                        "geometry": {
                            "type": "Polygon",
                            "coordinates": [[[0, 0], [0, 4096], [4096, 4096], [4096, 0], [0, 0]]],
                        },
                        "properties": {},
                    }
                ],
            }
        }
        monkeypatch.setattr("mapfade.tile_parser.mapbox_vector_tile.decode", _fake_decode(layers))
        tile = parser.build(TileAddress(0, 0, 0), b"ignored")
        assert tile.winding_repairs == 1
        assert signed_area(tile.get_layer(0).areas[0].outer) > 0


class TestDecodeFailures:
    def test_garbage_payload(self, parser):
        with pytest.raises(TileDecodeError):
            parser.build(TileAddress(0, 0, 0), b"garbage")

    def test_invalid_extent(self, parser, monkeypatch):
        layers = {"water": {"extent": 0, "features": []}}
        monkeypatch.setattr("mapfade.tile_parser.mapbox_vector_tile.decode", _fake_decode(layers))
        with pytest.raises(TileDecodeError):
            parser.build(TileAddress(0, 0, 0), b"ignored")

    def test_unsupported_geometry(self, parser, monkeypatch):
        layers = {
            "water": {
                "extent": 4096,
                "features": [{"geometry": {"type": "Circle", "coordinates": [0, 0]}, "properties": {}}],
            }
        }
        monkeypatch.setattr("mapfade.tile_parser.mapbox_vector_tile.decode", _fake_decode(layers))
        with pytest.raises(TileDecodeError):
            parser.build(TileAddress(0, 0, 0), b"ignored")

    def test_untracked_layers_are_not_inspected(self, parser, monkeypatch):
        layers = {"unknown": "not even a mapping"}
        monkeypatch.setattr("mapfade.tile_parser.mapbox_vector_tile.decode", _fake_decode(layers))
        assert parser.build(TileAddress(0, 0, 0), b"ignored").layers == ()
