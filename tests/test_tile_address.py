"""Tests for TileAddress."""

from __future__ import annotations

import pytest

from mapfade.tile_address import TileAddress


class TestValidity:
    @pytest.mark.parametrize("zoom", [0, 1, 2, 5])
    def test_grid_membership(self, zoom):
        n = 1 << zoom
        for col in range(-1, n + 2):
            for row in (-1, 0, n - 1, n):
                expected = 0 <= col < n and 0 <= row < n
                assert TileAddress(zoom, col, row).is_valid() is expected

    def test_negative_zoom_is_invalid(self):
        assert not TileAddress(-1, 0, 0).is_valid()

    def test_construction_never_raises(self):
        address = TileAddress(3, 100, 100)
        assert address.col == 100


class TestKeys:
    def test_cache_key_and_file_name(self):
        address = TileAddress(14, 8801, 5373)
        assert address.cache_key() == "14_8801_5373"
        assert address.file_name() == "14_8801_5373.mvt"
        assert address.file_name(".bin") == "14_8801_5373.bin"

    def test_from_cache_key(self):
        assert TileAddress.from_cache_key("3_4_5") == TileAddress(3, 4, 5)

    @pytest.mark.parametrize("key", ["", "3_4", "3_4_5_6", "a_b_c", "3-4-5", "-1_0_0"])
    def test_from_cache_key_rejects_malformed(self, key):
        assert TileAddress.from_cache_key(key) is None

    def test_fetch_locator(self):
        template = "https://tiles.example/{z}/{x}/{y}.mvt"
        assert TileAddress(2, 1, 3).fetch_locator(template) == "https://tiles.example/2/1/3.mvt"

    def test_str(self):
        assert str(TileAddress(2, 1, 3)) == "2/1/3"


class TestValueSemantics:
    def test_equality_and_hash(self):
        assert TileAddress(1, 0, 1) == TileAddress(1, 0, 1)
        assert len({TileAddress(1, 0, 1), TileAddress(1, 0, 1), TileAddress(1, 1, 0)}) == 2

    def test_frozen(self):
        address = TileAddress(1, 0, 0)
        with pytest.raises(AttributeError):
            address.zoom = 2  # type: ignore[misc]

    def test_ordering(self):
        addresses = [TileAddress(2, 1, 0), TileAddress(1, 1, 1), TileAddress(2, 0, 3)]
        assert sorted(addresses) == [TileAddress(1, 1, 1), TileAddress(2, 0, 3), TileAddress(2, 1, 0)]


def test_tile_to_world():
    transform = TileAddress(2, 1, 3).tile_to_world()
    assert transform.scale == pytest.approx(0.25)
    assert transform.apply((0.0, 0.0)) == pytest.approx((0.25, 0.75))
    assert transform.apply((1.0, 1.0)) == pytest.approx((0.5, 1.0))
