"""End-to-end tests for TileDataPipeline."""

from __future__ import annotations

import logging

import pytest

from conftest import FakeFetcher
from mapfade.errors import TileFetchError
from mapfade.pipeline import TileDataPipeline
from mapfade.resolution import ResolutionSelector
from mapfade.tile_address import TileAddress
from mapfade.viewport import ViewState


def _view(zoom: float) -> ViewState:
    return ViewState(center_x=0.5, center_y=0.5, zoom=zoom, width=4096, height=4096, tile_size=4096)


@pytest.fixture()
def pipeline(make_cache):
    return TileDataPipeline(make_cache(), ResolutionSelector())


class TestLoad:
    def test_integer_zoom_requests_a_single_level(self, pipeline, fetcher):
        plan = pipeline.load(_view(3.0))
        assert plan.zooms == (3,)
        assert plan.levels[0].opacity == 1.0
        assert fetcher.calls
        assert {address.zoom for address in fetcher.calls} == {3}

    def test_crossfade_loads_both_levels(self, pipeline, fetcher):
        plan = pipeline.load(_view(2.5))
        assert plan.zooms == (2, 3)
        assert {address.zoom for address in fetcher.calls} == {2, 3}
        for level in plan.levels:
            assert 0.0 < level.opacity < 1.0
            assert all(entry.opacity == level.opacity for entry in level.entries)

    def test_entries_are_in_paint_order(self, pipeline):
        plan = pipeline.load(_view(3.0))
        level = plan.levels[0]
        addresses = pipeline.selector.tiles_for_zoom(_view(3.0), 3)
        keys = [(entry.layer.index, addresses.index(entry.address)) for entry in level.entries]
        assert keys == sorted(keys)
        # every tile holds the water, primary road and building buckets
        assert len(level.entries) == 3 * len(addresses)
        assert [layer.index for layer, _ in level.layers()[:2]] == [0, 0]

    def test_entries_carry_tile_transforms(self, pipeline):
        view = _view(3.0)
        for entry in pipeline.load(view).entries():
            assert entry.transform == view.tile_to_screen(entry.address)

    def test_shared_tiles_are_fetched_once(self, pipeline, fetcher):
        pipeline.load(_view(3.0))
        pipeline.load(_view(3.1))
        assert len(fetcher.calls) == len(set(fetcher.calls))

    def test_failure_aborts_the_frame(self, make_cache, sample_payload):
        addresses = ResolutionSelector().tiles_for_zoom(_view(3.0), 3)
        failing = FakeFetcher(default=sample_payload, failures={addresses[1]})
        pipeline = TileDataPipeline(make_cache(fetcher_override=failing), ResolutionSelector())
        with pytest.raises(TileFetchError):
            pipeline.load(_view(3.0))

    def test_required_addresses_are_unique(self, pipeline):
        addresses = pipeline.required_addresses(_view(2.5))
        assert len(addresses) == len(set(addresses))
        assert addresses[0].zoom == 2
        assert addresses[-1].zoom == 3


class TestPlan:
    def test_plan_matches_load(self, pipeline):
        loaded = pipeline.load(_view(2.5))
        planned = pipeline.plan(_view(2.5))
        assert planned.missing == ()
        assert [e.layer for e in planned.entries()] == [e.layer for e in loaded.entries()]

    def test_missing_tiles_are_skipped(self, pipeline, fetcher, caplog):
        with caplog.at_level(logging.ERROR, logger="mapfade.pipeline"):
            plan = pipeline.plan(_view(3.0))
        assert plan.entries() == []
        assert len(plan.missing) == 4
        assert fetcher.calls == []
        assert "not loaded" in caplog.text

    def test_partial_plan(self, pipeline):
        pipeline.cache.ensure_loaded(TileAddress(3, 3, 3))
        plan = pipeline.plan(_view(3.0))
        assert {entry.address for entry in plan.entries()} == {TileAddress(3, 3, 3)}
        assert len(plan.missing) == 3


class TestPrepareFrames:
    def test_frames_in_order(self, pipeline, fetcher):
        views = [_view(1.0), _view(2.5), _view(3.0)]
        plans = pipeline.prepare_frames(views, max_workers=3)
        assert [plan.view for plan in plans] == views
        assert [plan.zooms for plan in plans] == [(1,), (2, 3), (3,)]
        assert len(fetcher.calls) == len(set(fetcher.calls))

    def test_empty(self, pipeline):
        assert pipeline.prepare_frames([]) == []

    def test_errors_propagate(self, make_cache, sample_payload):
        failing = FakeFetcher(default=sample_payload, failures={TileAddress(1, 0, 0)})
        pipeline = TileDataPipeline(make_cache(fetcher_override=failing), ResolutionSelector())
        with pytest.raises(TileFetchError):
            pipeline.prepare_frames([_view(3.0), _view(1.0)], max_workers=2)
