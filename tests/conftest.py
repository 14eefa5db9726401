import sys
import threading
import time
from pathlib import Path

import mapbox_vector_tile
import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from mapfade.errors import TileFetchError  # noqa: E402
from mapfade.style_classifier import StyleClassifier  # noqa: E402
from mapfade.tile_cache import TileCache  # noqa: E402
from mapfade.tile_parser import TileParser  # noqa: E402
from mapfade.tile_store import DiskTileStore  # noqa: E402

# Buckets: 0 water fallback, 1 primary roads, 2 other roads (zoom >= 12),
# 3 buildings of height 10.
TEST_STYLE = {
    "palette": {
        "water": "#203040",
        "street": {"hsv": [235, 0.18, 0.24]},
    },
    "layers": [
        {"layer": "water", "fallback": {"fill": "water"}},
        {
            "layer": "roads",
            "rules": [
                {
                    "filter": [{"key": "kind", "values": ["primary"]}],
                    "style": {"stroke": {"width": 4, "color": "street"}},
                },
                {
                    "filter": [{"key": "kind", "values": ["path"], "mode": "blacklist"}],
                    "min_zoom": 12,
                    "style": {"stroke": {"width": 1, "color": "street"}},
                },
            ],
        },
        {
            "layer": "buildings",
            "rules": [
                {
                    "filter": [{"key": "height", "values": [10]}],
                    "style": {"fill": "#808080"},
                }
            ],
        },
    ],
}

SAMPLE_LAYERS = {
    "water": [
        ("POLYGON ((0 0, 2048 0, 2048 2048, 0 2048, 0 0))", {}),
    ],
    "roads": [
        ("LINESTRING (0 100, 4000 100)", {"kind": "primary"}),
        ("LINESTRING (0 200, 4000 200)", {"kind": "path"}),
        ("LINESTRING (0 300, 4000 300)", {"kind": "residential"}),
        ("LINESTRING (0 400, 4000 400)", {"name": "unnamed"}),
    ],
    "buildings": [
        ("POLYGON ((100 100, 200 100, 200 200, 100 200, 100 100))", {"height": 10}),
        ("POLYGON ((300 300, 400 300, 400 400, 300 400, 300 300))", {"height": True}),
    ],
    "pois": [
        ("POINT (5 5)", {"kind": "cafe"}),
    ],
}


def encode_tile(layers):
    """Encode ``{layer: [(wkt, properties), ...]}`` into an MVT payload."""

    return mapbox_vector_tile.encode(
        [
            {
                "name": name,
                "features": [
                    {"geometry": geometry, "properties": properties}
                    for geometry, properties in features
                ],
            }
            for name, features in layers.items()
        ],
        default_options={"y_coord_down": True},
    )


class FakeFetcher:
    """In-memory stand-in for :class:`mapfade.tile_fetcher.TileFetcher`."""

    def __init__(self, default=None, payloads=None, failures=(), delay=0.0):
        self.default = default
        self.payloads = dict(payloads or {})
        self.failures = set(failures)
        self.delay = delay
        self.calls = []
        self.closed = False
        self._lock = threading.Lock()

    def fetch(self, address):
        with self._lock:
            self.calls.append(address)
        if self.delay:
            time.sleep(self.delay)
        if address in self.failures:
            raise TileFetchError(f"Request for tile {address} returned HTTP 503")
        payload = self.payloads.get(address, self.default)
        if payload is None:
            raise TileFetchError(f"Request for tile {address} returned HTTP 404")
        return payload

    def count(self, address):
        with self._lock:
            return self.calls.count(address)

    def close(self):
        self.closed = True


@pytest.fixture()
def classifier():
    return StyleClassifier.from_dict(TEST_STYLE)


@pytest.fixture()
def parser(classifier):
    return TileParser(classifier)


@pytest.fixture(scope="session")
def sample_payload():
    return encode_tile(SAMPLE_LAYERS)


@pytest.fixture()
def fetcher(sample_payload):
    return FakeFetcher(default=sample_payload)


@pytest.fixture()
def store(tmp_path):
    return DiskTileStore(tmp_path / "tiles")


@pytest.fixture()
def make_cache(store, fetcher, parser):
    """Factory building a fresh :class:`TileCache` over the shared store."""

    def _make(memory_limit=None, fetcher_override=None):
        return TileCache(
            store,
            fetcher_override or fetcher,
            parser,
            memory_limit=memory_limit,
        )

    return _make
