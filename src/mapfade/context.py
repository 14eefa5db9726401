"""Explicit wiring of the pipeline components for one process."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from .cache_stats import CacheStatsCollector
from .config import PipelineSettings, load_settings
from .pipeline import TileDataPipeline
from .resolution import ResolutionSelector
from .style_classifier import StyleClassifier
from .tile_cache import PayloadSource, TileCache
from .tile_fetcher import TileFetcher
from .tile_parser import TileParser
from .tile_store import DiskTileStore
from .viewport import ViewState, compute_view_state

_LOGGER = logging.getLogger(__name__)


@dataclass
class PipelineContext:
    """Container for the collaborators shared by every caller of the pipeline."""

    settings: PipelineSettings
    classifier: StyleClassifier
    fetcher: PayloadSource
    store: DiskTileStore
    cache: TileCache
    selector: ResolutionSelector
    pipeline: TileDataPipeline
    stats: CacheStatsCollector = field(default_factory=CacheStatsCollector)

    def view_at(self, lat: float, lon: float, zoom: float) -> ViewState:
        """Return a view of the configured size centred on ``lat``/``lon``."""

        return compute_view_state(
            lat,
            lon,
            zoom,
            width=self.settings.viewport_width,
            height=self.settings.viewport_height,
        )

    def close(self) -> None:
        """Release network resources held by the fetcher."""

        closer = getattr(self.fetcher, "close", None)
        if callable(closer):
            closer()

    def __enter__(self) -> "PipelineContext":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def create_context(
    settings: Optional[PipelineSettings] = None,
    *,
    fetcher: Optional[PayloadSource] = None,
) -> PipelineContext:
    """Build every component once from *settings*.

    A custom *fetcher* replaces the HTTP client, which is how tests run the
    whole pipeline offline.
    """

    if settings is None:
        settings = load_settings()

    classifier = StyleClassifier.from_file(settings.style_path)
    if fetcher is None:
        fetcher = TileFetcher(
            settings.url_template,
            timeout=settings.http_timeout,
            user_agent=settings.user_agent,
        )
    store = DiskTileStore(settings.cache_dir)
    stats = CacheStatsCollector()
    cache = TileCache(
        store,
        fetcher,
        TileParser(classifier),
        memory_limit=settings.memory_tile_limit,
        stats=stats,
    )
    selector = ResolutionSelector(settings.max_zoom)
    _LOGGER.debug(
        "Created pipeline context: %d bucket(s), cache at '%s', max zoom %d",
        classifier.bucket_count,
        store.cache_dir,
        settings.max_zoom,
    )
    return PipelineContext(
        settings=settings,
        classifier=classifier,
        fetcher=fetcher,
        store=store,
        cache=cache,
        selector=selector,
        pipeline=TileDataPipeline(cache, selector),
        stats=stats,
    )


__all__ = ["PipelineContext", "create_context"]
