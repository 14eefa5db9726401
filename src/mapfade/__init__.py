"""Vector map tile acquisition, caching, classification and zoom crossfading.

The high-level entry points are re-exported here so callers can write
``from mapfade import create_context, TileAddress``.
"""

from .config import PipelineSettings, load_settings
from .context import PipelineContext, create_context
from .errors import MapFadeError
from .layer import DecodedTile, Layer
from .pipeline import LevelPlan, RenderEntry, RenderPlan, TileDataPipeline
from .resolution import ResolutionLevel, ResolutionSelector
from .style_classifier import StyleClassifier
from .tile_address import TileAddress
from .tile_cache import TileCache
from .viewport import Transform, ViewState, compute_view_state

__all__ = [
    "DecodedTile",
    "Layer",
    "LevelPlan",
    "MapFadeError",
    "PipelineContext",
    "PipelineSettings",
    "RenderEntry",
    "RenderPlan",
    "ResolutionLevel",
    "ResolutionSelector",
    "StyleClassifier",
    "TileAddress",
    "TileCache",
    "TileDataPipeline",
    "Transform",
    "ViewState",
    "compute_view_state",
    "create_context",
    "load_settings",
]
