"""Default configuration values and settings loading for mapfade."""

from __future__ import annotations

import json
import os
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final, Optional

from jsonschema import Draft202012Validator

from .errors import SettingsError

# Shortbread vector tiles served by the OpenStreetMap foundation.  Any server
# exposing the same ``{z}/{x}/{y}`` layout can be configured instead.
TILE_URL_TEMPLATE: Final[str] = "https://vector.openstreetmap.org/shortbread_v1/{z}/{x}/{y}.mvt"
TILE_FILE_EXTENSION: Final[str] = ".mvt"
CACHE_DIR_NAME: Final[str] = ".cache"

# Integer grid size of the raw tile geometry before normalization.
TILE_EXTENT: Final[int] = 4096

# Pixel size of one tile at an integral zoom level when projected on screen.
TILE_SIZE: Final[int] = 4096

# Highest zoom level served by the tile source.  Views zoomed in further keep
# using these tiles and magnify them.
MAX_TILE_ZOOM_LEVEL: Final[int] = 14

# Fractional zoom sub-bands.  Below ``FADE_MIN`` only the floor level is
# drawn, at or above ``FADE_MAX`` only the next level; in between both levels
# are drawn and crossfaded.
FADE_MIN: Final[float] = 0.25
FADE_MID: Final[float] = 0.5
FADE_MAX: Final[float] = 0.75
FADE_OVERLAP: Final[float] = 0.125

VIEWPORT_WIDTH: Final[int] = 1920 * 2
VIEWPORT_HEIGHT: Final[int] = 1080 * 2

MEMORY_TILE_LIMIT: Final[int] = 2048
HTTP_TIMEOUT_SEC: Final[float] = 30.0
HTTP_USER_AGENT: Final[str] = "mapfade/0.1 (+https://github.com/mapfade)"
PREFETCH_WORKERS: Final[int] = 4

DEFAULT_STYLE_PATH: Final[Path] = Path(__file__).resolve().parent / "data" / "style.json"


SETTINGS_SCHEMA: dict[str, Any] = {
    "$id": "mapfade/settings.schema.json",
    "type": "object",
    "properties": {
        "cache_dir": {"type": "string"},
        "style_path": {"type": ["string", "null"]},
        "url_template": {"type": "string", "pattern": r"\{z\}.*\{x\}.*\{y\}"},
        "max_zoom": {"type": "integer", "minimum": 0, "maximum": 30},
        "viewport": {
            "type": "object",
            "properties": {
                "width": {"type": "integer", "minimum": 1},
                "height": {"type": "integer", "minimum": 1},
            },
            "additionalProperties": False,
        },
        "memory_tile_limit": {"type": ["integer", "null"], "minimum": 1},
        "http_timeout": {"type": "number", "exclusiveMinimum": 0},
        "user_agent": {"type": "string"},
        "workers": {"type": "integer", "minimum": 1},
    },
    "additionalProperties": False,
}

DEFAULT_SETTINGS: dict[str, Any] = {
    "cache_dir": CACHE_DIR_NAME,
    "style_path": None,
    "url_template": TILE_URL_TEMPLATE,
    "max_zoom": MAX_TILE_ZOOM_LEVEL,
    "viewport": {"width": VIEWPORT_WIDTH, "height": VIEWPORT_HEIGHT},
    "memory_tile_limit": MEMORY_TILE_LIMIT,
    "http_timeout": HTTP_TIMEOUT_SEC,
    "user_agent": HTTP_USER_AGENT,
    "workers": PREFETCH_WORKERS,
}

_validator = Draft202012Validator(SETTINGS_SCHEMA)


@dataclass(frozen=True)
class PipelineSettings:
    """Resolved configuration shared by every pipeline component."""

    cache_dir: Path
    style_path: Path
    url_template: str = TILE_URL_TEMPLATE
    max_zoom: int = MAX_TILE_ZOOM_LEVEL
    viewport_width: int = VIEWPORT_WIDTH
    viewport_height: int = VIEWPORT_HEIGHT
    memory_tile_limit: Optional[int] = MEMORY_TILE_LIMIT
    http_timeout: float = HTTP_TIMEOUT_SEC
    user_agent: str = HTTP_USER_AGENT
    workers: int = PREFETCH_WORKERS


def merge_with_defaults(payload: dict[str, Any] | None) -> dict[str, Any]:
    """Overlay *payload* on :data:`DEFAULT_SETTINGS` and validate the result."""

    merged = deepcopy(DEFAULT_SETTINGS)
    if payload:
        for key, value in payload.items():
            if key == "viewport" and isinstance(value, dict):
                merged["viewport"].update(value)
            else:
                merged[key] = value
    errors = sorted(_validator.iter_errors(merged), key=lambda error: list(error.path))
    if errors:
        details = "; ".join(
            f"{'/'.join(str(part) for part in error.path) or '<root>'}: {error.message}"
            for error in errors
        )
        raise SettingsError(f"Invalid settings: {details}")
    return merged


def load_settings(path: Path | str | None = None, *, base_dir: Path | None = None) -> PipelineSettings:
    """Load settings from *path*, falling back to the defaults.

    Relative paths inside the file are resolved against the directory that
    holds the settings file (or *base_dir* / the working directory when no
    file is given).
    """

    payload: dict[str, Any] | None = None
    if path is not None:
        settings_path = Path(path)
        try:
            raw = settings_path.read_text(encoding="utf8")
        except OSError as exc:
            raise SettingsError(f"Unable to read settings file '{settings_path}'") from exc
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise SettingsError(f"Settings file '{settings_path}' is not valid JSON") from exc
        if not isinstance(payload, dict):
            raise SettingsError(f"Settings file '{settings_path}' must contain a JSON object")
        root = settings_path.resolve().parent
    else:
        root = base_dir or Path(os.getcwd())

    merged = merge_with_defaults(payload)

    def _resolve(value: str) -> Path:
        candidate = Path(value).expanduser()
        return candidate if candidate.is_absolute() else root / candidate

    style_path = merged["style_path"]
    return PipelineSettings(
        cache_dir=_resolve(merged["cache_dir"]),
        style_path=_resolve(style_path) if style_path else DEFAULT_STYLE_PATH,
        url_template=merged["url_template"],
        max_zoom=int(merged["max_zoom"]),
        viewport_width=int(merged["viewport"]["width"]),
        viewport_height=int(merged["viewport"]["height"]),
        memory_tile_limit=merged["memory_tile_limit"],
        http_timeout=float(merged["http_timeout"]),
        user_agent=merged["user_agent"],
        workers=int(merged["workers"]),
    )


__all__ = [
    "CACHE_DIR_NAME",
    "DEFAULT_SETTINGS",
    "DEFAULT_STYLE_PATH",
    "FADE_MAX",
    "FADE_MID",
    "FADE_MIN",
    "FADE_OVERLAP",
    "MAX_TILE_ZOOM_LEVEL",
    "PipelineSettings",
    "TILE_EXTENT",
    "TILE_FILE_EXTENSION",
    "TILE_SIZE",
    "TILE_URL_TEMPLATE",
    "load_settings",
    "merge_with_defaults",
]
