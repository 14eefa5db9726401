"""Typer-based CLI entry point."""

from __future__ import annotations

import functools
import logging
from collections import Counter
from pathlib import Path
from typing import Optional

import typer
from rich import print

from .config import PipelineSettings, load_settings
from .context import create_context
from .errors import AddressInvalidError, MapFadeError, SettingsError, StyleLoadError, TileLoadingError
from .resolution import ResolutionSelector
from .style_classifier import StyleClassifier
from .tile_cache import NETWORK_FETCH
from .tile_store import DiskTileStore
from .viewport import compute_view_state

app = typer.Typer(help="Vector tile loading and multi-resolution blending")


def _handle_errors(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (SettingsError, StyleLoadError, AddressInvalidError, TileLoadingError) as exc:
            typer.echo(f"Error: {exc}", err=True)
            raise typer.Exit(1) from exc
        except MapFadeError as exc:
            typer.echo(f"Unexpected error: {exc}", err=True)
            raise typer.Exit(1) from exc

    return wrapper


def _settings(ctx: typer.Context) -> PipelineSettings:
    return ctx.obj["settings"]


@app.callback()
@_handle_errors
def main(
    ctx: typer.Context,
    settings: Optional[Path] = typer.Option(None, "--settings", "-s", help="JSON settings file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output."),
) -> None:
    """Load the settings shared by every command."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {"settings": load_settings(settings)}


@app.command()
@_handle_errors
def plan(
    ctx: typer.Context,
    lat: float = typer.Argument(..., help="Latitude of the view centre."),
    lon: float = typer.Argument(..., help="Longitude of the view centre."),
    zoom: float = typer.Argument(..., help="Continuous zoom level."),
    width: Optional[int] = typer.Option(None, help="Viewport width in pixels."),
    height: Optional[int] = typer.Option(None, help="Viewport height in pixels."),
) -> None:
    """Show the zoom levels, weights and tiles needed for a view."""

    settings = _settings(ctx)
    view = compute_view_state(
        lat,
        lon,
        zoom,
        width=width or settings.viewport_width,
        height=height or settings.viewport_height,
    )
    for level in ResolutionSelector(settings.max_zoom).select(view):
        print(f"[bold]zoom {level.zoom}[/bold] opacity {level.opacity:.3f} ({len(level.addresses)} tiles)")
        for address in level.addresses:
            print(f"  {address}")


@app.command()
@_handle_errors
def prefetch(
    ctx: typer.Context,
    lat: float = typer.Argument(..., help="Latitude of the view centre."),
    lon: float = typer.Argument(..., help="Longitude of the view centre."),
    zoom_from: float = typer.Option(0.0, "--from", help="First zoom level of the sweep."),
    zoom_to: Optional[float] = typer.Option(None, "--to", help="Last zoom level of the sweep."),
    step: float = typer.Option(1.0, help="Zoom increment of the sweep."),
) -> None:
    """Load the tiles of a view, or of a sweep of zoom levels, into the cache."""

    if step <= 0:
        raise typer.BadParameter("step must be positive", param_hint="--step")
    end = zoom_from if zoom_to is None else zoom_to
    if end < zoom_from:
        raise typer.BadParameter("--to must not be smaller than --from", param_hint="--to")

    zooms: list[float] = []
    current = zoom_from
    while current <= end + 1e-9:
        zooms.append(current)
        current += step

    with create_context(_settings(ctx)) as context:
        views = [context.view_at(lat, lon, value) for value in zooms]
        plans = context.pipeline.prepare_frames(views, max_workers=context.settings.workers)
        tiles = {entry.address for render_plan in plans for entry in render_plan.entries()}
        fetched = context.stats.count(NETWORK_FETCH)
        print(
            f"[green]Prepared {len(plans)} frame(s) with {len(tiles)} drawable tile(s); "
            f"{fetched} downloaded"
        )


@app.command("cache-info")
@_handle_errors
def cache_info(ctx: typer.Context) -> None:
    """Summarise the tiles persisted in the cache directory."""

    store = DiskTileStore(_settings(ctx).cache_dir)
    per_zoom = Counter(address.zoom for address in store.scan())
    print(f"{sum(per_zoom.values())} tile(s) in [bold]{store.cache_dir}[/bold]")
    for zoom in sorted(per_zoom):
        print(f"  zoom {zoom}: {per_zoom[zoom]}")


@app.command("check-style")
@_handle_errors
def check_style(
    ctx: typer.Context,
    style_path: Optional[Path] = typer.Argument(None, help="Style file; defaults to the configured one."),
) -> None:
    """Validate a style file and list its paint buckets."""

    path = style_path or _settings(ctx).style_path
    classifier = StyleClassifier.from_file(path)
    print(f"[green]Valid style with {classifier.bucket_count} bucket(s)[/green] from {path}")
    for bucket in classifier.buckets:
        rule = "fallback" if bucket.is_fallback else f"rule {bucket.rule_index}"
        print(f"  {bucket.index:3d} {bucket.layer_name} ({rule})")


if __name__ == "__main__":
    app()
