"""Tests for the Typer command line interface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from conftest import TEST_STYLE, FakeFetcher
from mapfade import cli
from mapfade.context import create_context
from mapfade.tile_address import TileAddress
from mapfade.tile_store import DiskTileStore

runner = CliRunner()


@pytest.fixture()
def settings_file(tmp_path: Path) -> Path:
    (tmp_path / "style.json").write_text(json.dumps(TEST_STYLE), encoding="utf8")
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps(
            {
                "cache_dir": "tiles",
                "style_path": "style.json",
                "viewport": {"width": 4096, "height": 4096},
            }
        ),
        encoding="utf8",
    )
    return path


def test_plan(settings_file: Path):
    result = runner.invoke(cli.app, ["--settings", str(settings_file), "plan", "0", "0", "2.5"])
    assert result.exit_code == 0, result.output
    assert "zoom 2" in result.output
    assert "zoom 3" in result.output
    assert "2/1/1" in result.output


def test_plan_single_level(settings_file: Path):
    result = runner.invoke(cli.app, ["--settings", str(settings_file), "plan", "0", "0", "3"])
    assert result.exit_code == 0, result.output
    assert "zoom 3" in result.output
    assert "zoom 2" not in result.output
    assert "zoom 4" not in result.output


def test_cache_info(settings_file: Path, tmp_path: Path):
    store = DiskTileStore(tmp_path / "tiles")
    store.write(TileAddress(3, 1, 1), b"a")
    store.write(TileAddress(3, 1, 2), b"b")
    store.write(TileAddress(5, 0, 0), b"c")
    result = runner.invoke(cli.app, ["--settings", str(settings_file), "cache-info"])
    assert result.exit_code == 0, result.output
    assert "3 tile(s)" in result.output
    assert "zoom 3: 2" in result.output
    assert "zoom 5: 1" in result.output


def test_check_style_default():
    result = runner.invoke(cli.app, ["check-style"])
    assert result.exit_code == 0, result.output
    assert "18 bucket(s)" in result.output


def test_check_style_invalid(tmp_path: Path):
    broken = tmp_path / "broken.json"
    broken.write_text(json.dumps({"layers": [{"fallback": None}]}), encoding="utf8")
    result = runner.invoke(cli.app, ["check-style", str(broken)])
    assert result.exit_code == 1
    assert "Error" in result.output


def test_invalid_settings(tmp_path: Path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"max_zoom": "high"}), encoding="utf8")
    result = runner.invoke(cli.app, ["--settings", str(path), "cache-info"])
    assert result.exit_code == 1


def test_prefetch(settings_file: Path, monkeypatch, sample_payload):
    fetcher = FakeFetcher(default=sample_payload)
    monkeypatch.setattr(cli, "create_context", lambda settings: create_context(settings, fetcher=fetcher))
    args = ["--settings", str(settings_file), "prefetch", "0", "0", "--from", "1", "--to", "2"]
    result = runner.invoke(cli.app, args)
    assert result.exit_code == 0, result.output
    assert "Prepared 2 frame(s)" in result.output
    assert f"{len(fetcher.calls)} downloaded" in result.output
    assert fetcher.closed


def test_prefetch_failure(settings_file: Path, monkeypatch):
    fetcher = FakeFetcher()
    monkeypatch.setattr(cli, "create_context", lambda settings: create_context(settings, fetcher=fetcher))
    result = runner.invoke(cli.app, ["--settings", str(settings_file), "prefetch", "0", "0", "--from", "1"])
    assert result.exit_code == 1
    assert "HTTP 404" in result.output
