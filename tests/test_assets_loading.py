from __future__ import annotations

import json
from pathlib import Path

import pytest

from dungeon_ai.assets.registry import AssetLoadError, load_adventures, load_game_assets
from dungeon_ai.assets.singleton import get_assets


def test_fixture_assets_are_loaded() -> None:
    catalog = get_assets().adventures
    assert sorted(catalog.by_id) == ["fixture-road", "test-crypt"]
    assert catalog.get("Test Crypt") is not None


def test_repo_catalogue_loads() -> None:
    root = Path(__file__).resolve().parents[1]
    catalog = load_adventures(root / "assets" / "adventures.json")
    assert catalog.get("lost-mine-of-phandelver") is not None
    assert all(a.system_prompt for a in catalog.all())


def _write(tmp_path: Path, rows: object) -> Path:
    (tmp_path / "assets").mkdir()
    path = tmp_path / "assets" / "adventures.json"
    path.write_text(json.dumps(rows), encoding="utf-8")
    return path


def test_duplicate_ids_are_rejected(tmp_path: Path) -> None:
    row = {
        "title": "Twice",
        "description": "d",
        "starting_level": 1,
        "ending_level": 2,
        "setting": "s",
        "initial_scene": "i",
        "system_prompt": "p",
    }
    path = _write(tmp_path, [row, row])
    with pytest.raises(AssetLoadError, match="Duplicate"):
        load_adventures(path)


def test_invalid_rows_are_rejected(tmp_path: Path) -> None:
    path = _write(tmp_path, [{"title": "Missing fields"}])
    with pytest.raises(AssetLoadError):
        load_adventures(path)


def test_strict_mode_requires_adventures(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write(tmp_path, [])
    monkeypatch.setenv("DUNGEON_AI_STRICT_ASSETS", "1")
    with pytest.raises(AssetLoadError, match="No adventures"):
        load_game_assets(root=tmp_path)

    monkeypatch.setenv("DUNGEON_AI_STRICT_ASSETS", "0")
    assert load_game_assets(root=tmp_path).adventures.all() == []
