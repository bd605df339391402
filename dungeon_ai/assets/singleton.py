"""Process-wide adventure catalogue, loaded once at startup."""

from __future__ import annotations

import logging
from pathlib import Path

from dungeon_ai.assets.registry import AssetLoadError, GameAssets, load_game_assets

logger = logging.getLogger(__name__)

_ASSETS: GameAssets | None = None


def init_assets(*, project_root: Path) -> GameAssets:
    """Load `<project_root>/assets/` unless a catalogue is already loaded."""

    global _ASSETS
    if _ASSETS is None:
        _ASSETS = load_game_assets(root=project_root)
        logger.info("loaded %d adventures from %s", len(_ASSETS.adventures.by_id), project_root / "assets")
    return _ASSETS


def reset_assets_for_tests() -> None:
    global _ASSETS
    _ASSETS = None


def get_assets() -> GameAssets:
    if _ASSETS is None:
        raise AssetLoadError("Adventure catalogue not loaded; call init_assets() at startup")
    return _ASSETS
