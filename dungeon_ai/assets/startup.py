from __future__ import annotations

from pathlib import Path

from dungeon_ai.assets.singleton import init_assets

# dungeon_ai/assets/startup.py -> repo root, which holds assets/adventures.json
PROJECT_ROOT = Path(__file__).resolve().parents[2]


def init_assets_for_app() -> None:
    init_assets(project_root=PROJECT_ROOT)
