from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError

from dungeon_ai.api.models import Adventure


class AssetLoadError(RuntimeError):
    pass


def _slug_id(s: str) -> str:
    s = s.strip().casefold()
    s = re.sub(r"[^a-z0-9]+", "-", s)
    return s.strip("-")


@dataclass(frozen=True, slots=True)
class AdventureCatalog:
    """Static adventure templates, keyed by slug id."""

    by_id: dict[str, Adventure]

    def get(self, adventure_id: str) -> Adventure | None:
        return self.by_id.get(adventure_id) or self.by_id.get(_slug_id(adventure_id))

    def all(self) -> list[Adventure]:
        return sorted(self.by_id.values(), key=lambda a: (a.starting_level, a.title))


@dataclass(frozen=True, slots=True)
class GameAssets:
    adventures: AdventureCatalog


def load_adventures(path: Path) -> AdventureCatalog:
    """Load `adventures.json`: a list of adventure objects.

    `adventure_id` is optional in the file; it defaults to the slug of the title.
    """

    try:
        rows = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise AssetLoadError(f"Missing adventures file: {path}") from e
    except json.JSONDecodeError as e:
        raise AssetLoadError(f"Invalid adventures file {path}: {e}") from e

    if not isinstance(rows, list):
        raise AssetLoadError(f"Expected a list of adventures in {path}")

    by_id: dict[str, Adventure] = {}
    for row in rows:
        if not isinstance(row, dict):
            raise AssetLoadError(f"Expected an object per adventure in {path}")
        row = {**row}
        row.setdefault("adventure_id", _slug_id(str(row.get("title", ""))))
        try:
            adventure = Adventure.model_validate(row)
        except ValidationError as e:
            raise AssetLoadError(f"Invalid adventure in {path}: {e}") from e
        if adventure.adventure_id in by_id:
            raise AssetLoadError(f"Duplicate adventure id: {adventure.adventure_id}")
        by_id[adventure.adventure_id] = adventure

    return AdventureCatalog(by_id=by_id)


def load_game_assets(*, root: Path) -> GameAssets:
    """Load all static assets from `<root>/assets/`.

    With DUNGEON_AI_STRICT_ASSETS=1 an empty catalogue is an error.
    """

    catalog = load_adventures(root / "assets" / "adventures.json")
    if os.environ.get("DUNGEON_AI_STRICT_ASSETS") == "1" and not catalog.by_id:
        raise AssetLoadError(f"No adventures found under {root / 'assets'}")
    return GameAssets(adventures=catalog)
