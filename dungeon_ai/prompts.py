"""System prompts shipped in the repo-level `prompts/` directory."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

NARRATOR_PROMPT = "narrator.txt"
ACTION_ANALYZER_PROMPT = "action_analyzer.txt"


class PromptLoadError(RuntimeError):
    pass


def prompts_dir() -> Path:
    # dungeon_ai/prompts.py -> repo root -> prompts/
    return Path(__file__).resolve().parents[1] / "prompts"


@lru_cache(maxsize=16)
def load_prompt(name: str) -> str:
    """Read a prompt file once per process.

    Only plain file names inside `prompts/` are accepted.
    """

    base = prompts_dir()
    path = base / name
    if path.resolve().parent != base.resolve():
        raise PromptLoadError(f"Prompt name must be a file in {base}: {name!r}")
    try:
        text = path.read_text(encoding="utf-8").strip()
    except FileNotFoundError as e:
        raise PromptLoadError(f"Prompt not found: {path}") from e
    if not text:
        raise PromptLoadError(f"Prompt is empty: {path}")
    return text + "\n"
