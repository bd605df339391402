from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


@dataclass(frozen=True, slots=True)
class Settings:
    """Runtime configuration, read once from the environment.

    Environment variables supported:
    - REDIS_URL
    - OPENAI_MODEL, OPENAI_BASE_URL, OPENAI_API_KEY
    - DUNGEON_AI_NARRATOR_TIMEOUT_S, DUNGEON_AI_ANALYZER_TIMEOUT_S
    - DUNGEON_AI_HISTORY_WINDOW, DUNGEON_AI_RECENT_EVENTS, DUNGEON_AI_NPC_RECENCY_HOURS
    - DUNGEON_AI_LOCK_TTL_MS, DUNGEON_AI_LOCK_WAIT_S
    - DUNGEON_AI_TOKEN_TTL_S
    """

    redis_url: str = "redis://localhost:6379/0"
    openai_model: str = "gpt-4o-mini"
    # Set for OpenAI-compatible servers such as Ollama (http://127.0.0.1:11434/v1).
    openai_base_url: str | None = None
    openai_api_key: str | None = field(default=None, repr=False)

    narrator_timeout_s: float = 30.0
    analyzer_timeout_s: float = 10.0
    narrator_temperature: float = 0.7
    narrator_max_tokens: int = 600
    analyzer_max_tokens: int = 100

    # Context windowing for the narrator.
    history_window: int = 10
    recent_events: int = 5
    npc_recency_hours: float = 24.0

    # Per-game lock. TTL must outlive the slowest narrator call.
    lock_ttl_ms: int = 60_000
    lock_wait_s: float = 45.0

    token_ttl_s: int = 7 * 24 * 3600


def settings_from_env() -> Settings:
    defaults = Settings()
    return Settings(
        redis_url=os.environ.get("REDIS_URL", defaults.redis_url),
        openai_model=os.environ.get("OPENAI_MODEL", defaults.openai_model),
        openai_base_url=os.environ.get("OPENAI_BASE_URL") or None,
        openai_api_key=os.environ.get("OPENAI_API_KEY") or None,
        narrator_timeout_s=_env_float("DUNGEON_AI_NARRATOR_TIMEOUT_S", defaults.narrator_timeout_s),
        analyzer_timeout_s=_env_float("DUNGEON_AI_ANALYZER_TIMEOUT_S", defaults.analyzer_timeout_s),
        history_window=_env_int("DUNGEON_AI_HISTORY_WINDOW", defaults.history_window),
        recent_events=_env_int("DUNGEON_AI_RECENT_EVENTS", defaults.recent_events),
        npc_recency_hours=_env_float("DUNGEON_AI_NPC_RECENCY_HOURS", defaults.npc_recency_hours),
        lock_ttl_ms=_env_int("DUNGEON_AI_LOCK_TTL_MS", defaults.lock_ttl_ms),
        lock_wait_s=_env_float("DUNGEON_AI_LOCK_WAIT_S", defaults.lock_wait_s),
        token_ttl_s=_env_int("DUNGEON_AI_TOKEN_TTL_S", defaults.token_ttl_s),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return settings_from_env()
