from __future__ import annotations

import pytest

from dungeon_ai.agents.autogen_config import LOCAL_SERVER_API_KEY, ModelConfigError, build_llm_config, model_entry
from dungeon_ai.agents.factory import create_game_agents
from dungeon_ai.api.models import ActionAnalysis
from dungeon_ai.config import Settings, settings_from_env


def test_hosted_model_entry() -> None:
    entry = model_entry(settings=Settings(openai_api_key="sk-test"), temperature=0.7, max_tokens=600)
    assert entry == {"model": "gpt-4o-mini", "api_key": "sk-test", "temperature": 0.7, "max_tokens": 600}


def test_local_server_gets_placeholder_key() -> None:
    entry = model_entry(settings=Settings(openai_model="llama3", openai_base_url="http://127.0.0.1:11434/v1"))
    assert entry == {"model": "llama3", "api_key": LOCAL_SERVER_API_KEY, "base_url": "http://127.0.0.1:11434/v1"}


def test_missing_credentials() -> None:
    with pytest.raises(ModelConfigError):
        model_entry(settings=Settings())


def test_build_llm_config_accepts_response_format() -> None:
    settings = Settings(openai_api_key="sk-test")
    assert build_llm_config(settings=settings, temperature=0.0, response_format=ActionAnalysis) is not None


def test_agents_use_role_sampling() -> None:
    agents = create_game_agents(Settings(openai_api_key="sk-test"))
    assert agents.narrator.name == "dungeon_master"
    assert agents.narrator.temperature == 0.7  # type: ignore[attr-defined]
    assert agents.analyzer.temperature == 0.0  # type: ignore[attr-defined]


def test_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_MODEL", "gpt-test")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    monkeypatch.setenv("DUNGEON_AI_HISTORY_WINDOW", "4")
    monkeypatch.setenv("DUNGEON_AI_NARRATOR_TIMEOUT_S", "2.5")
    monkeypatch.delenv("OPENAI_BASE_URL", raising=False)

    s = settings_from_env()
    assert s.openai_model == "gpt-test"
    assert s.history_window == 4
    assert s.narrator_timeout_s == 2.5
    assert s.openai_base_url is None
    assert "sk-env" not in repr(s)
