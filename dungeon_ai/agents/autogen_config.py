from __future__ import annotations

from typing import Any

from autogen import LLMConfig
from pydantic import BaseModel

from dungeon_ai.config import Settings

# Placeholder key for local OpenAI-compatible servers; the OpenAI client refuses an empty one.
LOCAL_SERVER_API_KEY = "ollama"


class ModelConfigError(RuntimeError):
    pass


def model_entry(
    *,
    settings: Settings,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> dict[str, Any]:
    """One AG2 `config_list` entry for the configured OpenAI-compatible endpoint."""

    api_key = settings.openai_api_key or (LOCAL_SERVER_API_KEY if settings.openai_base_url else None)
    if not api_key:
        raise ModelConfigError(
            "No model credentials: set OPENAI_API_KEY, or OPENAI_BASE_URL for a local OpenAI-compatible server"
        )

    entry: dict[str, Any] = {"model": settings.openai_model, "api_key": api_key}
    if settings.openai_base_url:
        entry["base_url"] = settings.openai_base_url
    if temperature is not None:
        entry["temperature"] = temperature
    if max_tokens is not None:
        entry["max_tokens"] = max_tokens
    return entry


def build_llm_config(
    *,
    settings: Settings,
    temperature: float | None = None,
    max_tokens: int | None = None,
    response_format: type[BaseModel] | None = None,
) -> LLMConfig:
    entry = model_entry(settings=settings, temperature=temperature, max_tokens=max_tokens)
    if response_format is None:
        return LLMConfig(config_list=[entry])
    # Structured output: AG2 turns the pydantic model into an OpenAI json_schema response format.
    return LLMConfig(config_list=[entry], response_format=response_format)
