from __future__ import annotations

from typing import cast

from dungeon_ai.agents.ag2_backend import Ag2ChatAgent
from dungeon_ai.agents.base import Agent, GameAgents
from dungeon_ai.config import Settings, get_settings


def create_game_agents(settings: Settings | None = None) -> GameAgents:
    """The narrator and the roll classifier, both backed by the configured model."""

    s = settings or get_settings()
    narrator = Ag2ChatAgent(
        name="dungeon_master",
        settings=s,
        temperature=s.narrator_temperature,
        max_tokens=s.narrator_max_tokens,
    )
    # Deterministic classification.
    analyzer = Ag2ChatAgent(name="action_analyzer", settings=s, temperature=0.0, max_tokens=s.analyzer_max_tokens)
    return GameAgents(narrator=cast(Agent, narrator), analyzer=cast(Agent, analyzer))
