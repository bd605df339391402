from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from pydantic import BaseModel

from dungeon_ai.core.context import ChatTurn, RenderedContext


@dataclass(frozen=True, slots=True)
class AgentAction:
    kind: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)


class Agent(Protocol):
    name: str

    async def propose_action(
        self,
        *,
        prompt: str,
        ctx: RenderedContext,
        structured_output: type[BaseModel] | None = None,
        history: list[ChatTurn] | None = None,
    ) -> AgentAction:  # pragma: no cover
        ...


@dataclass(frozen=True, slots=True)
class GameAgents:
    """The two model roles a turn needs."""

    narrator: Agent
    analyzer: Agent
