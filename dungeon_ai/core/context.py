from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, TypedDict


class ChatTurn(TypedDict):
    role: Literal["user", "assistant"]
    content: str


@dataclass(frozen=True, slots=True)
class BaseAgentContext:
    """Global, shared instructions for an agent role."""

    system_prompt: str


@dataclass(frozen=True, slots=True)
class AdventureContext:
    """Adventure overlay: module-specific DM instructions."""

    title: str
    prompt: str


@dataclass(frozen=True, slots=True)
class RenderedContext:
    """System prompt handed to an agent after all layers are joined."""

    system_prompt: str


def compose_context(
    *,
    base: BaseAgentContext,
    adventure: AdventureContext | None = None,
    game_context: str = "",
) -> RenderedContext:
    parts: list[str] = []
    parts.append(base.system_prompt.strip())

    if adventure is not None and adventure.prompt.strip():
        parts.append(
            "\n".join(
                [
                    "ADVENTURE CONTEXT:",
                    f"- title: {adventure.title}",
                    "- adventure_prompt:",
                    adventure.prompt.strip(),
                ]
            ).strip()
        )

    if game_context.strip():
        parts.append("Game Context:\n" + game_context.strip())

    system_prompt = "\n\n".join([p for p in parts if p.strip()]).strip()
    return RenderedContext(system_prompt=system_prompt)
