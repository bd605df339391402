from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from autogen import ConversableAgent
from pydantic import BaseModel

from dungeon_ai.agents.autogen_config import build_llm_config
from dungeon_ai.agents.base import AgentAction
from dungeon_ai.config import Settings
from dungeon_ai.core.context import ChatTurn, RenderedContext

logger = logging.getLogger(__name__)


def _reply_text(reply: object) -> str:
    """AG2 replies are a str, a message dict, or None when the model said nothing."""

    if isinstance(reply, str):
        return reply.strip()
    if isinstance(reply, dict):
        content = reply.get("content")
        if isinstance(content, str):
            return content.strip()
    return ""


@dataclass(slots=True)
class Ag2ChatAgent:
    """Single-reply chat agent on top of AG2 (`autogen`).

    Each call builds a fresh ConversableAgent whose system message is the
    rendered context; prior turns are passed explicitly as `history`, so the
    agent itself keeps no conversation state between calls.
    """

    name: str
    settings: Settings
    temperature: float | None = None
    max_tokens: int | None = None

    async def propose_action(
        self,
        *,
        prompt: str,
        ctx: RenderedContext,
        structured_output: type[BaseModel] | None = None,
        history: list[ChatTurn] | None = None,
    ) -> AgentAction:
        llm_config = build_llm_config(
            settings=self.settings,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            response_format=structured_output,
        )
        agent = ConversableAgent(
            name=self.name,
            system_message=ctx.system_prompt,
            llm_config=llm_config,
            human_input_mode="NEVER",
        )

        messages: list[dict[str, Any]] = [{"role": t["role"], "content": t["content"]} for t in history or []]
        messages.append({"role": "user", "content": prompt})
        logger.debug("%s: requesting reply (%d history turns)", self.name, len(messages) - 1)

        reply = await agent.a_generate_reply(messages=messages)
        return AgentAction(
            kind="chat",
            content=_reply_text(reply),
            metadata={"model": self.settings.openai_model, "structured": structured_output is not None},
        )
