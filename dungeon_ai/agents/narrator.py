from __future__ import annotations

import asyncio
import json
import logging
import re

from pydantic import BaseModel, Field, ValidationError

from dungeon_ai.agents.base import Agent
from dungeon_ai.core.context import ChatTurn, RenderedContext
from dungeon_ai.core.memory import MemoryUpdate
from dungeon_ai.errors import NarratorError

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


class NarratorReply(BaseModel):
    narration: str
    memory: MemoryUpdate = Field(default_factory=MemoryUpdate)


def strip_code_fence(text: str) -> str:
    """Remove a surrounding ```json fence some models add despite instructions."""
    stripped = text.strip()
    m = _FENCE_RE.match(stripped)
    return m.group(1) if m else stripped


def parse_narrator_reply(text: str) -> NarratorReply:
    """Parse the narrator output into narration + memory update.

    Preferred: the JSON object described in prompts/narrator.txt.
    Fallbacks:
    - non-JSON text is the narration, with no memory update
    - an invalid `memory` block is dropped, the narration is kept

    Raises NarratorError only when there is no usable narration at all.
    """

    raw = (text or "").strip()
    if not raw:
        raise NarratorError("Empty response from the Dungeon Master.")

    try:
        data = json.loads(strip_code_fence(raw))
    except json.JSONDecodeError:
        return NarratorReply(narration=raw)

    if not isinstance(data, dict):
        return NarratorReply(narration=raw)

    narration = data.get("narration")
    if not isinstance(narration, str) or not narration.strip():
        raise NarratorError("Empty response from the Dungeon Master.")

    memory = MemoryUpdate()
    raw_memory = data.get("memory")
    if isinstance(raw_memory, dict):
        try:
            memory = MemoryUpdate.model_validate(raw_memory)
        except ValidationError as e:
            logger.warning("dropping invalid narrator memory update: %s", e)

    return NarratorReply(narration=narration.strip(), memory=memory)


def describe_upstream_error(e: BaseException) -> str:
    """Map a model-call failure to a client-safe description."""

    if isinstance(e, NarratorError):
        return e.description
    if isinstance(e, TimeoutError):
        return "The Dungeon Master took too long to respond."

    status = getattr(e, "status_code", None)
    if status is None:
        status = getattr(getattr(e, "response", None), "status_code", None)
    if status in (401, 403):
        return "Invalid model API key. Please check your configuration."
    if status == 429:
        return "Rate limit exceeded. Please try again later."
    return "AI service error. Please try again later."


async def narrate(
    *,
    agent: Agent,
    ctx: RenderedContext,
    history: list[ChatTurn],
    player_input: str,
    timeout_s: float,
) -> NarratorReply:
    """Ask the narrator for the next beat of the story.

    Any failure is raised as NarratorError with a safe description; the raw error is only logged.
    """

    try:
        action = await asyncio.wait_for(
            agent.propose_action(prompt=player_input, ctx=ctx, history=history),
            timeout=timeout_s,
        )
        return parse_narrator_reply(action.content)
    except NarratorError:
        raise
    except Exception as e:
        logger.exception("narrator call failed")
        raise NarratorError(describe_upstream_error(e)) from e
