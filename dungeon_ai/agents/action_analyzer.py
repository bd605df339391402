from __future__ import annotations

import asyncio
import json
import logging

from pydantic import ValidationError

from dungeon_ai.agents.base import Agent
from dungeon_ai.agents.narrator import strip_code_fence
from dungeon_ai.api.models import ActionAnalysis
from dungeon_ai.core.context import BaseAgentContext, compose_context
from dungeon_ai.prompts import ACTION_ANALYZER_PROMPT, load_prompt

logger = logging.getLogger(__name__)


class ActionAnalysisError(RuntimeError):
    pass


def parse_action_analysis(text: str) -> ActionAnalysis:
    """Parse the classifier output.

    Expected strict JSON object:
        {"needsRoll": bool, "diceType": str|null, "skillCheck": str|null,
         "advantage": bool, "disadvantage": bool}
    Snake-case keys are accepted too.
    """

    try:
        data = json.loads(strip_code_fence(text))
    except json.JSONDecodeError as e:
        raise ActionAnalysisError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ActionAnalysisError("Expected a JSON object")

    try:
        analysis = ActionAnalysis.model_validate(data)
    except ValidationError as e:
        raise ActionAnalysisError(f"Invalid analysis: {e}") from e

    if not analysis.needs_roll:
        # A "no roll" verdict carries no dice details.
        return ActionAnalysis()
    return analysis


async def analyze_action(*, agent: Agent, player_message: str, timeout_s: float) -> ActionAnalysis:
    """Ask the classifier whether an action needs a dice roll.

    Never raises: any failure degrades to the conservative default (no roll).
    """

    ctx = compose_context(base=BaseAgentContext(system_prompt=load_prompt(ACTION_ANALYZER_PROMPT)))
    try:
        action = await asyncio.wait_for(
            agent.propose_action(prompt=player_message, ctx=ctx, structured_output=ActionAnalysis),
            timeout=timeout_s,
        )
        return parse_action_analysis(action.content)
    except Exception as e:
        logger.warning("action analysis failed, assuming no roll: %s", e)
        return ActionAnalysis()
