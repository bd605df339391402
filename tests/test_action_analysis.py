from __future__ import annotations

import asyncio

import pytest

from conftest import ScriptedAgent
from dungeon_ai.agents.action_analyzer import ActionAnalysisError, analyze_action, parse_action_analysis
from dungeon_ai.api.models import ActionAnalysis


def test_parse_camel_case_output() -> None:
    analysis = parse_action_analysis(
        '{"needsRoll": true, "diceType": "d20", "skillCheck": "Athletics", "advantage": true, "disadvantage": false}'
    )
    assert analysis.needs_roll is True
    assert analysis.dice_type == "d20"
    assert analysis.skill_check == "Athletics"
    assert analysis.advantage is True


def test_parse_fenced_output() -> None:
    analysis = parse_action_analysis('```json\n{"needsRoll": true, "diceType": "d6"}\n```')
    assert analysis.needs_roll is True
    assert analysis.dice_type == "d6"


def test_no_roll_drops_details() -> None:
    analysis = parse_action_analysis('{"needsRoll": false, "diceType": "d20", "advantage": true}')
    assert analysis == ActionAnalysis()


@pytest.mark.parametrize("text", ["not json", "[1, 2]", '{"needsRoll": "sometimes"}'])
def test_parse_rejects_invalid_output(text: str) -> None:
    with pytest.raises(ActionAnalysisError):
        parse_action_analysis(text)


async def test_analyze_action_defaults_on_garbage() -> None:
    agent = ScriptedAgent(name="action_analyzer", default="I think you should roll!")
    assert await analyze_action(agent=agent, player_message="I climb the wall", timeout_s=1.0) == ActionAnalysis()


async def test_analyze_action_defaults_on_error() -> None:
    agent = ScriptedAgent(name="action_analyzer")
    agent.queue(RuntimeError("connection reset"))
    assert await analyze_action(agent=agent, player_message="I climb the wall", timeout_s=1.0) == ActionAnalysis()


async def test_analyze_action_defaults_on_timeout() -> None:
    agent = ScriptedAgent(name="action_analyzer", default='{"needsRoll": true, "diceType": "d20"}', delay_s=0.5)
    result = await asyncio.wait_for(
        analyze_action(agent=agent, player_message="I climb the wall", timeout_s=0.05),
        timeout=2.0,
    )
    assert result == ActionAnalysis()


async def test_analyze_action_uses_classifier_prompt() -> None:
    agent = ScriptedAgent(name="action_analyzer", default='{"needsRoll": true, "diceType": "d20", "skillCheck": "Athletics"}')
    result = await analyze_action(agent=agent, player_message="I climb the wall", timeout_s=1.0)

    assert result.needs_roll is True
    call = agent.calls[0]
    assert call["prompt"] == "I climb the wall"
    assert "needsRoll" in call["ctx"].system_prompt
