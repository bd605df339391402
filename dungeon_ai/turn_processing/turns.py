from __future__ import annotations

import logging
import random
from datetime import UTC, datetime
from uuid import UUID

import redis

from dungeon_ai.agents.action_analyzer import analyze_action
from dungeon_ai.agents.base import GameAgents
from dungeon_ai.agents.narrator import narrate
from dungeon_ai.api.models import (
    ActionAnalysis,
    Character,
    Game,
    Message,
    MessageType,
    RollRequest,
    RollResult,
    TurnResponse,
    User,
)
from dungeon_ai.assets.singleton import get_assets
from dungeon_ai.character_store import get_character, require_character
from dungeon_ai.config import Settings
from dungeon_ai.core.context import AdventureContext, BaseAgentContext, RenderedContext, compose_context
from dungeon_ai.core.memory import merge_memory
from dungeon_ai.dice import DiceError, format_roll, match_ability, parse_dice, roll
from dungeon_ai.errors import AccessDenied, InvalidRequest, NarratorError, NarratorUnavailable, NotFound
from dungeon_ai.game_store import DM_SENDER, SYSTEM_SENDER, refresh_player_states, require_game, save_game
from dungeon_ai.lock import game_lock
from dungeon_ai.prompts import NARRATOR_PROMPT, load_prompt
from dungeon_ai.turn_processing.game_context import format_game_context, message_history
from dungeon_ai.turn_processing.validators import validate_action

logger = logging.getLogger(__name__)

DISTRACTED_MESSAGE = "The Dungeon Master is momentarily distracted. Please try your action again."


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _adventure_context(game: Game) -> AdventureContext | None:
    if not game.adventure_id:
        return None
    adventure = get_assets().adventures.get(game.adventure_id)
    if adventure is None:
        logger.warning("game %s: adventure %s not in catalogue; narrating without it", game.game_id, game.adventure_id)
        return None
    return AdventureContext(title=adventure.title, prompt=adventure.system_prompt)


def narrator_context(*, game: Game, settings: Settings, now: datetime) -> RenderedContext:
    """Layer the narrator prompt, the adventure overlay and the bounded game context."""

    return compose_context(
        base=BaseAgentContext(system_prompt=load_prompt(NARRATOR_PROMPT)),
        adventure=_adventure_context(game),
        game_context=format_game_context(
            state=game.game_state,
            now=now,
            recent_events=settings.recent_events,
            npc_recency_hours=settings.npc_recency_hours,
        ),
    )


def _sender_name(*, r: redis.Redis, game: Game, user: User) -> str:
    entry = game.roster_entry(user.user_id)
    if entry is not None and entry.character_id is not None:
        character = get_character(r=r, character_id=entry.character_id)
        if character is not None:
            return character.name
    return user.username


async def _narrate_and_persist(
    *,
    r: redis.Redis,
    game: Game,
    user: User,
    turn_message: Message,
    agents: GameAgents,
    settings: Settings,
) -> list[Message]:
    """Run the narrator for `turn_message` and persist the outcome.

    Caller holds the game lock. On success the turn message and the DM reply are
    appended and memory is merged. On failure the turn message and one system
    notice are persisted, memory is untouched, and NarratorUnavailable is raised.
    """

    refresh_player_states(r=r, game=game)
    now = _now()
    history = message_history(game.messages, window=settings.history_window)
    ctx = narrator_context(game=game, settings=settings, now=now)

    try:
        reply = await narrate(
            agent=agents.narrator,
            ctx=ctx,
            history=history,
            player_input=turn_message.content,
            timeout_s=settings.narrator_timeout_s,
        )
    except NarratorError as e:
        logger.warning("game %s: narrator unavailable: %s", game.game_id, e.description)
        notice = Message(sender=SYSTEM_SENDER, content=DISTRACTED_MESSAGE, timestamp=_now(), type=MessageType.system)
        game.messages.extend([turn_message, notice])
        save_game(r=r, game=game)
        raise NarratorUnavailable(e.description, messages=[turn_message, notice]) from e

    replied_at = _now()
    game.game_state = merge_memory(
        state=game.game_state,
        update=reply.memory,
        player_id=str(user.user_id),
        now=replied_at,
    )
    dm_message = Message(sender=DM_SENDER, content=reply.narration, timestamp=replied_at, type=MessageType.dm)
    game.messages.extend([turn_message, dm_message])
    save_game(r=r, game=game)
    logger.info("game %s: turn by %s narrated (%d messages)", game.game_id, user.user_id, len(game.messages))
    return [turn_message, dm_message]


async def process_message_turn(
    *,
    r: redis.Redis,
    game_id: UUID,
    user: User,
    text: str,
    agents: GameAgents,
    settings: Settings,
) -> TurnResponse:
    """Handle one free-text player action: classify, narrate, merge, persist."""

    logger.info("game %s: message turn by %s", game_id, user.user_id)
    async with game_lock(r=r, game_id=str(game_id), ttl_ms=settings.lock_ttl_ms, wait_s=settings.lock_wait_s):
        game = require_game(r=r, game_id=game_id)
        validate_action(game=game, user_id=user.user_id, action="message")

        analysis: ActionAnalysis = await analyze_action(
            agent=agents.analyzer,
            player_message=text,
            timeout_s=settings.analyzer_timeout_s,
        )
        logger.debug("game %s: action analysis %s", game_id, analysis.model_dump())

        player_message = Message(
            sender=_sender_name(r=r, game=game, user=user),
            content=text.strip(),
            timestamp=_now(),
            type=MessageType.player,
        )
        try:
            messages = await _narrate_and_persist(
                r=r, game=game, user=user, turn_message=player_message, agents=agents, settings=settings
            )
        except NarratorUnavailable as e:
            e.action_analysis = analysis
            raise

    return TurnResponse(messages=messages, action_analysis=analysis)


def roll_character(*, r: redis.Redis, game: Game, user: User, character_id: UUID | None) -> Character | None:
    """Pick the character whose modifier applies to a roll.

    An explicit character must be on the roster and belong to the requester,
    unless the requester is the DM. Otherwise the requester's own roster
    character is used, if any.
    """

    if character_id is not None:
        entry = next((p for p in game.players if p.character_id == character_id), None)
        if entry is None:
            raise NotFound("Character is not in this game")
        if entry.user_id != user.user_id and game.dungeon_master_id != user.user_id:
            raise AccessDenied("Character belongs to another user")
        return require_character(r=r, character_id=character_id)

    entry = game.roster_entry(user.user_id)
    if entry is None or entry.character_id is None:
        return None
    return get_character(r=r, character_id=entry.character_id)


async def process_roll_turn(
    *,
    r: redis.Redis,
    game_id: UUID,
    user: User,
    request: RollRequest,
    agents: GameAgents,
    settings: Settings,
    rng: random.Random | None = None,
) -> TurnResponse:
    """Roll a die for the player and let the narrator react to the outcome."""

    logger.info("game %s: roll turn by %s (%s)", game_id, user.user_id, request.dice_type)
    try:
        sides = parse_dice(request.dice_type)
    except DiceError as e:
        raise InvalidRequest(str(e)) from e

    async with game_lock(r=r, game_id=str(game_id), ttl_ms=settings.lock_ttl_ms, wait_s=settings.lock_wait_s):
        game = require_game(r=r, game_id=game_id)
        validate_action(game=game, user_id=user.user_id, action="roll")

        character = roll_character(r=r, game=game, user=user, character_id=request.character_id)
        dice = roll(sides, advantage=request.advantage, disadvantage=request.disadvantage, rng=rng)

        ability = match_ability(request.reason) if character is not None else None
        modifier = character.stats.modifier(ability) if character is not None and ability else 0
        total = dice.raw + modifier

        result = RollResult(
            dice_type=dice.notation,
            sides=dice.sides,
            rolls=list(dice.rolls),
            raw=dice.raw,
            ability=ability,
            modifier=modifier,
            total=total,
            reason=request.reason,
            character_id=character.character_id if character is not None else None,
        )
        sender = character.name if character is not None else user.username
        roll_message = Message(
            sender=sender,
            content=format_roll(
                sender=sender,
                notation=dice.notation,
                raw=dice.raw,
                ability=ability,
                modifier=modifier,
                total=total,
                reason=request.reason,
            ),
            timestamp=_now(),
            type=MessageType.roll,
        )
        logger.info("game %s: %s", game_id, roll_message.content)

        try:
            messages = await _narrate_and_persist(
                r=r, game=game, user=user, turn_message=roll_message, agents=agents, settings=settings
            )
        except NarratorUnavailable as e:
            e.roll = result
            raise

    return TurnResponse(messages=messages, roll=result)
