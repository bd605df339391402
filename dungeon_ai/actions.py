from __future__ import annotations

import logging
from uuid import UUID

import redis

from dungeon_ai.api.models import Character, Game, GameStatus, User
from dungeon_ai.character_store import get_character, require_owned_character
from dungeon_ai.config import Settings
from dungeon_ai.errors import AccessDenied
from dungeon_ai.fsm import transition_status
from dungeon_ai.game_store import (
    delete_game,
    remove_roster_character,
    require_game,
    save_game,
    set_roster_character,
)
from dungeon_ai.lock import game_lock
from dungeon_ai.turn_processing.validators import validate_action

logger = logging.getLogger(__name__)


def _lock(*, r: redis.Redis, game_id: UUID, settings: Settings):
    return game_lock(r=r, game_id=str(game_id), ttl_ms=settings.lock_ttl_ms, wait_s=settings.lock_wait_s)


def roster_characters(*, r: redis.Redis, game: Game) -> list[Character]:
    out: list[Character] = []
    for entry in game.players:
        if entry.character_id is None:
            continue
        character = get_character(r=r, character_id=entry.character_id)
        if character is not None:
            out.append(character)
    return out


async def join_game(*, r: redis.Redis, game_id: UUID, user: User, character_id: UUID, settings: Settings) -> Game:
    """Add the user's own character to the roster (joining the game if needed)."""

    character = require_owned_character(r=r, character_id=character_id, owner_id=user.user_id)
    async with _lock(r=r, game_id=game_id, settings=settings):
        game = require_game(r=r, game_id=game_id)
        validate_action(game=game, user_id=user.user_id, action="join")
        set_roster_character(game=game, user_id=user.user_id, character=character)
        save_game(r=r, game=game)

    logger.info("game %s: user %s plays %s", game_id, user.user_id, character.name)
    return game


async def remove_character(
    *, r: redis.Redis, game_id: UUID, user: User, character_id: UUID, settings: Settings
) -> Game:
    """Remove a roster character. Allowed for its player and for the DM."""

    async with _lock(r=r, game_id=game_id, settings=settings):
        game = require_game(r=r, game_id=game_id)
        validate_action(game=game, user_id=user.user_id, action="leave")

        entry = next((p for p in game.players if p.character_id == character_id), None)
        if entry is not None and entry.user_id != user.user_id and game.dungeon_master_id != user.user_id:
            raise AccessDenied("Only the character's owner or the Dungeon Master can remove it")

        remove_roster_character(game=game, character_id=character_id)
        save_game(r=r, game=game)

    logger.info("game %s: character %s removed by %s", game_id, character_id, user.user_id)
    return game


async def change_status(
    *, r: redis.Redis, game_id: UUID, user: User, status: GameStatus, settings: Settings
) -> Game:
    async with _lock(r=r, game_id=game_id, settings=settings):
        game = require_game(r=r, game_id=game_id)
        validate_action(game=game, user_id=user.user_id, action="update")
        previous = game.status
        transition_status(game=game, target=status)
        save_game(r=r, game=game)

    logger.info("game %s: status %s -> %s", game_id, previous.value, game.status.value)
    return game


async def delete_game_as_dm(*, r: redis.Redis, game_id: UUID, user: User, settings: Settings) -> None:
    async with _lock(r=r, game_id=game_id, settings=settings):
        game = require_game(r=r, game_id=game_id)
        validate_action(game=game, user_id=user.user_id, action="delete")
        delete_game(r=r, game_id=game_id)

    logger.info("game %s deleted by %s", game_id, user.user_id)
