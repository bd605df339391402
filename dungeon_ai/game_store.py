from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID, uuid4

import redis

from dungeon_ai.api.models import (
    Adventure,
    Character,
    Game,
    GameMemory,
    GameState,
    KeyEvent,
    Message,
    MessageType,
    Npc,
    PlayerMemory,
    Quest,
    RosterEntry,
    User,
    WorldState,
)
from dungeon_ai.assets.singleton import get_assets
from dungeon_ai.character_store import get_character, require_owned_character
from dungeon_ai.errors import NotFound


GAMES_SET_KEY = "dungeon:games"
GAME_KEY_PREFIX = "dungeon:game:"  # + {uuid}

DM_SENDER = "DM"
SYSTEM_SENDER = "System"

DEFAULT_WELCOME = (
    "Welcome to your new adventure! You find yourself in a cozy tavern, the warm firelight casting "
    "dancing shadows on the wooden walls. The tavern keeper gives you a friendly nod. What would you like to do?"
)


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _game_key(game_id: UUID) -> str:
    return f"{GAME_KEY_PREFIX}{game_id}"


def player_memory_for(character: Character) -> PlayerMemory:
    return PlayerMemory(
        character_id=character.character_id,
        character_name=character.name,
        class_name=character.class_name,
        race=character.race,
        level=character.level,
    )


def initial_game_state(*, now: datetime, adventure: Adventure | None = None) -> GameState:
    """Starting narrative memory: one event, one quest, one NPC."""

    if adventure is None:
        scene = "start"
        location = "Starting tavern"
        quest = Quest(title="Begin your adventure", description="Start your journey and discover your destiny")
        npc = Npc(
            name="Tavern Keeper",
            description="A friendly tavern keeper who can provide information",
            relationship="neutral",
            last_interaction=now,
        )
        npcs = [npc]
    else:
        scene = adventure.initial_scene
        location = adventure.initial_scene
        quest = Quest(title=adventure.title, description=adventure.description)
        npcs = []

    return GameState(
        current_scene=scene,
        memory=GameMemory(
            key_events=[KeyEvent(event="Game started", timestamp=now, importance=5)],
            world_state=WorldState(current_location=location, active_quests=[quest], important_npcs=npcs),
            player_states={},
        ),
        environment={},
    )


def welcome_message(*, now: datetime, adventure: Adventure | None = None) -> Message:
    if adventure is None:
        content = DEFAULT_WELCOME
    else:
        content = (
            f"Welcome to {adventure.title}! {adventure.initial_scene.strip().rstrip('.')}. "
            "The story is about to unfold. What would you like to do?"
        )
    return Message(sender=DM_SENDER, content=content, timestamp=now, type=MessageType.dm)


def require_adventure(adventure_id: str) -> Adventure:
    adventure = get_assets().adventures.get(adventure_id)
    if adventure is None:
        raise NotFound("Adventure not found")
    return adventure


def save_game(*, r: redis.Redis, game: Game) -> None:
    game.last_updated_at = _now()
    r.set(_game_key(game.game_id), game.model_dump_json(by_alias=True))


def get_game(*, r: redis.Redis, game_id: UUID) -> Game | None:
    raw = r.get(_game_key(game_id))
    if not raw:
        return None
    return Game.model_validate_json(raw)


def require_game(*, r: redis.Redis, game_id: UUID) -> Game:
    game = get_game(r=r, game_id=game_id)
    if game is None:
        raise NotFound("Game not found")
    return game


def create_game(
    *,
    r: redis.Redis,
    user: User,
    name: str,
    description: str,
    adventure_id: str | None = None,
    character_id: UUID | None = None,
) -> Game:
    adventure = require_adventure(adventure_id) if adventure_id else None
    character = (
        require_owned_character(r=r, character_id=character_id, owner_id=user.user_id) if character_id else None
    )

    now = _now()
    state = initial_game_state(now=now, adventure=adventure)
    if character is not None:
        state.memory.player_states[str(user.user_id)] = player_memory_for(character)

    game = Game(
        game_id=uuid4(),
        name=name.strip(),
        description=description.strip(),
        adventure_id=adventure.adventure_id if adventure else None,
        dungeon_master_id=user.user_id,
        players=[RosterEntry(user_id=user.user_id, character_id=character.character_id if character else None)],
        messages=[welcome_message(now=now, adventure=adventure)],
        game_state=state,
        created_at=now,
        last_updated_at=now,
    )

    r.set(_game_key(game.game_id), game.model_dump_json(by_alias=True))
    r.sadd(GAMES_SET_KEY, str(game.game_id))
    return game


def list_games(*, r: redis.Redis, user_id: UUID) -> list[Game]:
    """Games the user can access (DM or roster player), newest first."""

    ids = sorted(r.smembers(GAMES_SET_KEY))
    out: list[Game] = []
    for sid in ids:
        try:
            gid = UUID(sid)
        except ValueError:
            continue
        game = get_game(r=r, game_id=gid)
        if game is not None and game.has_access(user_id):
            out.append(game)
    out.sort(key=lambda g: g.created_at, reverse=True)
    return out


def delete_game(*, r: redis.Redis, game_id: UUID) -> None:
    r.delete(_game_key(game_id))
    r.srem(GAMES_SET_KEY, str(game_id))


def set_roster_character(*, game: Game, user_id: UUID, character: Character) -> None:
    """Put `character` on the roster for `user_id`, replacing any previous one."""

    entry = game.roster_entry(user_id)
    if entry is None:
        game.players.append(RosterEntry(user_id=user_id, character_id=character.character_id))
    else:
        entry.character_id = character.character_id

    key = str(user_id)
    previous = game.game_state.memory.player_states.get(key)
    fresh = player_memory_for(character)
    if previous is not None and previous.character_id == character.character_id:
        # Same character re-joining keeps its history, even if renamed.
        fresh.notable_actions = previous.notable_actions
    game.game_state.memory.player_states[key] = fresh


def remove_roster_character(*, game: Game, character_id: UUID) -> RosterEntry:
    entry = next((p for p in game.players if p.character_id == character_id), None)
    if entry is None:
        raise NotFound("Character is not in this game")

    game.game_state.memory.player_states.pop(str(entry.user_id), None)
    if entry.user_id == game.dungeon_master_id:
        # The DM stays on the roster without a character.
        entry.character_id = None
    else:
        game.players.remove(entry)
    return entry


def refresh_player_states(*, r: redis.Redis, game: Game) -> None:
    """Bring `player_states` in line with the roster characters' current sheets.

    Name, class, race and level follow later character edits; notable actions stay.
    """

    states = game.game_state.memory.player_states
    for entry in game.players:
        if entry.character_id is None:
            continue
        character = get_character(r=r, character_id=entry.character_id)
        if character is None:
            continue
        key = str(entry.user_id)
        fresh = player_memory_for(character)
        previous = states.get(key)
        if previous is not None and previous.character_id in (None, character.character_id):
            fresh.notable_actions = previous.notable_actions
        states[key] = fresh
