from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID, uuid4

import redis

from dungeon_ai.api.models import (
    Character,
    CharacterCreateRequest,
    CharacterUpdateRequest,
)
from dungeon_ai.dice import ability_modifier
from dungeon_ai.errors import AccessDenied, NotFound

CHARACTER_KEY_PREFIX = "dungeon:character:"  # + {uuid}
USER_CHARACTERS_KEY_PREFIX = "dungeon:user_characters:"  # + {user uuid} -> set of character ids


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _character_key(character_id: UUID) -> str:
    return f"{CHARACTER_KEY_PREFIX}{character_id}"


def _owner_key(owner_id: UUID) -> str:
    return f"{USER_CHARACTERS_KEY_PREFIX}{owner_id}"


def save_character(*, r: redis.Redis, character: Character) -> None:
    character.updated_at = _now()
    r.set(_character_key(character.character_id), character.model_dump_json(by_alias=True))


def get_character(*, r: redis.Redis, character_id: UUID) -> Character | None:
    raw = r.get(_character_key(character_id))
    if not raw:
        return None
    return Character.model_validate_json(raw)


def require_character(*, r: redis.Redis, character_id: UUID) -> Character:
    character = get_character(r=r, character_id=character_id)
    if character is None:
        raise NotFound("Character not found")
    return character


def require_owned_character(*, r: redis.Redis, character_id: UUID, owner_id: UUID) -> Character:
    character = require_character(r=r, character_id=character_id)
    if character.owner_id != owner_id:
        raise AccessDenied("Character belongs to another user")
    return character


def create_character(*, r: redis.Redis, owner_id: UUID, payload: CharacterCreateRequest) -> Character:
    stats = payload.stats
    max_hp = payload.max_hit_points
    if max_hp is None:
        max_hp = max(1, 10 + ability_modifier(stats.constitution))
    hp = payload.hit_points if payload.hit_points is not None else max_hp
    ac = payload.armor_class if payload.armor_class is not None else 10 + ability_modifier(stats.dexterity)

    now = _now()
    character = Character(
        character_id=uuid4(),
        owner_id=owner_id,
        name=payload.name.strip(),
        race=payload.race.strip(),
        class_name=payload.class_name.strip(),
        level=payload.level,
        background=payload.background,
        alignment=payload.alignment,
        experience=payload.experience,
        stats=stats,
        hit_points=hp,
        max_hit_points=max_hp,
        armor_class=ac,
        proficiencies=payload.proficiencies,
        equipment=payload.equipment,
        features=payload.features,
        created_at=now,
        updated_at=now,
    )

    r.set(_character_key(character.character_id), character.model_dump_json(by_alias=True))
    r.sadd(_owner_key(owner_id), str(character.character_id))
    return character


def list_characters(*, r: redis.Redis, owner_id: UUID) -> list[Character]:
    out: list[Character] = []
    for sid in sorted(r.smembers(_owner_key(owner_id))):
        try:
            cid = UUID(sid)
        except ValueError:
            continue
        character = get_character(r=r, character_id=cid)
        if character is not None:
            out.append(character)
    out.sort(key=lambda c: c.created_at)
    return out


def update_character(*, r: redis.Redis, character_id: UUID, owner_id: UUID, payload: CharacterUpdateRequest) -> Character:
    character = require_owned_character(r=r, character_id=character_id, owner_id=owner_id)

    changes = payload.model_dump(exclude_unset=True, exclude={"stats"})
    if payload.stats is not None:
        stat_changes = {k: v for k, v in payload.stats.model_dump(exclude_unset=True).items() if v is not None}
        changes["stats"] = character.stats.model_copy(update=stat_changes)
    changes = {k: v for k, v in changes.items() if v is not None}

    # Re-validate so derived fields and constraints stay consistent.
    data = character.model_dump()
    data.update(changes)
    updated = Character.model_validate(data)
    save_character(r=r, character=updated)
    return updated


def delete_character(*, r: redis.Redis, character_id: UUID, owner_id: UUID) -> None:
    require_owned_character(r=r, character_id=character_id, owner_id=owner_id)
    r.delete(_character_key(character_id))
    r.srem(_owner_key(owner_id), str(character_id))
