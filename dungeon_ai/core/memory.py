from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from dungeon_ai.api.models import (
    GameState,
    KeyEvent,
    NotableAction,
    Npc,
    Quest,
    QuestStatus,
)

logger = logging.getLogger(__name__)


class KeyEventUpdate(BaseModel):
    event: str
    importance: int = Field(5, ge=1, le=10)


class QuestUpdate(BaseModel):
    title: str
    description: str | None = None
    status: QuestStatus | None = None


class NpcUpdate(BaseModel):
    name: str
    description: str | None = None
    relationship: str | None = None


class MemoryUpdate(BaseModel):
    """Memory changes proposed by the narrator for one turn.

    Every field is optional; absent or blank fields leave the stored value alone.
    """

    current_scene: str | None = None
    current_location: str | None = None
    key_events: list[KeyEventUpdate] | None = None
    quests: list[QuestUpdate] | None = None
    npcs: list[NpcUpdate] | None = None
    notable_action: str | None = None
    environment: dict[str, Any] | None = None

    def is_empty(self) -> bool:
        return not any(
            [
                _text(self.current_scene),
                _text(self.current_location),
                self.key_events,
                self.quests,
                self.npcs,
                _text(self.notable_action),
                _environment_changes(self.environment),
            ]
        )


def _text(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _environment_changes(environment: dict[str, Any] | None) -> dict[str, Any]:
    # Null or blank values mean "unchanged", never "erase".
    return {
        k: v
        for k, v in (environment or {}).items()
        if v is not None and not (isinstance(v, str) and not v.strip())
    }


def _merge_quests(previous: list[Quest], updates: list[QuestUpdate]) -> list[Quest]:
    quests = [q.model_copy() for q in previous]
    by_title = {q.title.casefold(): idx for idx, q in enumerate(quests)}

    for u in updates:
        title = _text(u.title)
        if title is None:
            continue
        idx = by_title.get(title.casefold())
        if idx is None:
            quests.append(
                Quest(
                    title=title,
                    description=_text(u.description) or "",
                    status=u.status or QuestStatus.active,
                )
            )
            by_title[title.casefold()] = len(quests) - 1
            continue
        q = quests[idx]
        quests[idx] = q.model_copy(
            update={
                "description": _text(u.description) or q.description,
                "status": u.status or q.status,
            }
        )
    return quests


def _merge_npcs(previous: list[Npc], updates: list[NpcUpdate], *, now: datetime) -> list[Npc]:
    npcs = [n.model_copy() for n in previous]
    by_name = {n.name.casefold(): idx for idx, n in enumerate(npcs)}

    for u in updates:
        name = _text(u.name)
        if name is None:
            continue
        idx = by_name.get(name.casefold())
        if idx is None:
            npcs.append(
                Npc(
                    name=name,
                    description=_text(u.description) or "",
                    relationship=_text(u.relationship) or "neutral",
                    last_interaction=now,
                )
            )
            by_name[name.casefold()] = len(npcs) - 1
            continue
        n = npcs[idx]
        npcs[idx] = n.model_copy(
            update={
                "description": _text(u.description) or n.description,
                "relationship": _text(u.relationship) or n.relationship,
                "last_interaction": now,
            }
        )
    return npcs


def merge_memory(*, state: GameState, update: MemoryUpdate, player_id: str, now: datetime) -> GameState:
    """Fold a narrator memory update into the game state (left-biased).

    Returns a new GameState; `state` is not mutated. Missing fields fall back to the
    previous value, so an empty update returns an equal state.
    """

    merged = state.model_copy(deep=True)
    if update.is_empty():
        return merged

    memory = merged.memory
    world = memory.world_state

    merged.current_scene = _text(update.current_scene) or merged.current_scene
    world.current_location = _text(update.current_location) or world.current_location

    if update.key_events:
        for ev in update.key_events:
            text = _text(ev.event)
            if text:
                memory.key_events.append(KeyEvent(event=text, timestamp=now, importance=ev.importance))

    if update.quests:
        world.active_quests = _merge_quests(world.active_quests, update.quests)

    if update.npcs:
        world.important_npcs = _merge_npcs(world.important_npcs, update.npcs, now=now)

    action = _text(update.notable_action)
    if action:
        player_state = memory.player_states.get(player_id)
        if player_state is None:
            logger.debug("no player state for %s; dropping notable action", player_id)
        else:
            player_state.notable_actions.append(NotableAction(action=action, timestamp=now))

    changes = _environment_changes(update.environment)
    if changes:
        merged.environment = {**merged.environment, **changes}

    return merged
