from __future__ import annotations

from datetime import datetime, timedelta

from dungeon_ai.api.models import GameState, Message, MessageType
from dungeon_ai.core.context import ChatTurn


def _recent_events(state: GameState, *, limit: int) -> str:
    events = sorted(state.memory.key_events, key=lambda e: e.timestamp, reverse=True)[:limit]
    return ". ".join(e.event for e in events)


def _active_quests(state: GameState) -> str:
    return ", ".join(q.title for q in state.memory.world_state.active_quests if q.status == "active")


def _recent_npcs(state: GameState, *, now: datetime, recency_hours: float) -> str:
    cutoff = now - timedelta(hours=recency_hours)
    npcs = [n for n in state.memory.world_state.important_npcs if n.last_interaction >= cutoff]
    return ", ".join(f"{n.name} ({n.relationship})" for n in npcs)


def _party(state: GameState) -> str:
    members = []
    for p in state.memory.player_states.values():
        desc = " ".join(s for s in [f"level {p.level}", p.race, p.class_name] if s)
        members.append(f"{p.character_name} ({desc})")
    return ", ".join(members)


def format_game_context(
    *,
    state: GameState,
    now: datetime,
    recent_events: int = 5,
    npc_recency_hours: float = 24.0,
) -> str:
    """Render the persisted memory as the narrator's bounded game context."""

    world = state.memory.world_state
    lines = [
        f"Current Scene: {state.current_scene or 'tavern'}",
        f"Location: {world.current_location or 'Starting tavern'}",
        f"Recent Events: {_recent_events(state, limit=recent_events)}",
        f"Active Quests: {_active_quests(state)}",
        f"Recent NPC Interactions: {_recent_npcs(state, now=now, recency_hours=npc_recency_hours)}",
        f"Party: {_party(state)}",
    ]
    return "\n".join(lines).strip()


def message_history(messages: list[Message], *, window: int = 10) -> list[ChatTurn]:
    """Map the last `window` log messages to chat turns.

    DM messages become assistant turns; player and roll messages become user turns.
    System notices are not part of the story and are skipped.
    """

    if window <= 0:
        return []

    turns: list[ChatTurn] = []
    for m in messages[-window:]:
        if m.type == MessageType.system:
            continue
        if m.type == MessageType.dm:
            turns.append({"role": "assistant", "content": m.content})
        else:
            turns.append({"role": "user", "content": f"{m.sender}: {m.content}" if m.type == MessageType.player else m.content})
    return turns
