from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from dungeon_ai.dice import ABILITIES, ability_modifier


# ---- users ----


class User(BaseModel):
    user_id: UUID
    username: str
    email: str
    password_hash: str
    created_at: datetime


class UserPublic(BaseModel):
    user_id: UUID
    username: str
    email: str
    created_at: datetime


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=6, max_length=256)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class AuthResponse(BaseModel):
    token: str
    user: UserPublic


# ---- characters ----


class AbilityScores(BaseModel):
    strength: int = Field(..., ge=1, le=30)
    dexterity: int = Field(..., ge=1, le=30)
    constitution: int = Field(..., ge=1, le=30)
    intelligence: int = Field(..., ge=1, le=30)
    wisdom: int = Field(..., ge=1, le=30)
    charisma: int = Field(..., ge=1, le=30)

    def score(self, ability: str) -> int:
        return int(getattr(self, ability))

    def modifier(self, ability: str) -> int:
        return ability_modifier(self.score(ability))


class AbilityScoresUpdate(BaseModel):
    strength: int | None = Field(None, ge=1, le=30)
    dexterity: int | None = Field(None, ge=1, le=30)
    constitution: int | None = Field(None, ge=1, le=30)
    intelligence: int | None = Field(None, ge=1, le=30)
    wisdom: int | None = Field(None, ge=1, le=30)
    charisma: int | None = Field(None, ge=1, le=30)


class CharacterCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=100)
    race: str = Field(..., min_length=1, max_length=50)
    class_name: str = Field(..., alias="class", min_length=1, max_length=50)
    level: int = Field(1, ge=1, le=20)
    background: str = ""
    alignment: str = ""
    experience: int = Field(0, ge=0)
    stats: AbilityScores

    # Derived from stats when omitted.
    hit_points: int | None = Field(None, ge=0)
    max_hit_points: int | None = Field(None, ge=1)
    armor_class: int | None = Field(None, ge=0)

    proficiencies: list[str] = Field(default_factory=list)
    equipment: list[str] = Field(default_factory=list)
    features: list[str] = Field(default_factory=list)


class CharacterUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str | None = Field(None, min_length=1, max_length=100)
    race: str | None = Field(None, min_length=1, max_length=50)
    class_name: str | None = Field(None, alias="class", min_length=1, max_length=50)
    level: int | None = Field(None, ge=1, le=20)
    background: str | None = None
    alignment: str | None = None
    experience: int | None = Field(None, ge=0)
    stats: AbilityScoresUpdate | None = None
    hit_points: int | None = Field(None, ge=0)
    max_hit_points: int | None = Field(None, ge=1)
    armor_class: int | None = Field(None, ge=0)
    proficiencies: list[str] | None = None
    equipment: list[str] | None = None
    features: list[str] | None = None


class Character(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    character_id: UUID
    owner_id: UUID
    name: str
    race: str
    class_name: str = Field(..., alias="class")
    level: int = 1
    background: str = ""
    alignment: str = ""
    experience: int = 0
    stats: AbilityScores
    hit_points: int
    max_hit_points: int
    armor_class: int
    proficiencies: list[str] = Field(default_factory=list)
    equipment: list[str] = Field(default_factory=list)
    features: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def modifiers(self) -> dict[str, int]:
        return {a: self.stats.modifier(a) for a in ABILITIES}


# ---- adventures ----


class Adventure(BaseModel):
    adventure_id: str
    title: str
    description: str
    starting_level: int
    ending_level: int
    setting: str
    initial_scene: str
    system_prompt: str


class AdventureSummary(BaseModel):
    adventure_id: str
    title: str
    description: str
    starting_level: int
    ending_level: int
    setting: str


# ---- game memory ----


class MessageType(StrEnum):
    dm = "dm"
    player = "player"
    system = "system"
    roll = "roll"


class Message(BaseModel):
    sender: str
    content: str
    timestamp: datetime
    type: MessageType


class KeyEvent(BaseModel):
    event: str
    timestamp: datetime
    importance: int = Field(5, ge=1, le=10)


class QuestStatus(StrEnum):
    active = "active"
    completed = "completed"
    failed = "failed"


class Quest(BaseModel):
    title: str
    description: str = ""
    status: QuestStatus = QuestStatus.active


class Npc(BaseModel):
    name: str
    description: str = ""
    relationship: str = "neutral"
    last_interaction: datetime


class WorldState(BaseModel):
    current_location: str = "Starting tavern"
    active_quests: list[Quest] = Field(default_factory=list)
    important_npcs: list[Npc] = Field(default_factory=list)


class NotableAction(BaseModel):
    action: str
    timestamp: datetime


class PlayerMemory(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    character_id: UUID | None = None
    character_name: str
    class_name: str = Field("", alias="class")
    race: str = ""
    level: int = 1
    notable_actions: list[NotableAction] = Field(default_factory=list)


class GameMemory(BaseModel):
    key_events: list[KeyEvent] = Field(default_factory=list)
    world_state: WorldState = Field(default_factory=WorldState)
    # Keyed by user id (as a string).
    player_states: dict[str, PlayerMemory] = Field(default_factory=dict)


class GameState(BaseModel):
    current_scene: str = "start"
    memory: GameMemory = Field(default_factory=GameMemory)
    environment: dict[str, Any] = Field(default_factory=dict)


# ---- games ----


class GameStatus(StrEnum):
    active = "active"
    paused = "paused"
    completed = "completed"


class RosterEntry(BaseModel):
    user_id: UUID
    character_id: UUID | None = None


class Game(BaseModel):
    game_id: UUID
    name: str
    description: str
    adventure_id: str | None = None
    dungeon_master_id: UUID
    players: list[RosterEntry] = Field(default_factory=list)
    status: GameStatus = GameStatus.active
    messages: list[Message] = Field(default_factory=list)
    game_state: GameState = Field(default_factory=GameState)
    created_at: datetime
    last_updated_at: datetime

    def roster_entry(self, user_id: UUID) -> RosterEntry | None:
        return next((p for p in self.players if p.user_id == user_id), None)

    def has_access(self, user_id: UUID) -> bool:
        return self.dungeon_master_id == user_id or self.roster_entry(user_id) is not None


class GameCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=4000)
    adventure_id: str | None = None
    character_id: UUID | None = None


class GameListResponse(BaseModel):
    games: list[Game]


class GameStatusRequest(BaseModel):
    status: GameStatus


class AddCharacterRequest(BaseModel):
    character_id: UUID


class RosterResponse(BaseModel):
    game_id: UUID
    characters: list[Character]


# ---- turns ----


class ActionAnalysis(BaseModel):
    """Dice-check judgment for a free-text action.

    Field aliases match the camelCase shape the classifier is asked for.
    """

    model_config = ConfigDict(populate_by_name=True)

    needs_roll: bool = Field(False, alias="needsRoll")
    dice_type: str | None = Field(None, alias="diceType")
    skill_check: str | None = Field(None, alias="skillCheck")
    advantage: bool = False
    disadvantage: bool = False


class MessageRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)

    @model_validator(mode="after")
    def _not_blank(self) -> MessageRequest:
        if not self.message.strip():
            raise ValueError("message must not be blank")
        return self


class RollRequest(BaseModel):
    dice_type: str = "d20"
    reason: str | None = Field(None, max_length=500)
    character_id: UUID | None = None
    advantage: bool = False
    disadvantage: bool = False


class RollResult(BaseModel):
    dice_type: str
    sides: int
    rolls: list[int]
    raw: int
    ability: str | None = None
    modifier: int = 0
    total: int
    reason: str | None = None
    character_id: UUID | None = None


class TurnResponse(BaseModel):
    messages: list[Message]
    action_analysis: ActionAnalysis | None = None
    roll: RollResult | None = None
