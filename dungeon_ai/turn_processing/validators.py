from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from uuid import UUID

from dungeon_ai.api.models import Game, GameStatus
from dungeon_ai.errors import AccessDenied, InvalidRequest


@dataclass(frozen=True, slots=True)
class ValidationContext:
    """Which game, which user, and which action is being checked.

    Validators never write to the game.
    """

    game_id: str
    user_id: UUID
    action: str


class GameValidator(ABC):
    """A small, composable validation unit for an incoming request."""

    @abstractmethod
    def validate(self, *, ctx: ValidationContext, game: Game) -> None:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class ParticipantValidator(GameValidator):
    """Only the dungeon master or a roster player may touch the game."""

    def validate(self, *, ctx: ValidationContext, game: Game) -> None:
        if not game.has_access(ctx.user_id):
            raise AccessDenied("Access denied")


@dataclass(frozen=True, slots=True)
class DungeonMasterValidator(GameValidator):
    def validate(self, *, ctx: ValidationContext, game: Game) -> None:
        if game.dungeon_master_id != ctx.user_id:
            raise AccessDenied(f"Only the Dungeon Master can {ctx.action} the game")


@dataclass(frozen=True, slots=True)
class StatusValidator(GameValidator):
    """Validates the game status for a given action."""

    allowed_statuses: frozenset[GameStatus]

    def validate(self, *, ctx: ValidationContext, game: Game) -> None:
        if game.status not in self.allowed_statuses:
            if self.allowed_statuses == frozenset({GameStatus.active}):
                raise InvalidRequest("Game is not active")
            allowed = ",".join(sorted(s.value for s in self.allowed_statuses))
            raise InvalidRequest(f"Action '{ctx.action}' not allowed in status '{game.status.value}' (allowed: {allowed})")


@dataclass(frozen=True, slots=True)
class ValidatorPipeline:
    validators: tuple[GameValidator, ...]

    def validate(self, *, ctx: ValidationContext, game: Game) -> None:
        for v in self.validators:
            v.validate(ctx=ctx, game=game)


_OPEN = frozenset({GameStatus.active, GameStatus.paused})

DEFAULT_ACTION_PIPELINES: dict[str, ValidatorPipeline] = {
    "view": ValidatorPipeline(validators=(ParticipantValidator(),)),
    "message": ValidatorPipeline(
        validators=(
            ParticipantValidator(),
            StatusValidator(allowed_statuses=frozenset({GameStatus.active})),
        )
    ),
    "roll": ValidatorPipeline(
        validators=(
            ParticipantValidator(),
            StatusValidator(allowed_statuses=frozenset({GameStatus.active})),
        )
    ),
    # Joining is open to anyone while the game is not completed.
    "join": ValidatorPipeline(validators=(StatusValidator(allowed_statuses=_OPEN),)),
    "leave": ValidatorPipeline(validators=(ParticipantValidator(),)),
    "delete": ValidatorPipeline(validators=(DungeonMasterValidator(),)),
    "update": ValidatorPipeline(validators=(DungeonMasterValidator(),)),
}


def pipeline_for_action(action: str) -> ValidatorPipeline:
    pipe = DEFAULT_ACTION_PIPELINES.get(action)
    if pipe is None:
        raise ValueError(f"Unknown action: {action}")
    return pipe


def validate_action(*, game: Game, user_id: UUID, action: str) -> None:
    ctx = ValidationContext(game_id=str(game.game_id), user_id=user_id, action=action)
    pipeline_for_action(action).validate(ctx=ctx, game=game)
