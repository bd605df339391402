from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dungeon_ai.api.models import ActionAnalysis, Message, RollResult


class GameError(ValueError):
    """Domain error that maps onto an HTTP status code.

    Store and service functions raise these; route handlers translate them
    with `dungeon_ai.api.deps.http_error`.
    """

    status_code: int = 400


class InvalidRequest(GameError):
    status_code = 400


class Unauthorized(GameError):
    status_code = 401


class AccessDenied(GameError):
    status_code = 403


class NotFound(GameError):
    status_code = 404


class Conflict(GameError):
    status_code = 409


class GameBusy(Conflict):
    pass


class NarratorError(RuntimeError):
    """Upstream model failure, already reduced to a client-safe description."""

    def __init__(self, description: str) -> None:
        super().__init__(description)
        self.description = description


class NarratorUnavailable(RuntimeError):
    """A turn whose narration failed after the player's message was persisted."""

    def __init__(self, description: str, *, messages: list[Message]) -> None:
        super().__init__(description)
        self.description = description
        self.messages = messages
        # Filled in by the turn processor so the error body can echo them.
        self.action_analysis: ActionAnalysis | None = None
        self.roll: RollResult | None = None
