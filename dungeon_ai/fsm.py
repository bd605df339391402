from __future__ import annotations

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from dungeon_ai.api.models import Game, GameStatus
from dungeon_ai.errors import InvalidRequest


class GameStatusFSM(StateMachine):
    """FSM wrapper around Game.status.

    - active <-> paused
    - active | paused -> completed (final)

    The service layer mutates the game; the FSM only guards transitions.
    """

    active = State(GameStatus.active.value, value=GameStatus.active.value, initial=True)
    paused = State(GameStatus.paused.value, value=GameStatus.paused.value)
    completed = State(GameStatus.completed.value, value=GameStatus.completed.value, final=True)

    pause = active.to(paused)
    resume = paused.to(active)
    complete = active.to(completed) | paused.to(completed)

    def __init__(self, game: Game):
        self.game = game
        super().__init__(start_value=game.status.value)

    def sync_status_to_model(self) -> None:
        self.game.status = GameStatus(str(self.current_state.value))


_EVENT_FOR_TARGET: dict[GameStatus, str] = {
    GameStatus.paused: "pause",
    GameStatus.active: "resume",
    GameStatus.completed: "complete",
}


def transition_status(*, game: Game, target: GameStatus) -> None:
    """Move `game` to `target`, or raise InvalidRequest if the FSM forbids it."""

    fsm = GameStatusFSM(game)
    try:
        fsm.send(_EVENT_FOR_TARGET[target])
    except TransitionNotAllowed as e:
        raise InvalidRequest(f"Cannot change game status from '{game.status.value}' to '{target.value}'") from e
    fsm.sync_status_to_model()
