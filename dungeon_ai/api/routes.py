from __future__ import annotations

import json
import logging
from typing import Any
from uuid import UUID

import redis
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from fastapi.responses import JSONResponse

from dungeon_ai.actions import change_status, delete_game_as_dm, join_game, remove_character, roster_characters
from dungeon_ai.agents.base import GameAgents
from dungeon_ai.api.deps import get_agents, get_current_user, get_redis, get_settings, http_error
from dungeon_ai.api.models import (
    AddCharacterRequest,
    Game,
    GameCreateRequest,
    GameListResponse,
    GameStatusRequest,
    MessageRequest,
    RollRequest,
    RosterResponse,
    TurnResponse,
    User,
)
from dungeon_ai.config import Settings
from dungeon_ai.errors import GameError, NarratorUnavailable
from dungeon_ai.game_store import create_game, list_games, require_game
from dungeon_ai.turn_processing.turns import process_message_turn, process_roll_turn
from dungeon_ai.turn_processing.validators import validate_action
from dungeon_ai.websocket_hub import hub

logger = logging.getLogger(__name__)

router = APIRouter()


async def _game_updated(game_id: UUID, action: str) -> None:
    await hub.broadcast(str(game_id), {"event": "game_update", "game_id": str(game_id), "action": action})


def _narrator_unavailable_response(e: NarratorUnavailable) -> JSONResponse:
    body: dict[str, Any] = {
        "detail": e.description,
        "messages": [m.model_dump(mode="json") for m in e.messages],
    }
    if e.action_analysis is not None:
        body["action_analysis"] = e.action_analysis.model_dump(mode="json", by_alias=True)
    if e.roll is not None:
        body["roll"] = e.roll.model_dump(mode="json")
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)


@router.websocket("/ws")
async def game_updates_ws(websocket: WebSocket) -> None:
    """Room-based game updates.

    Client frames are JSON objects with an `event` key:
      - join_game {game_id}       -> {"event": "joined", "game_id": ...}
      - leave_game {game_id}      -> {"event": "left", "game_id": ...}
      - game_action {game_id, action} -> broadcast {"event": "game_update", ...} to the room
    """

    await hub.register(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                frame = None
            if not isinstance(frame, dict):
                await websocket.send_json({"event": "error", "detail": "Expected a JSON object"})
                continue

            event = frame.get("event")
            game_id = str(frame.get("game_id") or "")
            if event in {"join_game", "leave_game", "game_action"} and not game_id:
                await websocket.send_json({"event": "error", "detail": "game_id is required"})
                continue

            if event == "join_game":
                await hub.join(game_id, websocket)
                await websocket.send_json({"event": "joined", "game_id": game_id})
            elif event == "leave_game":
                await hub.leave(game_id, websocket)
                await websocket.send_json({"event": "left", "game_id": game_id})
            elif event == "game_action":
                await hub.broadcast(game_id, {"event": "game_update", "game_id": game_id, "action": frame.get("action")})
            else:
                await websocket.send_json({"event": "error", "detail": f"Unknown event: {event}"})
    except WebSocketDisconnect:
        await hub.disconnect(websocket)
    except Exception:
        await hub.disconnect(websocket)
        raise


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/games", response_model=Game, status_code=status.HTTP_201_CREATED)
async def create_game_route(
    payload: GameCreateRequest,
    user: User = Depends(get_current_user),
    r: redis.Redis = Depends(get_redis),
) -> Game:
    try:
        game = create_game(
            r=r,
            user=user,
            name=payload.name,
            description=payload.description,
            adventure_id=payload.adventure_id,
            character_id=payload.character_id,
        )
    except GameError as e:
        raise http_error(e) from e

    logger.info("game %s created by %s", game.game_id, user.user_id)
    return game


@router.get("/games", response_model=GameListResponse)
async def list_games_route(user: User = Depends(get_current_user), r: redis.Redis = Depends(get_redis)) -> GameListResponse:
    return GameListResponse(games=list_games(r=r, user_id=user.user_id))


@router.get("/games/{game_id}", response_model=Game)
async def get_game_route(
    game_id: UUID,
    user: User = Depends(get_current_user),
    r: redis.Redis = Depends(get_redis),
) -> Game:
    try:
        game = require_game(r=r, game_id=game_id)
        validate_action(game=game, user_id=user.user_id, action="view")
    except GameError as e:
        raise http_error(e) from e
    return game


@router.delete("/games/{game_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_game_route(
    game_id: UUID,
    user: User = Depends(get_current_user),
    r: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_settings),
) -> None:
    try:
        await delete_game_as_dm(r=r, game_id=game_id, user=user, settings=settings)
    except GameError as e:
        raise http_error(e) from e

    await _game_updated(game_id, "deleted")


@router.patch("/games/{game_id}/status", response_model=Game)
async def change_status_route(
    game_id: UUID,
    payload: GameStatusRequest,
    user: User = Depends(get_current_user),
    r: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_settings),
) -> Game:
    try:
        game = await change_status(r=r, game_id=game_id, user=user, status=payload.status, settings=settings)
    except GameError as e:
        raise http_error(e) from e

    await _game_updated(game_id, "status_changed")
    return game


@router.get("/games/{game_id}/characters", response_model=RosterResponse)
async def roster_route(
    game_id: UUID,
    user: User = Depends(get_current_user),
    r: redis.Redis = Depends(get_redis),
) -> RosterResponse:
    try:
        game = require_game(r=r, game_id=game_id)
        validate_action(game=game, user_id=user.user_id, action="view")
    except GameError as e:
        raise http_error(e) from e
    return RosterResponse(game_id=game.game_id, characters=roster_characters(r=r, game=game))


@router.post("/games/{game_id}/characters", response_model=RosterResponse)
async def join_game_route(
    game_id: UUID,
    payload: AddCharacterRequest,
    user: User = Depends(get_current_user),
    r: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_settings),
) -> RosterResponse:
    try:
        game = await join_game(r=r, game_id=game_id, user=user, character_id=payload.character_id, settings=settings)
    except GameError as e:
        raise http_error(e) from e

    await _game_updated(game_id, "roster_changed")
    return RosterResponse(game_id=game.game_id, characters=roster_characters(r=r, game=game))


@router.delete("/games/{game_id}/characters/{character_id}", response_model=RosterResponse)
async def remove_character_route(
    game_id: UUID,
    character_id: UUID,
    user: User = Depends(get_current_user),
    r: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_settings),
) -> RosterResponse:
    try:
        game = await remove_character(r=r, game_id=game_id, user=user, character_id=character_id, settings=settings)
    except GameError as e:
        raise http_error(e) from e

    await _game_updated(game_id, "roster_changed")
    return RosterResponse(game_id=game.game_id, characters=roster_characters(r=r, game=game))


@router.post("/games/{game_id}/message", response_model=TurnResponse)
async def message_route(
    game_id: UUID,
    payload: MessageRequest,
    user: User = Depends(get_current_user),
    r: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_settings),
    agents: GameAgents = Depends(get_agents),
) -> TurnResponse | JSONResponse:
    try:
        turn = await process_message_turn(
            r=r, game_id=game_id, user=user, text=payload.message, agents=agents, settings=settings
        )
    except GameError as e:
        raise http_error(e) from e
    except NarratorUnavailable as e:
        await _game_updated(game_id, "message")
        return _narrator_unavailable_response(e)

    await _game_updated(game_id, "message")
    return turn


@router.post("/games/{game_id}/roll", response_model=TurnResponse)
async def roll_route(
    game_id: UUID,
    payload: RollRequest,
    user: User = Depends(get_current_user),
    r: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_settings),
    agents: GameAgents = Depends(get_agents),
) -> TurnResponse | JSONResponse:
    try:
        turn = await process_roll_turn(r=r, game_id=game_id, user=user, request=payload, agents=agents, settings=settings)
    except GameError as e:
        raise http_error(e) from e
    except NarratorUnavailable as e:
        await _game_updated(game_id, "roll")
        return _narrator_unavailable_response(e)

    await _game_updated(game_id, "roll")
    return turn

