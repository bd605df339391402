from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class GameWebSocketHub:
    """In-process WebSocket rooms keyed by game_id.

    Contract:
      - accept a connection with `register(websocket)`.
      - a connection may sit in several rooms: `join(game_id, ws)` / `leave(game_id, ws)`.
      - `disconnect(ws)` drops it from every room.
      - `broadcast(game_id, payload)` sends a JSON-serializable dict to the room.

    Rooms live in this process only; replicas do not see each other's sockets.
    """

    def __init__(self) -> None:
        self._by_game: dict[str, set[WebSocket]] = defaultdict(set)
        self._rooms_of: dict[WebSocket, set[str]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def register(self, websocket: WebSocket) -> None:
        await websocket.accept()

    async def join(self, game_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            self._by_game[game_id].add(websocket)
            self._rooms_of[websocket].add(game_id)

    async def leave(self, game_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            self._discard(game_id, websocket)

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            for game_id in list(self._rooms_of.get(websocket, set())):
                self._discard(game_id, websocket)
            self._rooms_of.pop(websocket, None)

    def _discard(self, game_id: str, websocket: WebSocket) -> None:
        conns = self._by_game.get(game_id)
        if conns is not None:
            conns.discard(websocket)
            if not conns:
                self._by_game.pop(game_id, None)
        rooms = self._rooms_of.get(websocket)
        if rooms is not None:
            rooms.discard(game_id)
            if not rooms:
                self._rooms_of.pop(websocket, None)

    def room_size(self, game_id: str) -> int:
        return len(self._by_game.get(game_id, ()))

    async def broadcast(self, game_id: str, payload: dict[str, object]) -> None:
        async with self._lock:
            conns = list(self._by_game.get(game_id, set()))
        if not conns:
            return

        results = await asyncio.gather(*(ws.send_json(payload) for ws in conns), return_exceptions=True)
        dead = [ws for ws, res in zip(conns, results) if isinstance(res, Exception)]
        if dead:
            logger.debug("game %s: dropping %d dead websocket(s)", game_id, len(dead))
            async with self._lock:
                for ws in dead:
                    self._discard(game_id, ws)


hub = GameWebSocketHub()
