from __future__ import annotations

from dungeon_ai.websocket_hub import GameWebSocketHub


class FakeSocket:
    def __init__(self, *, broken: bool = False) -> None:
        self.sent: list[dict[str, object]] = []
        self.broken = broken

    async def accept(self) -> None:
        return None

    async def send_json(self, payload: dict[str, object]) -> None:
        if self.broken:
            raise RuntimeError("socket closed")
        self.sent.append(payload)


async def test_socket_can_sit_in_several_rooms() -> None:
    hub = GameWebSocketHub()
    ws = FakeSocket()
    await hub.register(ws)  # type: ignore[arg-type]
    await hub.join("a", ws)  # type: ignore[arg-type]
    await hub.join("b", ws)  # type: ignore[arg-type]

    await hub.broadcast("a", {"n": 1})
    await hub.broadcast("b", {"n": 2})
    assert ws.sent == [{"n": 1}, {"n": 2}]

    await hub.leave("a", ws)  # type: ignore[arg-type]
    await hub.broadcast("a", {"n": 3})
    assert ws.sent == [{"n": 1}, {"n": 2}]

    await hub.disconnect(ws)  # type: ignore[arg-type]
    assert hub.room_size("b") == 0


async def test_dead_sockets_are_dropped() -> None:
    hub = GameWebSocketHub()
    good, bad = FakeSocket(), FakeSocket(broken=True)
    await hub.join("a", good)  # type: ignore[arg-type]
    await hub.join("a", bad)  # type: ignore[arg-type]

    await hub.broadcast("a", {"n": 1})

    assert good.sent == [{"n": 1}]
    assert hub.room_size("a") == 1
