from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest


@pytest.fixture(scope="session", autouse=True)
def _load_dotenv_for_tests() -> None:
    """Load repo .env for local runs.

    In CI we don't auto-load `.env` unless DUNGEON_AI_LOAD_DOTENV_FOR_TESTS=1.
    Only test_ag2_integration.py reaches a real model; the rest use the scripted agents below.
    """

    if os.environ.get("CI") and os.environ.get("DUNGEON_AI_LOAD_DOTENV_FOR_TESTS") != "1":
        return

    env_path = Path(__file__).resolve().parents[1] / ".env"
    if env_path.exists():
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=env_path, override=False)


@pytest.fixture(scope="session", autouse=True)
def _init_assets_from_test_fixtures() -> None:
    """Initialize assets from `tests/assets` and forbid production asset loading."""

    os.environ["DUNGEON_AI_STRICT_ASSETS"] = "1"

    from dungeon_ai.assets.singleton import init_assets, reset_assets_for_tests

    reset_assets_for_tests()

    # Point the asset loader at a fake project root: tests/ contains an assets/ dir.
    test_root = Path(__file__).resolve().parent
    init_assets(project_root=test_root)


@dataclass
class ScriptedAgent:
    """Fake agent returning queued replies in order.

    A queued Exception is raised instead of returned. When the queue is empty
    the `default` reply is used. Every call is recorded in `calls`.
    """

    name: str
    default: str = ""
    replies: list[Any] = field(default_factory=list)
    calls: list[dict[str, Any]] = field(default_factory=list)
    delay_s: float = 0.0

    def queue(self, *replies: Any) -> None:
        self.replies.extend(replies)

    async def propose_action(self, *, prompt, ctx, structured_output=None, history=None):  # type: ignore[no-untyped-def]
        from dungeon_ai.agents.base import AgentAction

        self.calls.append({"prompt": prompt, "ctx": ctx, "history": list(history or [])})
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, BaseException):
            raise reply
        return AgentAction(kind="chat", content=reply)


@pytest.fixture()
def agents():
    from dungeon_ai.agents.base import GameAgents

    return GameAgents(
        narrator=ScriptedAgent(name="dungeon_master", default='{"narration": "The story continues."}'),
        analyzer=ScriptedAgent(name="action_analyzer", default='{"needsRoll": false}'),
    )


@pytest.fixture()
def redis_client():
    import fakeredis

    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def client_and_redis(agents, redis_client):
    """FastAPI TestClient wired to fakeredis and the scripted agents."""

    from fastapi.testclient import TestClient

    from dungeon_ai.api.deps import get_agents, get_redis
    from dungeon_ai.main import app

    def _override() -> Generator[Any, None, None]:
        yield redis_client

    app.dependency_overrides[get_redis] = _override
    app.dependency_overrides[get_agents] = lambda: agents
    with TestClient(app) as c:
        yield c, redis_client
    app.dependency_overrides.clear()


@pytest.fixture()
def client(client_and_redis):
    c, _ = client_and_redis
    return c


@pytest.fixture()
def register(client) -> Callable[..., dict[str, Any]]:
    """Register a user and return {"headers", "user", "token"}."""

    def _register(username: str, *, password: str = "hunter22") -> dict[str, Any]:
        res = client.post(
            "/auth/register",
            json={"username": username, "email": f"{username}@example.com", "password": password},
        )
        assert res.status_code == 201, res.text
        body = res.json()
        return {"headers": {"Authorization": f"Bearer {body['token']}"}, "user": body["user"], "token": body["token"]}

    return _register


def character_payload(name: str = "Thorin", **stats: int) -> dict[str, Any]:
    scores = {
        "strength": 10,
        "dexterity": 10,
        "constitution": 10,
        "intelligence": 10,
        "wisdom": 10,
        "charisma": 10,
    }
    scores.update(stats)
    return {"name": name, "race": "Dwarf", "class": "Fighter", "level": 1, "stats": scores}


@pytest.fixture()
def make_character(client) -> Callable[..., dict[str, Any]]:
    def _make(headers: dict[str, str], name: str = "Thorin", **stats: int) -> dict[str, Any]:
        res = client.post("/characters", json=character_payload(name, **stats), headers=headers)
        assert res.status_code == 201, res.text
        return res.json()

    return _make
