from __future__ import annotations

from collections.abc import Generator

import redis
from fastapi import Depends, Header, HTTPException, status

from dungeon_ai.agents.base import GameAgents
from dungeon_ai.agents.factory import create_game_agents
from dungeon_ai.api.models import User
from dungeon_ai.auth import user_for_token
from dungeon_ai.config import Settings
from dungeon_ai.config import get_settings as _get_settings
from dungeon_ai.errors import GameError, Unauthorized
from dungeon_ai.infra.redis_client import create_redis


def get_redis() -> Generator[redis.Redis, None, None]:
    client = create_redis()
    try:
        yield client
    finally:
        client.close()


def get_settings() -> Settings:
    return _get_settings()


def get_agents(settings: Settings = Depends(get_settings)) -> GameAgents:
    return create_game_agents(settings)


def http_error(e: GameError) -> HTTPException:
    headers = {"WWW-Authenticate": "Bearer"} if e.status_code == status.HTTP_401_UNAUTHORIZED else None
    return HTTPException(status_code=e.status_code, detail=str(e), headers=headers)


def bearer_token(authorization: str | None) -> str:
    """Extract the token from an `Authorization: Bearer <token>` header."""

    if not authorization:
        raise Unauthorized("Missing auth token")
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthorized("Invalid auth header")
    return token.strip()


def get_current_user(
    authorization: str | None = Header(default=None),
    r: redis.Redis = Depends(get_redis),
) -> User:
    try:
        return user_for_token(r=r, token=bearer_token(authorization))
    except GameError as e:
        raise http_error(e) from e
