from __future__ import annotations

from uuid import UUID

import redis
from fastapi import APIRouter, Depends, HTTPException, status

from dungeon_ai.api.deps import get_current_user, get_redis, get_settings, http_error
from dungeon_ai.api.models import (
    Adventure,
    AdventureSummary,
    AuthResponse,
    Character,
    CharacterCreateRequest,
    CharacterUpdateRequest,
    LoginRequest,
    RegisterRequest,
    User,
    UserPublic,
)
from dungeon_ai.assets.singleton import get_assets
from dungeon_ai.auth import issue_token, login, register_user
from dungeon_ai.character_store import (
    create_character,
    delete_character,
    list_characters,
    require_owned_character,
    update_character,
)
from dungeon_ai.config import Settings
from dungeon_ai.errors import GameError

router = APIRouter()


def _public(user: User) -> UserPublic:
    return UserPublic.model_validate(user.model_dump(exclude={"password_hash"}))


# ---- auth ----


@router.post("/auth/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register_route(
    payload: RegisterRequest,
    r: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_settings),
) -> AuthResponse:
    try:
        user = register_user(r=r, username=payload.username, email=payload.email, password=payload.password)
    except GameError as e:
        raise http_error(e) from e
    token = issue_token(r=r, user=user, ttl_s=settings.token_ttl_s)
    return AuthResponse(token=token, user=_public(user))


@router.post("/auth/login", response_model=AuthResponse)
async def login_route(
    payload: LoginRequest,
    r: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_settings),
) -> AuthResponse:
    try:
        token, user = login(r=r, email=payload.email, password=payload.password, ttl_s=settings.token_ttl_s)
    except GameError as e:
        raise http_error(e) from e
    return AuthResponse(token=token, user=_public(user))


@router.get("/auth/me", response_model=UserPublic)
async def me_route(user: User = Depends(get_current_user)) -> UserPublic:
    return _public(user)


# ---- characters ----


@router.post("/characters", response_model=Character, status_code=status.HTTP_201_CREATED)
async def create_character_route(
    payload: CharacterCreateRequest,
    user: User = Depends(get_current_user),
    r: redis.Redis = Depends(get_redis),
) -> Character:
    return create_character(r=r, owner_id=user.user_id, payload=payload)


@router.get("/characters", response_model=list[Character])
async def list_characters_route(user: User = Depends(get_current_user), r: redis.Redis = Depends(get_redis)) -> list[Character]:
    return list_characters(r=r, owner_id=user.user_id)


@router.get("/characters/{character_id}", response_model=Character)
async def get_character_route(
    character_id: UUID,
    user: User = Depends(get_current_user),
    r: redis.Redis = Depends(get_redis),
) -> Character:
    try:
        return require_owned_character(r=r, character_id=character_id, owner_id=user.user_id)
    except GameError as e:
        raise http_error(e) from e


@router.patch("/characters/{character_id}", response_model=Character)
async def update_character_route(
    character_id: UUID,
    payload: CharacterUpdateRequest,
    user: User = Depends(get_current_user),
    r: redis.Redis = Depends(get_redis),
) -> Character:
    try:
        return update_character(r=r, character_id=character_id, owner_id=user.user_id, payload=payload)
    except GameError as e:
        raise http_error(e) from e


@router.delete("/characters/{character_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_character_route(
    character_id: UUID,
    user: User = Depends(get_current_user),
    r: redis.Redis = Depends(get_redis),
) -> None:
    try:
        delete_character(r=r, character_id=character_id, owner_id=user.user_id)
    except GameError as e:
        raise http_error(e) from e


# ---- adventures ----


@router.get("/adventures", response_model=list[AdventureSummary])
async def list_adventures_route() -> list[AdventureSummary]:
    return [AdventureSummary.model_validate(a.model_dump()) for a in get_assets().adventures.all()]


@router.get("/adventures/{adventure_id}", response_model=Adventure)
async def get_adventure_route(adventure_id: str) -> Adventure:
    adventure = get_assets().adventures.get(adventure_id)
    if adventure is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Adventure not found")
    return adventure
