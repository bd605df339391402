from __future__ import annotations

import logging
import secrets
from datetime import UTC, datetime
from uuid import UUID, uuid4

import bcrypt
import redis

from dungeon_ai.api.models import User
from dungeon_ai.errors import Conflict, InvalidRequest, Unauthorized

logger = logging.getLogger(__name__)

USER_KEY_PREFIX = "dungeon:user:"  # + {uuid}
USER_EMAIL_KEY_PREFIX = "dungeon:user_email:"  # + {casefolded email} -> uuid
USER_NAME_KEY_PREFIX = "dungeon:user_name:"  # + {casefolded username} -> uuid
TOKEN_KEY_PREFIX = "dungeon:token:"  # + {token} -> uuid


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _user_key(user_id: UUID) -> str:
    return f"{USER_KEY_PREFIX}{user_id}"


def _email_key(email: str) -> str:
    return f"{USER_EMAIL_KEY_PREFIX}{email.strip().casefold()}"


def _name_key(username: str) -> str:
    return f"{USER_NAME_KEY_PREFIX}{username.strip().casefold()}"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def get_user(*, r: redis.Redis, user_id: UUID) -> User | None:
    raw = r.get(_user_key(user_id))
    if not raw:
        return None
    return User.model_validate_json(raw)


def register_user(*, r: redis.Redis, username: str, email: str, password: str) -> User:
    username = username.strip()
    email = email.strip()
    if not username or not email:
        raise InvalidRequest("Username and email are required")

    user = User(
        user_id=uuid4(),
        username=username,
        email=email,
        password_hash=hash_password(password),
        created_at=_now(),
    )

    # Claim the unique email/username slots first; roll back on collision.
    if not r.set(_email_key(email), str(user.user_id), nx=True):
        raise Conflict("Email already registered")
    if not r.set(_name_key(username), str(user.user_id), nx=True):
        r.delete(_email_key(email))
        raise Conflict("Username already taken")

    r.set(_user_key(user.user_id), user.model_dump_json())
    logger.info("registered user %s", user.user_id)
    return user


def issue_token(*, r: redis.Redis, user: User, ttl_s: int) -> str:
    token = secrets.token_urlsafe(32)
    r.set(f"{TOKEN_KEY_PREFIX}{token}", str(user.user_id), ex=ttl_s)
    return token


def login(*, r: redis.Redis, email: str, password: str, ttl_s: int) -> tuple[str, User]:
    raw_id = r.get(_email_key(email))
    user = get_user(r=r, user_id=UUID(raw_id)) if raw_id else None
    if user is None or not verify_password(password, user.password_hash):
        logger.warning("login failed for email ending ...%s", email[-4:] if len(email) > 4 else "")
        raise Unauthorized("Invalid credentials")
    return issue_token(r=r, user=user, ttl_s=ttl_s), user


def user_for_token(*, r: redis.Redis, token: str) -> User:
    raw_id = r.get(f"{TOKEN_KEY_PREFIX}{token}")
    if not raw_id:
        raise Unauthorized("Invalid auth token")
    user = get_user(r=r, user_id=UUID(raw_id))
    if user is None:
        raise Unauthorized("Invalid auth token")
    return user
