from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import uuid4

import redis
from redis.exceptions import LockNotOwnedError

from dungeon_ai.errors import GameBusy

logger = logging.getLogger(__name__)

# In-process locks; entries disappear once no coroutine holds a reference.
_LOCAL_LOCKS: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

_RETRY_DELAY_S = 0.05


def _local_lock(game_id: str) -> asyncio.Lock:
    lock = _LOCAL_LOCKS.get(game_id)
    if lock is None:
        lock = asyncio.Lock()
        _LOCAL_LOCKS[game_id] = lock
    return lock


def lock_key(game_id: str) -> str:
    return f"lock:game:{game_id}"


@asynccontextmanager
async def game_lock(*, r: redis.Redis, game_id: str, ttl_ms: int = 60_000, wait_s: float = 45.0) -> AsyncIterator[None]:
    """Serialize read-modify-write of one game document.

    Two layers:
    - an asyncio.Lock per game id, so coroutines in this process queue up
    - a redis-py `Lock` (`SET NX PX` with a unique token), so other API replicas wait too;
      release is an atomic compare-and-delete

    Raises GameBusy if either layer can't be acquired within `wait_s`.
    """

    local = _local_lock(game_id)
    try:
        await asyncio.wait_for(local.acquire(), timeout=wait_s)
    except TimeoutError as e:
        logger.warning("game %s: timed out waiting for local lock", game_id)
        raise GameBusy("Game is busy") from e

    # redis-py Lock: SET NX PX to acquire, Lua compare-and-delete to release.
    held = r.lock(lock_key(game_id), timeout=ttl_ms / 1000, thread_local=False)
    token = uuid4().hex
    try:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + wait_s
        while not held.acquire(blocking=False, token=token):
            if loop.time() >= deadline:
                logger.warning("game %s: timed out waiting for redis lock", game_id)
                raise GameBusy("Game is busy")
            await asyncio.sleep(_RETRY_DELAY_S)

        try:
            yield
        finally:
            try:
                held.release()
            except LockNotOwnedError:
                logger.warning("game %s: lock expired before release", game_id)
    finally:
        local.release()
