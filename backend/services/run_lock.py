"""Redis lock that keeps reconciliation runs from overlapping."""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as redis

logger = logging.getLogger(__name__)

_LOCK_KEY = "bedheat:reconciliation-run"

# Delete the key only if we still own it.
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class RunLock:
    """Best-effort mutual exclusion for batch runs.

    Without a Redis client every acquisition succeeds; the per-user
    compare-and-set in :class:`~backend.services.profile_store.ProfileStore`
    still guards the bookkeeping rows.
    """

    def __init__(self, client: redis.Redis | None, *, ttl_seconds: int) -> None:
        self._client = client
        self._ttl = ttl_seconds

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[bool]:
        """Yield ``True`` when the lock was acquired, ``False`` if another run holds it."""
        if self._client is None:
            yield True
            return

        token = uuid.uuid4().hex
        try:
            acquired = bool(await self._client.set(_LOCK_KEY, token, nx=True, ex=self._ttl))
        except redis.RedisError as exc:
            logger.warning("Run lock unavailable (%s); continuing without it", exc)
            yield True
            return

        if not acquired:
            yield False
            return
        try:
            yield True
        finally:
            try:
                await self._client.eval(_RELEASE_SCRIPT, 1, _LOCK_KEY, token)
            except redis.RedisError as exc:
                logger.warning("Could not release run lock (%s); it expires in %ss", exc, self._ttl)


async def init_redis(url: str) -> redis.Redis | None:
    """Connect to Redis, returning ``None`` when it is not reachable."""
    if not url:
        return None
    try:
        client = redis.from_url(url, encoding="utf-8", decode_responses=True)
        await client.ping()
        logger.info("Redis connected - run lock enabled")
        return client
    except Exception as e:
        logger.warning("Redis connection failed (run lock disabled): %s", e)
        return None


__all__ = ["RunLock", "init_redis"]
