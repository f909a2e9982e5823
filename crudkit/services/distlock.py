"""Redis-backed mutual exclusion for jobs that run on several instances.

``run_locked`` is best-effort: the lock expires after its TTL even if the task
is still running, so tasks should finish well within it.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from typing import Any

import redis

from crudkit.core.config import settings

_LOG = logging.getLogger("crudkit.distlock")

LOCK_PREFIX = "lock:"

# Deletes the key only while it still holds this holder's token.
_RELEASE_SCRIPT = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
end
return 0
"""


def build_redis_client(url: str | None = None) -> redis.Redis:
    target = url if url is not None else settings.REDIS_URL
    if not target:
        _LOG.error("redis connection string is empty")
        raise ValueError("redis connection string is empty")

    client = redis.Redis.from_url(
        target,
        decode_responses=True,
        socket_connect_timeout=3,
        socket_timeout=3,
    )
    try:
        client.ping()
    except redis.RedisError:
        _LOG.exception("redis ping failed")
        client.close()
        raise

    kwargs = client.connection_pool.connection_kwargs
    _LOG.info("redis client ready host=%s port=%s db=%s", kwargs.get("host"), kwargs.get("port"), kwargs.get("db"))
    return client


def run_locked(client: redis.Redis, key: str, ttl_seconds: float, task: Callable[[], Any]) -> bool:
    """Run ``task`` while holding ``lock:<key>``; return False if another holder has it."""
    if ttl_seconds <= 0:
        task()
        return True
    if client is None:
        raise ValueError("redis client is required")

    lock_key = LOCK_PREFIX + key
    token = str(uuid.uuid4())
    acquired = client.set(lock_key, token, nx=True, px=max(int(ttl_seconds * 1000), 1))
    if not acquired:
        _LOG.debug("lock %s is held elsewhere", lock_key)
        return False

    try:
        task()
    finally:
        try:
            client.eval(_RELEASE_SCRIPT, 1, lock_key, token)
        except redis.RedisError:
            _LOG.warning("failed to release %s; it expires after %ss", lock_key, ttl_seconds)
    return True
