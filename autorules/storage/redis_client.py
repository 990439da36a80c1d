"""Process-wide Redis pool and the key layout of the rule and calendar stores."""

import redis.asyncio as redis
from redis.asyncio import Redis

from autorules.core.config import get_settings

_pool: redis.ConnectionPool | None = None


async def init_redis_pool() -> None:
    """Create the shared pool; a second call is a no-op."""
    global _pool
    if _pool is not None:
        return
    _pool = redis.ConnectionPool.from_url(
        get_settings().redis_url,
        decode_responses=True,
        max_connections=20,
    )


async def close_redis_pool() -> None:
    global _pool
    if _pool is None:
        return
    await _pool.disconnect()
    _pool = None


def get_redis() -> Redis:
    """Client bound to the shared pool.

    Raises:
        RuntimeError: ``init_redis_pool`` has not run in this process
    """
    if _pool is None:
        raise RuntimeError("Redis pool is not initialized; call init_redis_pool() at startup")
    return redis.Redis(connection_pool=_pool)


class RedisKeys:
    """Key names.

    Each rule is a hash under ``rule_detail`` whose ``config`` field holds
    the JSON document; per-owner and global sets index the ids. Every write
    bumps ``RULE_VERSION`` and publishes a change notice on
    ``RULE_UPDATE_CHANNEL``.
    """

    RULE_DETAIL = "automation:rules:detail:{rule_id}"
    RULE_OWNER = "automation:rules:owner:{owner_id}"
    RULE_ALL = "automation:rules:all"
    RULE_VERSION = "automation:rules:version"
    RULE_UPDATE_CHANNEL = "automation:rules:update"

    CALENDAR_ENTRY = "automation:calendar:entry:{entry_id}"
    CALENDAR_OWNER = "automation:calendar:owner:{owner_id}"

    @classmethod
    def rule_detail(cls, rule_id: str) -> str:
        return cls.RULE_DETAIL.format(rule_id=rule_id)

    @classmethod
    def rule_owner(cls, owner_id: str) -> str:
        return cls.RULE_OWNER.format(owner_id=owner_id)

    @classmethod
    def calendar_entry(cls, entry_id: str) -> str:
        return cls.CALENDAR_ENTRY.format(entry_id=entry_id)

    @classmethod
    def calendar_owner(cls, owner_id: str) -> str:
        return cls.CALENDAR_OWNER.format(owner_id=owner_id)
