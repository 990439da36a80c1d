"""Redis pub/sub listener for rule changes made by other processes.

``RuleStore`` publishes ``{"action", "rule_id", "timestamp"}`` on
``RedisKeys.RULE_UPDATE_CHANNEL`` after every write. The API and the worker
each keep their own registry, so each subscribes and re-reads changed rules.
"""

import json
from typing import Any, Awaitable, Callable

from redis.asyncio import Redis

from autorules.core.logging import get_logger
from autorules.storage.redis_client import RedisKeys

logger = get_logger(__name__)

RuleChangeHandler = Callable[[str], Awaitable[Any]]


def decode_rule_update(data: Any) -> str | None:
    """Rule id carried by a change notice, or None for malformed notices."""
    if isinstance(data, bytes):
        data = data.decode(errors="replace")
    try:
        notice = json.loads(data)
    except (TypeError, json.JSONDecodeError):
        logger.warning("Malformed rule change notice", data=str(data)[:200])
        return None
    if not isinstance(notice, dict) or not isinstance(notice.get("rule_id"), str):
        return None
    return notice["rule_id"]


class RuleUpdateSubscriber:
    """Feeds rule ids from ``RULE_UPDATE_CHANNEL`` to a handler until cancelled."""

    def __init__(self, redis: Redis, on_change: RuleChangeHandler):
        self._redis = redis
        self._on_change = on_change

    async def run(self) -> None:
        pubsub = self._redis.pubsub(ignore_subscribe_messages=True)
        await pubsub.subscribe(RedisKeys.RULE_UPDATE_CHANNEL)
        logger.info("Listening for rule changes", channel=RedisKeys.RULE_UPDATE_CHANNEL)
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                await self.handle(message.get("data"))
        finally:
            await pubsub.unsubscribe(RedisKeys.RULE_UPDATE_CHANNEL)
            await pubsub.aclose()

    async def handle(self, data: Any) -> None:
        rule_id = decode_rule_update(data)
        if rule_id is None:
            return
        try:
            await self._on_change(rule_id)
        except Exception as e:
            logger.error("Failed to apply rule change", rule_id=rule_id, error=str(e), exc_info=True)
