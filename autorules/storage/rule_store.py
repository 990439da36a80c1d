"""Rule storage operations."""

import json
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Protocol

from redis.asyncio import Redis
from redis.exceptions import RedisError

from autorules.core.errors import StoreUnavailableError
from autorules.models.rule import Rule, generate_rule_id
from autorules.storage.redis_client import RedisKeys, get_redis


class RuleStoreProtocol(Protocol):
    """Durable keyed-document interface the registry relies on."""

    async def create(self, rule: Rule) -> str: ...

    async def find_by_id(self, rule_id: str) -> Rule | None: ...

    async def find_by_owner(self, owner_id: str) -> list[Rule]: ...

    async def find_all(self) -> list[Rule]: ...

    async def update_by_id(self, rule_id: str, patch: dict[str, Any]) -> bool: ...

    async def delete_by_id(self, rule_id: str) -> bool: ...


@asynccontextmanager
async def _store_operation(operation: str) -> AsyncIterator[None]:
    """Translate Redis failures into StoreUnavailableError."""
    try:
        yield
    except RedisError as e:
        raise StoreUnavailableError(operation, e) from e


class RuleStore:
    """Rule storage operations using Redis."""

    def __init__(self, redis: Redis | None = None):
        self._redis = redis

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    async def create(self, rule: Rule) -> str:
        """Persist a new rule.

        Args:
            rule: Rule to create; an id is generated when it has none

        Returns:
            Stored rule id
        """
        rule_id = rule.id or generate_rule_id()
        stored = rule.model_copy(update={"id": rule_id})

        async with _store_operation("create"):
            await self._write(stored)
            await self.redis.sadd(RedisKeys.RULE_ALL, rule_id)
            await self.redis.sadd(RedisKeys.rule_owner(stored.owner_id), rule_id)
            await self._publish_update("create", rule_id)

        return rule_id

    async def find_by_id(self, rule_id: str) -> Rule | None:
        """Get a rule by ID.

        Returns:
            Rule if found, None otherwise
        """
        async with _store_operation("find_by_id"):
            data = await self.redis.hget(RedisKeys.rule_detail(rule_id), "config")
        if not data:
            return None
        return Rule.model_validate_json(data)

    async def find_by_owner(self, owner_id: str) -> list[Rule]:
        """List all rules belonging to one owner, oldest first."""
        async with _store_operation("find_by_owner"):
            rule_ids = await self.redis.smembers(RedisKeys.rule_owner(owner_id))
        return await self._load_many(rule_ids)

    async def find_all(self) -> list[Rule]:
        """List every stored rule, oldest first."""
        async with _store_operation("find_all"):
            rule_ids = await self.redis.smembers(RedisKeys.RULE_ALL)
        return await self._load_many(rule_ids)

    async def update_by_id(self, rule_id: str, patch: dict[str, Any]) -> bool:
        """Apply a partial update to a stored rule.

        Args:
            rule_id: Rule ID to update
            patch: Field values to overwrite

        Returns:
            True if updated, False if the rule does not exist
        """
        existing = await self.find_by_id(rule_id)
        if not existing:
            return False

        merged = existing.model_dump()
        merged.update(patch)
        merged["id"] = rule_id
        merged["owner_id"] = existing.owner_id
        updated = Rule.model_validate(merged)

        async with _store_operation("update_by_id"):
            await self._write(updated)
            await self._publish_update("update", rule_id)
        return True

    async def delete_by_id(self, rule_id: str) -> bool:
        """Delete a rule.

        Returns:
            True if deleted, False if not found
        """
        existing = await self.find_by_id(rule_id)
        if not existing:
            return False

        async with _store_operation("delete_by_id"):
            await self.redis.srem(RedisKeys.rule_owner(existing.owner_id), rule_id)
            await self.redis.srem(RedisKeys.RULE_ALL, rule_id)
            await self.redis.delete(RedisKeys.rule_detail(rule_id))
            await self._publish_update("delete", rule_id)
        return True

    async def _write(self, rule: Rule) -> None:
        await self.redis.hset(
            RedisKeys.rule_detail(rule.id),
            mapping={
                "config": rule.model_dump_json(),
                "owner_id": rule.owner_id,
                "enabled": str(rule.enabled).lower(),
                "execution_count": str(rule.execution_count),
                "created_at": str(int(rule.created_at.timestamp() * 1000)),
            },
        )

    async def _load_many(self, rule_ids: set[str]) -> list[Rule]:
        rules = []
        for rule_id in rule_ids:
            rule = await self.find_by_id(rule_id)
            if rule:
                rules.append(rule)
        rules.sort(key=lambda r: r.created_at)
        return rules

    async def _publish_update(self, action: str, rule_id: str) -> None:
        """Bump the rules version and notify other instances."""
        await self.redis.incr(RedisKeys.RULE_VERSION)

        message = json.dumps({
            "action": action,
            "rule_id": rule_id,
            "timestamp": int(datetime.now(timezone.utc).timestamp() * 1000),
        })
        await self.redis.publish(RedisKeys.RULE_UPDATE_CHANNEL, message)
