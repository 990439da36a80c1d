"""Calendar entry storage used by the calendar actions."""

import uuid
from typing import Any, Protocol

from redis.asyncio import Redis
from redis.exceptions import RedisError

from autorules.core.errors import StoreUnavailableError
from autorules.models.calendar import CalendarEntry
from autorules.models.rule import utcnow
from autorules.storage.redis_client import RedisKeys, get_redis


class CalendarStoreProtocol(Protocol):
    async def create(self, entry: CalendarEntry) -> str: ...

    async def get(self, entry_id: str) -> CalendarEntry | None: ...

    async def update(self, entry_id: str, updates: dict[str, Any]) -> CalendarEntry | None: ...


class CalendarStore:
    """Calendar entries stored as JSON strings in Redis."""

    def __init__(self, redis: Redis | None = None):
        self._redis = redis

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    async def create(self, entry: CalendarEntry) -> str:
        entry_id = entry.entry_id or f"cal_{uuid.uuid4().hex[:12]}"
        stored = entry.model_copy(update={"entry_id": entry_id})
        try:
            await self.redis.set(RedisKeys.calendar_entry(entry_id), stored.model_dump_json())
            await self.redis.sadd(RedisKeys.calendar_owner(stored.owner_id), entry_id)
        except RedisError as e:
            raise StoreUnavailableError("calendar.create", e) from e
        return entry_id

    async def get(self, entry_id: str) -> CalendarEntry | None:
        try:
            data = await self.redis.get(RedisKeys.calendar_entry(entry_id))
        except RedisError as e:
            raise StoreUnavailableError("calendar.get", e) from e
        if not data:
            return None
        return CalendarEntry.model_validate_json(data)

    async def update(self, entry_id: str, updates: dict[str, Any]) -> CalendarEntry | None:
        """Merge updates into an entry.

        Returns:
            Updated entry, or None when it does not exist
        """
        existing = await self.get(entry_id)
        if not existing:
            return None

        merged = existing.model_dump()
        merged.update(updates)
        merged["entry_id"] = entry_id
        merged["updated_at"] = utcnow()
        updated = CalendarEntry.model_validate(merged)

        try:
            await self.redis.set(RedisKeys.calendar_entry(entry_id), updated.model_dump_json())
        except RedisError as e:
            raise StoreUnavailableError("calendar.update", e) from e
        return updated
