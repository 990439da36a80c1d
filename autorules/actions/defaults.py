"""Default executor set wired to the configured backends."""

from redis.asyncio import Redis

from autorules.actions.base import ActionExecutor
from autorules.actions.calendar import CreateCalendarEntryExecutor, UpdateCalendarEntryExecutor
from autorules.actions.channels.email import EmailChannel
from autorules.actions.channels.telegram import TelegramChannel
from autorules.actions.notification import SendNotificationExecutor
from autorules.actions.wait import WaitExecutor
from autorules.actions.webhook import WebhookCallExecutor
from autorules.models.rule import ActionKind
from autorules.storage.calendar_store import CalendarStore


def build_default_executors(redis: Redis | None = None) -> dict[ActionKind, ActionExecutor]:
    """Create one executor per action kind (conditional is built into the pipeline)."""
    calendar_store = CalendarStore(redis)
    executors: list[ActionExecutor] = [
        SendNotificationExecutor([EmailChannel(), TelegramChannel()]),
        CreateCalendarEntryExecutor(calendar_store),
        UpdateCalendarEntryExecutor(calendar_store),
        WebhookCallExecutor(),
        WaitExecutor(),
    ]
    return {executor.action_kind: executor for executor in executors}
