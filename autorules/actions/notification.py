"""send_notification action."""

from typing import Any

from autorules.actions.base import ActionExecutor, ActionResult
from autorules.actions.channels.base import NotificationChannel, NotificationMessage
from autorules.core.errors import ActionError
from autorules.core.logging import get_logger
from autorules.models.execution import ExecutionContext
from autorules.models.rule import ActionKind

logger = get_logger(__name__)

DEFAULT_CHANNEL = "email"


def _recipients(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item]
    return [str(value)] if value else []


class SendNotificationExecutor(ActionExecutor):
    """Deliver a notification through one of the configured channels.

    Config keys: ``channel`` (default ``email``), ``to`` (string or list),
    ``subject`` and ``message``. When ``message`` is absent the body falls
    back to ``data.message`` and then to the subject. Values are delivered
    as given; placeholders are not substituted.
    """

    def __init__(self, channels: list[NotificationChannel]):
        self._channels = {channel.channel_type: channel for channel in channels}

    @property
    def action_kind(self) -> ActionKind:
        return ActionKind.SEND_NOTIFICATION

    async def execute(self, config: dict[str, Any], context: ExecutionContext) -> ActionResult:
        channel_type = config.get("channel", DEFAULT_CHANNEL)
        channel = self._channels.get(channel_type)
        if not channel:
            raise ActionError(
                f"Unsupported notification channel: {channel_type}",
                action_kind=self.action_kind.value,
            )

        recipients = _recipients(config.get("to"))
        if not recipients:
            raise ActionError("Notification has no recipients", action_kind=self.action_kind.value)

        data = config.get("data") if isinstance(config.get("data"), dict) else {}
        subject = str(config.get("subject") or data.get("title") or "")
        body = str(config.get("message") or data.get("message") or subject)

        message = NotificationMessage(
            recipients=recipients,
            subject=subject,
            body=body,
            execution_id=context.execution_id,
            metadata={"template": config.get("template"), "owner_id": context.owner_id},
        )

        if not await channel.send(message):
            raise ActionError(
                f"{channel_type} delivery failed",
                action_kind=self.action_kind.value,
                recipients=recipients,
            )

        return ActionResult(
            message=f"Notification sent via {channel_type} to {', '.join(recipients)}",
            details={"channel": channel_type, "recipients": recipients},
        )

    async def close(self) -> None:
        for channel in self._channels.values():
            await channel.close()
