"""Routing of queue messages to the automation service."""

from typing import Any

from pydantic import ValidationError

from autorules.core.logging import get_logger
from autorules.engine.service import AutomationService
from autorules.models.event import EmailEvent, ManualInvocation
from autorules.observability.metrics import EVENTS_RECEIVED

logger = get_logger(__name__)


class MessageRouter:
    """Dispatch decoded queue messages by their ``type`` field.

    Supported messages:
    - ``{"type": "email", "owner_id", "subject", "body", "from"}``
    - ``{"type": "manual", "rule_id", "trigger_data", "owner_id"?}``
    """

    def __init__(self, service: AutomationService):
        self._service = service

    async def handle_message(self, body: dict[str, Any]) -> None:
        message_type = body.get("type")
        payload = {key: value for key, value in body.items() if key != "type"}

        try:
            if message_type == "email":
                await self._handle_email(EmailEvent.model_validate(payload))
            elif message_type == "manual":
                await self._handle_manual(ManualInvocation.model_validate(payload))
            else:
                logger.warning("Unknown message type", message_type=message_type)
        except ValidationError as e:
            logger.warning(
                "Invalid message payload",
                message_type=message_type,
                errors=e.errors(include_url=False, include_input=False),
            )

    async def _handle_email(self, event: EmailEvent) -> None:
        matched = await self._service.process_email(event)
        logger.info("Email message processed", owner_id=event.owner_id, matched=matched)

    async def _handle_manual(self, invocation: ManualInvocation) -> None:
        EVENTS_RECEIVED.labels(source="manual").inc()
        result = await self._service.execute_rule(
            invocation.rule_id,
            trigger_data=invocation.trigger_data,
            owner_id=invocation.owner_id,
        )
        logger.info(
            "Manual invocation processed",
            rule_id=invocation.rule_id,
            success=result.success,
            message=result.message,
        )
