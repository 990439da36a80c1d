"""RabbitMQ consumer for inbound automation messages."""

import json
from typing import Any, Callable, Coroutine

import aio_pika
from aio_pika import IncomingMessage
from aio_pika.abc import AbstractRobustConnection

from autorules.core.config import get_settings
from autorules.core.logging import get_logger

logger = get_logger(__name__)

# Receives the decoded JSON body of each message
MessageHandler = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]


def decode_message(raw: bytes) -> dict[str, Any] | None:
    """Decode a message body; None when it is not a typed JSON object."""
    try:
        body = json.loads(raw.decode())
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Undecodable message body", error=str(e))
        return None

    if not isinstance(body, dict) or not body.get("type"):
        logger.warning("Message is not a typed object", body_type=type(body).__name__)
        return None
    return body


class RabbitMQConsumer:
    """Consume ``settings.rabbitmq_queue`` and hand each message to a handler.

    Every message is acknowledged once handled. Undecodable messages and
    handler failures are logged and dropped; they are never requeued, so a
    poison message cannot block the queue.
    """

    def __init__(self, handler: MessageHandler):
        self._settings = get_settings()
        self._handler = handler
        self._connection: AbstractRobustConnection | None = None
        self._should_stop = False

    async def connect(self) -> None:
        self._connection = await aio_pika.connect_robust(
            self._settings.rabbitmq_url,
            reconnect_interval=5,
        )
        logger.info("Connected to RabbitMQ", queue=self._settings.rabbitmq_queue)

    async def disconnect(self) -> None:
        if self._connection:
            await self._connection.close()
            self._connection = None
            logger.info("Disconnected from RabbitMQ")

    async def start_consuming(self) -> None:
        """Consume until ``stop`` is called or the task is cancelled."""
        if not self._connection:
            await self.connect()

        channel = await self._connection.channel()
        await channel.set_qos(prefetch_count=self._settings.rabbitmq_prefetch)
        queue = await channel.declare_queue(self._settings.rabbitmq_queue, durable=True)

        async with queue.iterator() as messages:
            async for message in messages:
                await self._handle(message)
                if self._should_stop:
                    break

    async def _handle(self, message: IncomingMessage) -> None:
        async with message.process(requeue=False):
            body = decode_message(message.body)
            if body is None:
                return

            try:
                await self._handler(body)
            except Exception as e:
                logger.error(
                    "Message handler failed",
                    message_id=message.message_id,
                    message_type=body.get("type"),
                    error=str(e),
                    exc_info=True,
                )

    def stop(self) -> None:
        self._should_stop = True
        logger.info("Consumer stop requested")
