"""Background worker: scheduler, dispatcher, the inbound event consumer and
the rule change listener.

Run with ``python -m autorules.worker``.
"""

import asyncio
import signal

from autorules.core.logging import get_logger, setup_logging
from autorules.engine.service import AutomationService, create_service
from autorules.messaging.consumer import RabbitMQConsumer
from autorules.messaging.handler import MessageRouter
from autorules.messaging.rule_updates import RuleUpdateSubscriber
from autorules.storage.redis_client import close_redis_pool, get_redis, init_redis_pool

logger = get_logger(__name__)


class WorkerManager:
    """Owns the service and consumer for the lifetime of the process.

    The worker exits when ``stop`` is called or when the consumer or the
    rule change listener ends on its own, whichever happens first.
    """

    def __init__(self):
        self._service: AutomationService | None = None
        self._consumer: RabbitMQConsumer | None = None
        self._stopping = asyncio.Event()

    async def run(self) -> None:
        setup_logging()
        await init_redis_pool()

        self._service = create_service(get_redis())
        await self._service.start()
        self._consumer = RabbitMQConsumer(MessageRouter(self._service).handle_message)
        logger.info("Worker started", scheduled_rules=len(self._service.scheduler.scheduled_ids))

        subscriber = RuleUpdateSubscriber(get_redis(), self._service.apply_rule_change)
        consuming = asyncio.create_task(self._consume(), name="autorules-consumer")
        listening = asyncio.create_task(subscriber.run(), name="autorules-rule-updates")
        stopping = asyncio.create_task(self._stopping.wait(), name="autorules-stop")
        tasks = (consuming, listening, stopping)
        try:
            await asyncio.wait(set(tasks), return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            await self._shutdown()

    async def _consume(self) -> None:
        try:
            await self._consumer.start_consuming()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Consumer stopped with error", error=str(e), exc_info=True)

    def stop(self) -> None:
        logger.info("Worker stop requested")
        if self._consumer:
            self._consumer.stop()
        self._stopping.set()

    async def _shutdown(self) -> None:
        if self._consumer:
            await self._consumer.disconnect()
        if self._service:
            await self._service.stop()
        await close_redis_pool()
        logger.info("Worker stopped")


async def main() -> None:
    manager = WorkerManager()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, manager.stop)
    await manager.run()


if __name__ == "__main__":
    asyncio.run(main())
