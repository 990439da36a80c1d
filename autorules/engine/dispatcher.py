"""Work queue between rule triggers and pipeline workers."""

import asyncio
from dataclasses import dataclass, field
from typing import Any

from autorules.core.config import get_settings
from autorules.core.logging import get_logger
from autorules.engine.pipeline import PipelineExecutor
from autorules.engine.registry import RuleRegistry
from autorules.models.execution import ExecutionContext
from autorules.observability.metrics import DISPATCH_QUEUE_LENGTH

logger = get_logger(__name__)


@dataclass(frozen=True)
class ExecutionTask:
    """A request to run one rule."""

    rule_id: str
    trigger_data: dict[str, Any] = field(default_factory=dict)
    source: str = "event"


class RuleDispatcher:
    """Queue of rule executions consumed by a pool of worker tasks.

    The rule is resolved when a worker picks the task up, so a rule disabled
    or deleted after it was queued is skipped rather than run.
    """

    def __init__(
        self,
        registry: RuleRegistry,
        pipeline: PipelineExecutor,
        workers: int | None = None,
        maxsize: int | None = None,
    ):
        settings = get_settings()
        self._registry = registry
        self._pipeline = pipeline
        self._worker_count = workers or settings.dispatch_workers
        self._queue: asyncio.Queue[ExecutionTask] = asyncio.Queue(
            maxsize=settings.dispatch_queue_size if maxsize is None else maxsize,
        )
        self._workers: list[asyncio.Task] = []

    @property
    def is_running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        """Start the worker tasks. Must be called inside a running loop."""
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"rule-worker-{i}")
            for i in range(self._worker_count)
        ]
        logger.info("Dispatcher started", workers=self._worker_count)

    async def stop(self) -> None:
        """Cancel the workers. Queued tasks that have not started are dropped."""
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        if self._workers:
            logger.info("Dispatcher stopped", dropped=self._queue.qsize())
        self._workers = []

    async def submit(self, task: ExecutionTask) -> None:
        """Queue a rule execution (waits while the queue is full)."""
        await self._queue.put(task)
        DISPATCH_QUEUE_LENGTH.set(self._queue.qsize())
        logger.debug("Rule execution queued", rule_id=task.rule_id, source=task.source)

    async def drain(self) -> None:
        """Wait until every queued task has been processed."""
        await self._queue.join()

    async def _worker(self, index: int) -> None:
        while True:
            task = await self._queue.get()
            DISPATCH_QUEUE_LENGTH.set(self._queue.qsize())
            try:
                await self._process(task)
            except Exception as e:
                logger.error(
                    "Worker error",
                    worker=index,
                    rule_id=task.rule_id,
                    error=str(e),
                    exc_info=True,
                )
            finally:
                self._queue.task_done()

    async def _process(self, task: ExecutionTask) -> None:
        rule = await self._registry.get(task.rule_id)
        if rule is None:
            logger.info("Queued rule no longer exists", rule_id=task.rule_id)
            return

        context = ExecutionContext(owner_id=rule.owner_id, trigger_data=task.trigger_data)
        await self._pipeline.run(rule, context)
