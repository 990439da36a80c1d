"""Automation service: the surface used by the API and the worker."""

from typing import Any

from redis.asyncio import Redis

from autorules.actions.base import ActionExecutor
from autorules.actions.defaults import build_default_executors
from autorules.core.errors import RuleNotFoundError
from autorules.core.logging import get_logger
from autorules.engine.dispatcher import RuleDispatcher
from autorules.engine.ledger import ExecutionLedger
from autorules.engine.matcher import TriggerMatcher
from autorules.engine.pipeline import PipelineExecutor
from autorules.engine.registry import DeleteOutcome, RuleRegistry
from autorules.engine.scheduler import RuleScheduler
from autorules.engine.templates import RuleTemplate, get_template, list_templates
from autorules.models.event import EmailEvent
from autorules.models.execution import (
    ExecutionContext,
    ExecutionRecord,
    ExecutionResult,
    ExecutionStatus,
)
from autorules.models.rule import ActionKind, Rule
from autorules.storage.rule_store import RuleStore, RuleStoreProtocol

logger = get_logger(__name__)

# Fields callers may change through update_rule
EDITABLE_FIELDS = frozenset({"name", "description", "trigger", "actions", "enabled"})


class AutomationService:
    """Owns the registry, ledger, pipeline, dispatcher, matcher and scheduler."""

    def __init__(
        self,
        registry: RuleRegistry,
        executors: dict[ActionKind, ActionExecutor],
        ledger: ExecutionLedger | None = None,
        dispatch_workers: int | None = None,
        scheduler_timezone: str | None = None,
        run_scheduler: bool = True,
    ):
        self._registry = registry
        self._run_scheduler = run_scheduler
        self._executors = executors
        self._ledger = ledger or ExecutionLedger()
        self._pipeline = PipelineExecutor(executors, registry, self._ledger)
        self._dispatcher = RuleDispatcher(registry, self._pipeline, workers=dispatch_workers)
        self._matcher = TriggerMatcher(registry, self._dispatcher)
        self._scheduler = RuleScheduler(self._dispatcher, timezone=scheduler_timezone)

    @property
    def registry(self) -> RuleRegistry:
        return self._registry

    @property
    def ledger(self) -> ExecutionLedger:
        return self._ledger

    @property
    def dispatcher(self) -> RuleDispatcher:
        return self._dispatcher

    @property
    def scheduler(self) -> RuleScheduler:
        return self._scheduler

    @property
    def runs_scheduler(self) -> bool:
        return self._run_scheduler

    async def start(self) -> None:
        """Load rules, start dispatch workers and install schedules.

        Schedules are only installed when this service runs the scheduler;
        with several processes sharing one store exactly one of them should.
        """
        rules = await self._registry.load()
        self._dispatcher.start()
        if self._run_scheduler:
            self._scheduler.sync(rules)
        logger.info("Automation service started", rule_count=len(rules), scheduler=self._run_scheduler)

    async def stop(self) -> None:
        await self._scheduler.shutdown()
        await self._dispatcher.stop()
        for executor in self._executors.values():
            try:
                await executor.close()
            except Exception as e:
                logger.warning("Failed to close executor", action_kind=executor.action_kind.value, error=str(e))
        logger.info("Automation service stopped")

    # Rules

    async def list_rules_for_owner(self, owner_id: str) -> list[Rule]:
        return await self._registry.load(owner_id)

    async def get_rule(self, rule_id: str, owner_id: str | None = None) -> Rule | None:
        """Get a rule, hiding rules that belong to another owner."""
        rule = await self._registry.get(rule_id)
        if rule is None or (owner_id is not None and rule.owner_id != owner_id):
            return None
        return rule

    async def create_rule(self, rule: Rule) -> Rule:
        """Register a new rule and install its schedule."""
        rule_id = await self._registry.upsert(rule.model_copy(update={"id": ""}))
        return await self._refresh(rule_id, rule.owner_id)

    async def update_rule(self, rule_id: str, owner_id: str, changes: dict[str, Any]) -> Rule:
        """Apply editable field changes to a rule.

        Raises:
            RuleNotFoundError: If the rule does not exist for this owner
            pydantic.ValidationError: If the result is not a valid rule
        """
        current = await self.get_rule(rule_id, owner_id)
        if current is None:
            raise RuleNotFoundError(rule_id)

        values = current.model_dump()
        values.update({key: value for key, value in changes.items() if key in EDITABLE_FIELDS})
        updated = Rule.model_validate(values)

        await self._registry.upsert(updated)
        return await self._refresh(rule_id, owner_id)

    async def toggle_rule(self, rule_id: str, owner_id: str, enabled: bool) -> Rule:
        return await self.update_rule(rule_id, owner_id, {"enabled": enabled})

    async def delete_rule(self, rule_id: str, owner_id: str) -> DeleteOutcome:
        """Delete a rule and cancel its schedule.

        Raises:
            RuleNotFoundError: If the rule does not exist for this owner
        """
        if await self.get_rule(rule_id, owner_id) is None:
            raise RuleNotFoundError(rule_id)

        self._scheduler.unschedule(rule_id)
        outcome = await self._registry.delete(rule_id)
        await self._registry.load(owner_id)
        return outcome

    async def _refresh(self, rule_id: str, owner_id: str) -> Rule:
        await self._registry.load(owner_id)
        rule = self._registry.peek(rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)
        if self._run_scheduler:
            self._scheduler.schedule(rule)
        return rule

    async def apply_rule_change(self, rule_id: str) -> Rule | None:
        """Pick up a rule written by another process.

        The timer is only reinstalled when the enabled flag or the trigger
        changed, so stats-only writes do not restart interval schedules.
        """
        previous = self._registry.peek(rule_id)
        rule = await self._registry.refresh(rule_id)
        if rule is None:
            self._scheduler.unschedule(rule_id)
            return None

        if self._run_scheduler:
            unchanged = (
                previous is not None
                and previous.enabled == rule.enabled
                and previous.trigger == rule.trigger
                and self._scheduler.is_scheduled(rule_id) == (rule.enabled and rule.is_scheduled)
            )
            if not unchanged:
                self._scheduler.schedule(rule)
        return rule

    # Execution

    async def execute_rule(
        self,
        rule_id: str,
        trigger_data: dict[str, Any] | None = None,
        owner_id: str | None = None,
    ) -> ExecutionResult:
        """Run a rule immediately and wait for its record.

        Missing, disabled and foreign rules produce ``success=False`` and
        leave no ledger entry.
        """
        rule = await self.get_rule(rule_id, owner_id)
        if rule is None:
            logger.info("Manual execution of unknown rule", rule_id=rule_id, owner_id=owner_id)
            return ExecutionResult(success=False, message="Rule not found")
        if not rule.enabled:
            return ExecutionResult(success=False, message="Rule is disabled")

        context = ExecutionContext(owner_id=rule.owner_id, trigger_data=trigger_data or {})
        record = await self._pipeline.run(rule, context)
        if record is None:
            return ExecutionResult(success=False, message="Rule not found or disabled")

        return ExecutionResult(
            success=record.status != ExecutionStatus.FAILED,
            execution_log=record,
            message=f"Rule executed with status {record.status.value}",
        )

    async def process_email(self, event: EmailEvent) -> list[str]:
        return await self._matcher.process_event(event)

    def list_execution_logs(self, owner_id: str, limit: int = 50) -> list[ExecutionRecord]:
        return self._ledger.list_for_owner(owner_id, limit)

    def list_execution_logs_for_rule(
        self,
        rule_id: str,
        limit: int = 50,
        owner_id: str | None = None,
    ) -> list[ExecutionRecord]:
        records = self._ledger.list_for_rule(rule_id, limit)
        if owner_id is not None:
            records = [record for record in records if record.owner_id == owner_id]
        return records

    # Templates

    def list_templates(self) -> list[RuleTemplate]:
        return list_templates()

    async def create_rule_from_template(
        self,
        owner_id: str,
        template_id: str,
        overrides: dict[str, Any] | None = None,
    ) -> Rule:
        """Create a rule from a catalogue template.

        Raises:
            TemplateNotFoundError: If the template does not exist
        """
        rule = get_template(template_id).build_rule(owner_id, overrides)
        created = await self.create_rule(rule)
        logger.info("Rule created from template", rule_id=created.id, template_id=template_id)
        return created


def create_service(
    redis: Redis | None = None,
    store: RuleStoreProtocol | None = None,
    executors: dict[ActionKind, ActionExecutor] | None = None,
    run_scheduler: bool = True,
) -> AutomationService:
    """Build a service wired to Redis and the default executors."""
    registry = RuleRegistry(store or RuleStore(redis))
    return AutomationService(
        registry,
        executors or build_default_executors(redis),
        run_scheduler=run_scheduler,
    )
