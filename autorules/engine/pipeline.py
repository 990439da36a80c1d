"""Pipeline executor: runs a rule's ordered actions and records the outcome."""

import asyncio
import time

from autorules.actions.base import ActionExecutor, ActionResult
from autorules.core.errors import ActionError, AutomationError, UnknownActionError
from autorules.core.logging import get_logger
from autorules.engine.conditions import evaluate_condition
from autorules.engine.ledger import ExecutionLedger
from autorules.engine.registry import RuleRegistry
from autorules.models.execution import (
    ActionOutcome,
    ActionStatus,
    ExecutionContext,
    ExecutionRecord,
    ExecutionStatus,
    derive_status,
)
from autorules.models.rule import Action, ActionKind, Rule, utcnow
from autorules.observability.metrics import (
    ACTION_OUTCOMES,
    EXECUTION_LATENCY,
    RULE_EXECUTIONS,
    RULE_EXECUTIONS_SKIPPED,
)
from autorules.observability.tracing import TraceContext

logger = get_logger(__name__)


class PipelineExecutor:
    """Execute rules action by action with per-action failure isolation."""

    def __init__(
        self,
        executors: dict[ActionKind, ActionExecutor],
        registry: RuleRegistry,
        ledger: ExecutionLedger,
    ):
        """Initialize the executor.

        Args:
            executors: One executor per non-conditional action kind
            registry: Registry receiving stats updates
            ledger: Ledger receiving execution records
        """
        self._executors = executors
        self._registry = registry
        self._ledger = ledger

    async def run(self, rule: Rule | None, context: ExecutionContext) -> ExecutionRecord | None:
        """Run a rule's pipeline.

        Pipeline steps:
        1. Skip missing or disabled rules (no record)
        2. Execute actions in order, honouring per-action delays
        3. Aggregate outcomes into a status
        4. Append the record to the ledger and update rule stats

        Args:
            rule: Rule to execute
            context: Immutable run context

        Returns:
            Execution record, or None when the rule was not runnable
        """
        if rule is None or not rule.enabled:
            RULE_EXECUTIONS_SKIPPED.inc()
            logger.info(
                "Rule not found or disabled",
                rule_id=rule.id if rule else None,
                execution_id=context.execution_id,
            )
            return None

        start_time = time.time()
        outcomes: list[ActionOutcome] = []
        error: str | None = None

        with TraceContext(context.execution_id, rule_id=rule.id, owner_id=rule.owner_id):
            logger.info("Executing rule", rule_name=rule.name, action_count=len(rule.actions))

            try:
                await self.execute_actions(rule.actions, context, outcomes)
                status = derive_status(outcomes)
            except Exception as e:
                logger.error("Rule execution failed", error=str(e), exc_info=True)
                status = ExecutionStatus.FAILED
                error = str(e)

            elapsed = time.time() - start_time
            record = ExecutionRecord(
                id=context.execution_id,
                rule_id=rule.id,
                rule_name=rule.name,
                owner_id=rule.owner_id,
                status=status,
                timestamp=utcnow(),
                actions=outcomes,
                error=error,
                duration_ms=int(elapsed * 1000),
            )

            self._ledger.append(record)
            try:
                await self._registry.update_stats(rule, record.timestamp)
            except Exception as e:
                logger.error("Rule stats update failed", error=str(e), exc_info=True)

            RULE_EXECUTIONS.labels(status=status.value).inc()
            EXECUTION_LATENCY.observe(elapsed)
            logger.info(
                "Rule execution complete",
                status=status.value,
                duration_ms=record.duration_ms,
                failed_actions=sum(1 for o in outcomes if not o.succeeded),
            )

        return record

    async def execute_actions(
        self,
        actions: list[Action],
        context: ExecutionContext,
        outcomes: list[ActionOutcome] | None = None,
    ) -> list[ActionOutcome]:
        """Run a list of actions sequentially.

        Shared by the top-level pipeline and conditional branches. A failed
        action is recorded and the next action still runs.

        Args:
            actions: Actions in execution order
            context: Run context
            outcomes: List to append outcomes to (a new one if omitted)

        Returns:
            The outcomes list
        """
        if outcomes is None:
            outcomes = []

        for action in actions:
            if action.delay_ms:
                await asyncio.sleep(action.delay_ms / 1000)

            outcome = await self._execute_action(action, context)
            outcomes.append(outcome)
            ACTION_OUTCOMES.labels(kind=outcome.kind, status=outcome.status.value).inc()

        return outcomes

    async def _execute_action(self, action: Action, context: ExecutionContext) -> ActionOutcome:
        kind = action.kind.value
        logger.debug("Executing action", action_kind=kind)

        try:
            if action.kind == ActionKind.CONDITIONAL:
                result = await self._execute_conditional(action, context)
            else:
                executor = self._executors.get(action.kind)
                if executor is None:
                    raise UnknownActionError(kind)
                result = await executor.execute(action.config, context)

        except Exception as e:
            logger.warning("Action failed", action_kind=kind, error=str(e))
            details = {"error": str(e)}
            if isinstance(e, AutomationError):
                details.update(code=e.code, **{k: v for k, v in e.details.items() if v is not None})
            return ActionOutcome(
                kind=kind,
                status=ActionStatus.FAILED,
                message=str(e),
                details=details,
            )

        return ActionOutcome(
            kind=kind,
            status=ActionStatus.SUCCESS,
            message=result.message,
            details=result.details,
        )

    async def _execute_conditional(self, action: Action, context: ExecutionContext) -> ActionResult:
        """Evaluate the condition and run the chosen branch in place.

        Branch outcomes are not recorded individually; the conditional reports
        how many ran and fails when any of them failed.
        """
        condition_met = evaluate_condition(action.config.get("condition"), context.trigger_data)
        branch = action.branch(condition_met)
        branch_outcomes = await self.execute_actions(branch, context)

        failed = sum(1 for outcome in branch_outcomes if not outcome.succeeded)
        details = {
            "condition_met": condition_met,
            "branch": "true" if condition_met else "false",
            "actions_executed": len(branch_outcomes),
            "actions_failed": failed,
        }

        if failed:
            raise ActionError(
                f"{failed} of {len(branch_outcomes)} branch action(s) failed",
                action_kind=ActionKind.CONDITIONAL.value,
                **details,
            )

        return ActionResult(
            message=(
                f"Condition {'met' if condition_met else 'not met'}, "
                f"executed {len(branch_outcomes)} action(s)"
            ),
            details=details,
        )
