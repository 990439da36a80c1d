"""Timers for schedule-triggered rules.

Each scheduled rule owns one asyncio task that sleeps until the next fire
time and then queues an execution on the dispatcher. Interval triggers fire
every ``conditions.interval`` milliseconds; cron triggers are expanded with
croniter in ``settings.scheduler_timezone``.
"""

import asyncio
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from croniter import croniter

from autorules.core.config import get_settings
from autorules.core.logging import get_logger
from autorules.engine.dispatcher import ExecutionTask, RuleDispatcher
from autorules.models.rule import Rule
from autorules.observability.metrics import RULES_MATCHED, SCHEDULED_RULES

logger = get_logger(__name__)


class RuleScheduler:
    """Per-rule timer tasks feeding the dispatcher."""

    def __init__(self, dispatcher: RuleDispatcher, timezone: str | None = None):
        self._dispatcher = dispatcher
        self._tz = ZoneInfo(timezone or get_settings().scheduler_timezone)
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def scheduled_ids(self) -> set[str]:
        return set(self._tasks)

    def is_scheduled(self, rule_id: str) -> bool:
        return rule_id in self._tasks

    def next_fire_time(self, rule: Rule, now: datetime | None = None) -> datetime | None:
        """Compute the next fire time of a rule.

        Returns:
            The next fire time, or None when the rule has no usable schedule
        """
        if not rule.is_scheduled:
            return None

        now = now or datetime.now(self._tz)
        if rule.trigger.interval_ms:
            return now + timedelta(milliseconds=rule.trigger.interval_ms)

        cron = rule.trigger.cron
        if cron:
            if not croniter.is_valid(cron):
                return None
            return croniter(cron, now.astimezone(self._tz)).get_next(datetime)

        return None

    def schedule(self, rule: Rule) -> bool:
        """Install (or reinstall) the timer for a rule.

        Any existing timer for the same rule id is cancelled first, so
        calling this repeatedly never stacks timers.

        Returns:
            Whether a timer is now active for the rule
        """
        self.unschedule(rule.id)

        if not rule.enabled or not rule.is_scheduled:
            return False

        if rule.trigger.interval_ms:
            description = {"interval_ms": rule.trigger.interval_ms}
        elif rule.trigger.cron:
            if not croniter.is_valid(rule.trigger.cron):
                logger.warning("Invalid cron expression, rule not scheduled", rule_id=rule.id, cron=rule.trigger.cron)
                return False
            description = {"cron": rule.trigger.cron}
        else:
            logger.warning("Schedule rule has neither interval nor cron", rule_id=rule.id)
            return False

        self._tasks[rule.id] = asyncio.create_task(self._run(rule), name=f"schedule-{rule.id}")
        SCHEDULED_RULES.set(len(self._tasks))
        logger.info("Rule scheduled", rule_id=rule.id, **description)
        return True

    def unschedule(self, rule_id: str) -> bool:
        task = self._tasks.pop(rule_id, None)
        if task is None:
            return False
        task.cancel()
        SCHEDULED_RULES.set(len(self._tasks))
        logger.info("Rule unscheduled", rule_id=rule_id)
        return True

    def sync(self, rules: list[Rule]) -> None:
        """Reconcile timers with a full set of rules.

        Timers for rules not in ``rules`` are removed; every enabled schedule
        rule gets a fresh timer.
        """
        wanted = {rule.id for rule in rules if rule.enabled and rule.is_scheduled}
        for rule_id in list(self._tasks):
            if rule_id not in wanted:
                self.unschedule(rule_id)
        for rule in rules:
            if rule.id in wanted:
                self.schedule(rule)

    async def shutdown(self) -> None:
        """Cancel every timer and wait for the tasks to finish."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        SCHEDULED_RULES.set(0)
        if tasks:
            logger.info("Scheduler stopped", cancelled=len(tasks))

    def next_fire_after(self, rule: Rule, previous: datetime, now: datetime | None = None) -> datetime | None:
        """Fire time following ``previous``, anchored to it rather than to now.

        Slots that already passed (for instance while the dispatcher queue
        was full) are skipped, keeping interval rules on their original
        phase.
        """
        fire_at = self.next_fire_time(rule, previous)
        now = now or datetime.now(self._tz)
        if fire_at is None or fire_at > now:
            return fire_at

        interval_ms = rule.trigger.interval_ms
        if interval_ms:
            step = timedelta(milliseconds=interval_ms)
            missed = (now - fire_at) // step + 1
            logger.debug("Skipping missed schedule slots", rule_id=rule.id, missed=missed)
            return fire_at + step * missed
        return self.next_fire_time(rule, now)

    async def _run(self, rule: Rule) -> None:
        fire_at = self.next_fire_time(rule)
        while fire_at is not None:
            delay = (fire_at - datetime.now(self._tz)).total_seconds()
            await asyncio.sleep(max(delay, 0))

            RULES_MATCHED.labels(trigger_kind=rule.trigger.kind.value).inc()
            try:
                await self._dispatcher.submit(
                    ExecutionTask(
                        rule_id=rule.id,
                        trigger_data={"triggerId": rule.id, "scheduledAt": fire_at.isoformat()},
                        source="schedule",
                    )
                )
            except Exception as e:
                logger.error("Failed to queue scheduled run", rule_id=rule.id, error=str(e), exc_info=True)

            fire_at = self.next_fire_after(rule, fire_at)
