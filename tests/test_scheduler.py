"""Tests for the rule scheduler."""

import asyncio
from datetime import datetime, timezone

import pytest

from autorules.engine.scheduler import RuleScheduler
from autorules.models.rule import TriggerKind


class RecordingDispatcher:
    def __init__(self):
        self.tasks = []

    async def submit(self, task) -> None:
        self.tasks.append(task)


@pytest.fixture
def schedule_rule(rule_factory):
    def _make(rule_id: str = "rule_sched", enabled: bool = True, **conditions):
        return rule_factory(
            rule_id=rule_id,
            trigger_kind=TriggerKind.SCHEDULE,
            conditions=conditions,
            enabled=enabled,
        )

    return _make


def test_next_fire_time_for_cron(schedule_rule) -> None:
    scheduler = RuleScheduler(RecordingDispatcher(), timezone="UTC")
    now = datetime(2026, 1, 5, 8, 30, tzinfo=timezone.utc)

    fire_at = scheduler.next_fire_time(schedule_rule(cron="0 9 * * *"), now)

    assert fire_at == datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


def test_next_fire_time_for_interval(schedule_rule) -> None:
    scheduler = RuleScheduler(RecordingDispatcher(), timezone="UTC")
    now = datetime(2026, 1, 5, 8, 30, tzinfo=timezone.utc)

    fire_at = scheduler.next_fire_time(schedule_rule(interval=60000), now)

    assert fire_at == datetime(2026, 1, 5, 8, 31, tzinfo=timezone.utc)


def test_next_fire_time_without_schedule(rule_factory, schedule_rule) -> None:
    scheduler = RuleScheduler(RecordingDispatcher(), timezone="UTC")

    assert scheduler.next_fire_time(rule_factory()) is None
    assert scheduler.next_fire_time(schedule_rule(cron="not a cron")) is None


@pytest.mark.asyncio
async def test_interval_rule_fires_repeatedly(schedule_rule) -> None:
    dispatcher = RecordingDispatcher()
    scheduler = RuleScheduler(dispatcher, timezone="UTC")

    assert scheduler.schedule(schedule_rule(interval=10))
    await asyncio.sleep(0.1)
    await scheduler.shutdown()

    assert len(dispatcher.tasks) >= 2
    task = dispatcher.tasks[0]
    assert task.rule_id == "rule_sched"
    assert task.source == "schedule"
    assert task.trigger_data["triggerId"] == "rule_sched"


@pytest.mark.asyncio
async def test_schedule_is_idempotent(schedule_rule) -> None:
    scheduler = RuleScheduler(RecordingDispatcher(), timezone="UTC")
    rule = schedule_rule(cron="0 9 * * *")

    scheduler.schedule(rule)
    scheduler.schedule(rule)

    assert scheduler.scheduled_ids == {"rule_sched"}
    await scheduler.shutdown()
    assert scheduler.scheduled_ids == set()


@pytest.mark.asyncio
async def test_reschedule_cancels_previous_timer(schedule_rule) -> None:
    dispatcher = RecordingDispatcher()
    scheduler = RuleScheduler(dispatcher, timezone="UTC")

    scheduler.schedule(schedule_rule(interval=10))
    scheduler.schedule(schedule_rule(cron="0 9 1 1 *"))
    await asyncio.sleep(0.05)

    assert dispatcher.tasks == []
    await scheduler.shutdown()


@pytest.mark.asyncio
async def test_disabled_and_invalid_rules_are_not_scheduled(rule_factory, schedule_rule) -> None:
    scheduler = RuleScheduler(RecordingDispatcher(), timezone="UTC")

    assert not scheduler.schedule(schedule_rule(enabled=False, interval=1000))
    assert not scheduler.schedule(schedule_rule(cron="61 * * * *"))
    assert not scheduler.schedule(schedule_rule())
    assert not scheduler.schedule(rule_factory(rule_id="rule_email"))
    assert scheduler.scheduled_ids == set()


@pytest.mark.asyncio
async def test_disabling_a_rule_unschedules_it(schedule_rule) -> None:
    scheduler = RuleScheduler(RecordingDispatcher(), timezone="UTC")
    scheduler.schedule(schedule_rule(interval=1000))

    scheduler.schedule(schedule_rule(interval=1000, enabled=False))

    assert not scheduler.is_scheduled("rule_sched")


@pytest.mark.asyncio
async def test_sync_reconciles_timers(schedule_rule) -> None:
    scheduler = RuleScheduler(RecordingDispatcher(), timezone="UTC")
    scheduler.schedule(schedule_rule(rule_id="rule_old", interval=1000))

    scheduler.sync([
        schedule_rule(rule_id="rule_a", interval=1000),
        schedule_rule(rule_id="rule_b", cron="0 8 * * *"),
        schedule_rule(rule_id="rule_c", interval=1000, enabled=False),
    ])

    assert scheduler.scheduled_ids == {"rule_a", "rule_b"}
    await scheduler.shutdown()


def test_interval_is_anchored_to_previous_fire_time(schedule_rule) -> None:
    scheduler = RuleScheduler(RecordingDispatcher(), timezone="UTC")
    rule = schedule_rule(interval=60000)
    previous = datetime(2026, 1, 5, 8, 0, tzinfo=timezone.utc)

    # submit returned 10 seconds late
    late = datetime(2026, 1, 5, 8, 0, 10, tzinfo=timezone.utc)
    assert scheduler.next_fire_after(rule, previous, now=late) == datetime(2026, 1, 5, 8, 1, tzinfo=timezone.utc)

    # two whole periods were lost waiting on a full queue
    blocked = datetime(2026, 1, 5, 8, 2, 10, tzinfo=timezone.utc)
    assert scheduler.next_fire_after(rule, previous, now=blocked) == datetime(2026, 1, 5, 8, 3, tzinfo=timezone.utc)


def test_cron_skips_slots_missed_while_blocked(schedule_rule) -> None:
    scheduler = RuleScheduler(RecordingDispatcher(), timezone="UTC")
    rule = schedule_rule(cron="0 * * * *")
    previous = datetime(2026, 1, 5, 8, 0, tzinfo=timezone.utc)

    on_time = datetime(2026, 1, 5, 8, 0, 1, tzinfo=timezone.utc)
    assert scheduler.next_fire_after(rule, previous, now=on_time) == datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)

    blocked = datetime(2026, 1, 5, 10, 30, tzinfo=timezone.utc)
    assert scheduler.next_fire_after(rule, previous, now=blocked) == datetime(2026, 1, 5, 11, 0, tzinfo=timezone.utc)
