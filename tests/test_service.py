"""End-to-end tests for the automation service."""

import pytest
import pytest_asyncio

from autorules.core.errors import ActionError, RuleNotFoundError, TemplateNotFoundError
from autorules.engine.service import AutomationService
from autorules.models.event import EmailEvent
from autorules.models.execution import ExecutionStatus
from autorules.models.rule import ActionKind, TriggerKind

APPOINTMENT_ACTIONS = [
    {"kind": "create_calendar_entry", "config": {"title": "Doctor", "startDate": "2026-02-01T10:00:00Z"}},
    {"kind": "send_notification", "config": {"to": "user@example.com", "subject": "Booked"}},
]


@pytest_asyncio.fixture
async def service(registry, ledger, executors):
    service = AutomationService(registry, executors, ledger=ledger, dispatch_workers=2, scheduler_timezone="UTC")
    yield service
    await service.stop()


@pytest.mark.asyncio
async def test_appointment_email_runs_matching_rule(service, executors, rule_factory) -> None:
    rule = await service.create_rule(
        rule_factory(conditions={"patterns": ["doctor", "appointment"]}, actions=APPOINTMENT_ACTIONS)
    )
    await service.start()

    matched = await service.process_email(
        EmailEvent(owner_id="user_1", subject="Doctor appointment confirmed", body="Friday 10am")
    )
    await service.dispatcher.drain()

    assert matched == [rule.id]
    (record,) = service.list_execution_logs("user_1")
    assert record.status == ExecutionStatus.SUCCESS
    assert [a.kind for a in record.actions] == ["create_calendar_entry", "send_notification"]
    assert (await service.get_rule(rule.id)).execution_count == 1
    _, context = executors[ActionKind.CREATE_CALENDAR_ENTRY].calls[0]
    assert context.trigger_data["matchedPatterns"] == ["doctor", "appointment"]
    assert context.trigger_data["triggerId"] == rule.id


@pytest.mark.asyncio
async def test_failed_notification_yields_partial_run(service, executors, rule_factory) -> None:
    executors[ActionKind.SEND_NOTIFICATION].error = ActionError("SendFailed")
    rule = await service.create_rule(
        rule_factory(conditions={"patterns": ["doctor"]}, actions=APPOINTMENT_ACTIONS)
    )
    await service.start()

    await service.process_email(EmailEvent(owner_id="user_1", subject="doctor"))
    await service.dispatcher.drain()

    (record,) = service.list_execution_logs_for_rule(rule.id)
    assert record.status == ExecutionStatus.PARTIAL
    assert record.actions[1].message == "SendFailed"
    assert (await service.get_rule(rule.id)).execution_count == 1


@pytest.mark.asyncio
async def test_rule_deleted_after_match_is_skipped(service, ledger, rule_factory) -> None:
    rule = await service.create_rule(rule_factory(conditions={"patterns": ["doctor"]}))

    # Queue while no worker is running, then delete before processing
    await service.process_email(EmailEvent(owner_id="user_1", subject="doctor"))
    await service.delete_rule(rule.id, "user_1")
    service.dispatcher.start()
    await service.dispatcher.drain()

    assert ledger.count_for_owner("user_1") == 0


@pytest.mark.asyncio
async def test_execute_rule_manually(service, rule_factory) -> None:
    rule = await service.create_rule(rule_factory())

    result = await service.execute_rule(rule.id, {"region": "US"}, owner_id="user_1")

    assert result.success is True
    assert result.execution_log.status == ExecutionStatus.SUCCESS
    assert service.list_execution_logs("user_1") == [result.execution_log]


@pytest.mark.asyncio
async def test_execute_disabled_rule(service, rule_factory) -> None:
    rule = await service.create_rule(rule_factory(enabled=False))

    result = await service.execute_rule(rule.id)

    assert result.success is False
    assert result.execution_log is None
    assert service.list_execution_logs("user_1") == []
    assert (await service.get_rule(rule.id)).execution_count == 0


@pytest.mark.asyncio
async def test_execute_missing_or_foreign_rule(service, rule_factory) -> None:
    rule = await service.create_rule(rule_factory(owner_id="user_1"))

    assert (await service.execute_rule("rule_missing")).success is False
    assert (await service.execute_rule(rule.id, owner_id="user_2")).success is False
    assert service.list_execution_logs("user_1") == []


@pytest.mark.asyncio
async def test_execute_rule_with_all_actions_failing(service, executors, rule_factory) -> None:
    executors[ActionKind.SEND_NOTIFICATION].error = ActionError("SendFailed")
    rule = await service.create_rule(rule_factory())

    result = await service.execute_rule(rule.id)

    assert result.success is False
    assert result.execution_log.status == ExecutionStatus.FAILED
    assert (await service.get_rule(rule.id)).execution_count == 1


@pytest.mark.asyncio
async def test_conditional_region_scenario(service, executors, rule_factory) -> None:
    rule = await service.create_rule(
        rule_factory(
            actions=[
                {
                    "kind": "conditional",
                    "config": {
                        "condition": {"type": "equals", "field": "region", "value": "US"},
                        "trueActions": [{"kind": "webhook_call", "config": {"url": "https://us.example.com"}}],
                        "falseActions": [{"kind": "send_notification", "config": {"to": "eu@example.com"}}],
                    },
                }
            ]
        )
    )

    result = await service.execute_rule(rule.id, {"region": "EU"})

    assert result.success is True
    assert executors[ActionKind.WEBHOOK_CALL].calls == []
    assert len(executors[ActionKind.SEND_NOTIFICATION].calls) == 1


@pytest.mark.asyncio
async def test_update_and_toggle_rule(service, rule_factory) -> None:
    rule = await service.create_rule(
        rule_factory(trigger_kind=TriggerKind.SCHEDULE, conditions={"cron": "0 9 * * *"})
    )
    assert service.scheduler.is_scheduled(rule.id)

    updated = await service.update_rule(rule.id, "user_1", {"name": "Morning", "owner_id": "user_2"})
    assert updated.name == "Morning"
    assert updated.owner_id == "user_1"

    disabled = await service.toggle_rule(rule.id, "user_1", False)
    assert disabled.enabled is False
    assert not service.scheduler.is_scheduled(rule.id)

    with pytest.raises(RuleNotFoundError):
        await service.update_rule(rule.id, "user_2", {"name": "Stolen"})


@pytest.mark.asyncio
async def test_delete_rule(service, rule_store, rule_factory) -> None:
    rule = await service.create_rule(
        rule_factory(trigger_kind=TriggerKind.SCHEDULE, conditions={"interval": 60000})
    )

    with pytest.raises(RuleNotFoundError):
        await service.delete_rule(rule.id, "user_2")

    outcome = await service.delete_rule(rule.id, "user_1")

    assert outcome.deleted is True
    assert rule.id not in rule_store.rules
    assert not service.scheduler.is_scheduled(rule.id)
    assert await service.get_rule(rule.id) is None


@pytest.mark.asyncio
async def test_create_rule_while_store_is_down(service, rule_store, rule_factory) -> None:
    rule_store.fail = True

    rule = await service.create_rule(rule_factory(name="Offline"))

    assert rule.id
    assert [r.id for r in await service.list_rules_for_owner("user_1")] == [rule.id]


@pytest.mark.asyncio
async def test_start_loads_rules_and_schedules(registry, executors, rule_store, rule_factory) -> None:
    rule_store.rules["rule_cron"] = rule_factory(
        rule_id="rule_cron",
        trigger_kind=TriggerKind.SCHEDULE,
        conditions={"cron": "0 8 * * *"},
    )
    service = AutomationService(registry, executors, dispatch_workers=1, scheduler_timezone="UTC")

    await service.start()
    try:
        assert service.dispatcher.is_running
        assert service.scheduler.is_scheduled("rule_cron")
    finally:
        await service.stop()

    assert not service.dispatcher.is_running
    assert service.scheduler.scheduled_ids == set()


@pytest.mark.asyncio
async def test_create_rule_from_template(service) -> None:
    rule = await service.create_rule_from_template(
        "user_1",
        "doctor_appointment_detection",
        {"name": "My doctor rule"},
    )

    assert rule.name == "My doctor rule"
    assert rule.trigger.kind == TriggerKind.EMAIL
    assert "doctor" in rule.trigger.patterns
    assert rule.actions[0].kind == ActionKind.CONDITIONAL
    # Placeholders are kept verbatim
    assert rule.actions[0].branch(True)[0].config["title"] == "Medical Appointment - {{doctor_name}}"

    with pytest.raises(TemplateNotFoundError):
        await service.create_rule_from_template("user_1", "no_such_template")


@pytest.mark.asyncio
async def test_templates_are_valid_rules(service) -> None:
    templates = service.list_templates()

    assert {t.id for t in templates} >= {
        "doctor_appointment_detection",
        "medication_reminder",
        "meeting_follow_up",
        "bill_reminder",
    }
    for template in templates:
        assert template.build_rule("user_1").name == template.name


@pytest.mark.asyncio
async def test_execution_count_survives_failed_stats_write(service, rule_store, rule_factory) -> None:
    rule = await service.create_rule(rule_factory())
    rule_store.failing.add("update_by_id")

    result = await service.execute_rule(rule.id, owner_id="user_1")
    rule_store.failing.clear()

    assert result.success is True
    assert [r.execution_count for r in await service.list_rules_for_owner("user_1")] == [1]


@pytest.mark.asyncio
async def test_service_without_scheduler_installs_no_timers(registry, executors, rule_store, rule_factory) -> None:
    rule_store.rules["rule_cron"] = rule_factory(
        rule_id="rule_cron",
        trigger_kind=TriggerKind.SCHEDULE,
        conditions={"cron": "0 8 * * *"},
    )
    service = AutomationService(registry, executors, dispatch_workers=1, run_scheduler=False)

    await service.start()
    try:
        created = await service.create_rule(
            rule_factory(trigger_kind=TriggerKind.SCHEDULE, conditions={"interval": 60000})
        )
        assert service.scheduler.scheduled_ids == set()
        assert service.scheduler.next_fire_time(created) is not None
    finally:
        await service.stop()


@pytest.mark.asyncio
async def test_rule_changes_from_other_processes_are_applied(service, rule_store, rule_factory) -> None:
    await service.start()
    # written by another process sharing the store
    rule_store.rules["rule_remote"] = rule_factory(
        rule_id="rule_remote",
        trigger_kind=TriggerKind.SCHEDULE,
        conditions={"interval": 60000},
    )

    await service.apply_rule_change("rule_remote")
    assert service.scheduler.is_scheduled("rule_remote")
    timer = service.scheduler._tasks["rule_remote"]

    rule_store.rules["rule_remote"] = rule_store.rules["rule_remote"].model_copy(update={"execution_count": 3})
    refreshed = await service.apply_rule_change("rule_remote")
    assert refreshed.execution_count == 3
    assert service.scheduler._tasks["rule_remote"] is timer

    rule_store.rules["rule_remote"] = rule_store.rules["rule_remote"].model_copy(update={"enabled": False})
    await service.apply_rule_change("rule_remote")
    assert not service.scheduler.is_scheduled("rule_remote")

    del rule_store.rules["rule_remote"]
    assert await service.apply_rule_change("rule_remote") is None
    assert await service.get_rule("rule_remote") is None


@pytest.mark.asyncio
async def test_email_rules_created_elsewhere_are_matched(service, rule_store, rule_factory) -> None:
    await service.start()
    rule_store.rules["rule_remote"] = rule_factory(rule_id="rule_remote", conditions={"patterns": ["invoice"]})

    await service.apply_rule_change("rule_remote")
    matched = await service.process_email(EmailEvent(owner_id="user_1", subject="Invoice due", body=""))
    await service.dispatcher.drain()

    assert matched == ["rule_remote"]
