"""Pytest configuration and fixtures."""

from typing import Any, Callable

import pytest

from autorules.actions.base import ActionExecutor, ActionResult
from autorules.core.errors import StoreUnavailableError
from autorules.engine.ledger import ExecutionLedger
from autorules.engine.pipeline import PipelineExecutor
from autorules.engine.registry import RuleRegistry
from autorules.models.calendar import CalendarEntry
from autorules.models.execution import ExecutionContext
from autorules.models.rule import Action, ActionKind, Rule, Trigger, TriggerKind


class FakeRuleStore:
    """In-memory rule store.

    Set ``fail`` to simulate an outage, or add operation names to
    ``failing`` to break only those calls.
    """

    def __init__(self, rules: list[Rule] | None = None):
        self.rules: dict[str, Rule] = {rule.id: rule for rule in rules or []}
        self.fail = False
        self.failing: set[str] = set()
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self._next_id = 1

    def _check(self, operation: str) -> None:
        if self.fail or operation in self.failing:
            raise StoreUnavailableError(operation, ConnectionError("store down"))

    async def create(self, rule: Rule) -> str:
        self._check("create")
        rule_id = rule.id or f"rule_test_{self._next_id:04d}"
        self._next_id += 1
        self.rules[rule_id] = rule.model_copy(update={"id": rule_id})
        return rule_id

    async def find_by_id(self, rule_id: str) -> Rule | None:
        self._check("find_by_id")
        return self.rules.get(rule_id)

    async def find_by_owner(self, owner_id: str) -> list[Rule]:
        self._check("find_by_owner")
        return [rule for rule in self.rules.values() if rule.owner_id == owner_id]

    async def find_all(self) -> list[Rule]:
        self._check("find_all")
        return list(self.rules.values())

    async def update_by_id(self, rule_id: str, patch: dict[str, Any]) -> bool:
        self._check("update_by_id")
        existing = self.rules.get(rule_id)
        if existing is None:
            return False
        self.updates.append((rule_id, patch))
        merged = {**existing.model_dump(), **patch, "id": rule_id}
        self.rules[rule_id] = Rule.model_validate(merged)
        return True

    async def delete_by_id(self, rule_id: str) -> bool:
        self._check("delete_by_id")
        return self.rules.pop(rule_id, None) is not None


class FakeCalendarStore:
    """In-memory calendar store."""

    def __init__(self):
        self.entries: dict[str, CalendarEntry] = {}

    async def create(self, entry: CalendarEntry) -> str:
        entry_id = entry.entry_id or f"cal_{len(self.entries) + 1}"
        self.entries[entry_id] = entry.model_copy(update={"entry_id": entry_id})
        return entry_id

    async def get(self, entry_id: str) -> CalendarEntry | None:
        return self.entries.get(entry_id)

    async def update(self, entry_id: str, updates: dict[str, Any]) -> CalendarEntry | None:
        existing = self.entries.get(entry_id)
        if existing is None:
            return None
        updated = CalendarEntry.model_validate({**existing.model_dump(), **updates})
        self.entries[entry_id] = updated
        return updated


class RecordingExecutor(ActionExecutor):
    """Executor that records its calls and optionally raises."""

    def __init__(self, kind: ActionKind, error: Exception | None = None):
        self._kind = kind
        self.error = error
        self.calls: list[tuple[dict[str, Any], ExecutionContext]] = []

    @property
    def action_kind(self) -> ActionKind:
        return self._kind

    async def execute(self, config: dict[str, Any], context: ExecutionContext) -> ActionResult:
        self.calls.append((config, context))
        if self.error is not None:
            raise self.error
        return ActionResult(message=f"{self._kind.value} done", details={"config": config})


@pytest.fixture
def rule_factory() -> Callable[..., Rule]:
    """Build rules with sensible defaults."""

    def _make(
        rule_id: str = "",
        owner_id: str = "user_1",
        name: str = "Test Rule",
        trigger_kind: TriggerKind = TriggerKind.EMAIL,
        conditions: dict[str, Any] | None = None,
        actions: list[dict[str, Any]] | None = None,
        enabled: bool = True,
        **extra: Any,
    ) -> Rule:
        return Rule(
            id=rule_id,
            owner_id=owner_id,
            name=name,
            trigger=Trigger(kind=trigger_kind, conditions=conditions or {}),
            actions=[
                Action.model_validate(action)
                for action in actions or [{"kind": "send_notification", "config": {"to": "user@example.com"}}]
            ],
            enabled=enabled,
            **extra,
        )

    return _make


@pytest.fixture
def rule_store() -> FakeRuleStore:
    return FakeRuleStore()


@pytest.fixture
def registry(rule_store: FakeRuleStore) -> RuleRegistry:
    return RuleRegistry(rule_store)


@pytest.fixture
def ledger() -> ExecutionLedger:
    return ExecutionLedger(max_per_owner=100)


@pytest.fixture
def executors() -> dict[ActionKind, RecordingExecutor]:
    """One recording executor per non-conditional action kind."""
    return {
        kind: RecordingExecutor(kind)
        for kind in ActionKind
        if kind != ActionKind.CONDITIONAL
    }


@pytest.fixture
def pipeline(
    executors: dict[ActionKind, RecordingExecutor],
    registry: RuleRegistry,
    ledger: ExecutionLedger,
) -> PipelineExecutor:
    return PipelineExecutor(executors, registry, ledger)


@pytest.fixture
def calendar_store() -> FakeCalendarStore:
    return FakeCalendarStore()
