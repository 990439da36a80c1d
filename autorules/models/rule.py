"""Rule domain models."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class TriggerKind(str, Enum):
    """Trigger kind enumeration."""

    SCHEDULE = "schedule"
    EMAIL = "email"
    SMS = "sms"
    CALENDAR_EVENT = "calendar_event"
    WEBHOOK = "webhook"
    TIME_BASED = "time_based"


class ActionKind(str, Enum):
    """Action kind enumeration."""

    SEND_NOTIFICATION = "send_notification"
    CREATE_CALENDAR_ENTRY = "create_calendar_entry"
    UPDATE_CALENDAR_ENTRY = "update_calendar_entry"
    WEBHOOK_CALL = "webhook_call"
    WAIT = "wait"
    CONDITIONAL = "conditional"


# Conditional branch keys, camelCase as submitted by the workflow designer
TRUE_BRANCH_KEYS = ("trueActions", "true_actions")
FALSE_BRANCH_KEYS = ("falseActions", "false_actions")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_rule_id() -> str:
    """Generate a rule id, e.g. ``rule_20260110_1a2b3c4d``."""
    return f"rule_{utcnow().strftime('%Y%m%d')}_{uuid.uuid4().hex[:8]}"


class Trigger(BaseModel):
    """What causes a rule to run."""

    model_config = ConfigDict(frozen=True)

    kind: TriggerKind = Field(..., description="Trigger kind")
    conditions: dict[str, Any] = Field(
        default_factory=dict,
        description="Kind specific conditions (patterns, interval, cron, ...)",
    )

    @model_validator(mode="after")
    def validate_conditions(self) -> "Trigger":
        """Reject condition shapes the matcher and scheduler cannot use."""
        patterns = self.conditions.get("patterns")
        if patterns is not None:
            if not isinstance(patterns, list) or not all(isinstance(p, str) for p in patterns):
                raise ValueError("conditions.patterns must be a list of strings")
        interval = self.conditions.get("interval")
        if interval is not None:
            if isinstance(interval, bool) or not isinstance(interval, (int, float)) or interval <= 0:
                raise ValueError("conditions.interval must be a positive number of milliseconds")
        cron = self.conditions.get("cron")
        if cron is not None and not isinstance(cron, str):
            raise ValueError("conditions.cron must be a crontab string")
        return self

    @property
    def patterns(self) -> list[str]:
        return list(self.conditions.get("patterns") or [])

    @property
    def interval_ms(self) -> float | None:
        return self.conditions.get("interval")

    @property
    def cron(self) -> str | None:
        return self.conditions.get("cron") or None


class Action(BaseModel):
    """One step of a rule's pipeline."""

    model_config = ConfigDict(frozen=True)

    kind: ActionKind = Field(..., description="Action kind")
    config: dict[str, Any] = Field(
        default_factory=dict,
        description="Executor configuration, passed through verbatim",
    )
    delay_ms: int | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("delay_ms", "delayMs"),
        description="Delay before the action runs, in milliseconds",
    )

    @model_validator(mode="after")
    def validate_branches(self) -> "Action":
        """Conditional branches must themselves be valid actions."""
        if self.kind == ActionKind.CONDITIONAL:
            for keys in (TRUE_BRANCH_KEYS, FALSE_BRANCH_KEYS):
                for key in keys:
                    branch = self.config.get(key)
                    if branch is None:
                        continue
                    if not isinstance(branch, list):
                        raise ValueError(f"config.{key} must be a list of actions")
                    for item in branch:
                        Action.model_validate(item)
        return self

    def branch(self, condition_met: bool) -> list["Action"]:
        """Return the parsed actions for one side of a conditional."""
        keys = TRUE_BRANCH_KEYS if condition_met else FALSE_BRANCH_KEYS
        for key in keys:
            if self.config.get(key):
                return [Action.model_validate(item) for item in self.config[key]]
        return []


class Rule(BaseModel):
    """Complete rule model.

    Rules are immutable snapshots. Edits and stats updates produce a new
    instance via ``model_copy`` so readers never observe a half-written rule.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default="", description="Rule unique identifier (assigned on create)")
    owner_id: str = Field(..., min_length=1, description="Owning user")
    name: str = Field(..., min_length=1, description="Rule name")
    description: str = Field(default="", description="Rule description")
    trigger: Trigger = Field(..., description="Trigger definition")
    actions: list[Action] = Field(..., min_length=1, description="Ordered action pipeline")
    enabled: bool = Field(default=True, description="Whether rule is enabled")
    created_at: datetime = Field(default_factory=utcnow)
    last_executed_at: datetime | None = Field(default=None)
    execution_count: int = Field(default=0, ge=0)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value

    @property
    def is_scheduled(self) -> bool:
        return self.trigger.kind == TriggerKind.SCHEDULE

    def with_stats(self, executed_at: datetime, execution_count: int) -> "Rule":
        """Return a copy carrying new execution statistics."""
        return self.model_copy(
            update={
                "last_executed_at": executed_at,
                "execution_count": max(self.execution_count, execution_count),
            }
        )
