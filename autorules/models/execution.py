"""Execution record domain models."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from autorules.models.rule import utcnow


class ExecutionStatus(str, Enum):
    """Overall outcome of one rule run."""

    SUCCESS = "success"
    FAILED = "failed"
    PARTIAL = "partial"


class ActionStatus(str, Enum):
    """Outcome of a single action."""

    SUCCESS = "success"
    FAILED = "failed"


def generate_execution_id() -> str:
    return f"exec_{uuid.uuid4().hex[:16]}"


class ExecutionContext(BaseModel):
    """Immutable data snapshot handed to every action of one run."""

    model_config = ConfigDict(frozen=True)

    owner_id: str = Field(..., description="Owner of the executing rule")
    trigger_data: dict[str, Any] = Field(
        default_factory=dict,
        description="Event payload (matched email, derived fields, manual data)",
    )
    execution_id: str = Field(default_factory=generate_execution_id)
    timestamp: datetime = Field(default_factory=utcnow)


class ActionOutcome(BaseModel):
    """Recorded result of one action."""

    model_config = ConfigDict(frozen=True)

    kind: str
    status: ActionStatus
    message: str = ""
    details: dict[str, Any] | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == ActionStatus.SUCCESS


def derive_status(outcomes: list[ActionOutcome]) -> ExecutionStatus:
    """Aggregate action outcomes into a run status.

    All succeeded -> success, all failed -> failed, otherwise partial.
    """
    failed = sum(1 for outcome in outcomes if not outcome.succeeded)
    if failed == 0:
        return ExecutionStatus.SUCCESS
    if failed == len(outcomes):
        return ExecutionStatus.FAILED
    return ExecutionStatus.PARTIAL


class ExecutionRecord(BaseModel):
    """Audit entry summarising one rule run. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Execution identifier")
    rule_id: str = Field(..., description="Rule that was executed")
    rule_name: str = Field(..., description="Rule name at execution time")
    owner_id: str = Field(..., description="Rule owner")
    status: ExecutionStatus = Field(..., description="Aggregated status")
    timestamp: datetime = Field(default_factory=utcnow)
    actions: list[ActionOutcome] = Field(default_factory=list)
    error: str | None = Field(default=None, description="Run level error, if any")
    duration_ms: int = Field(default=0, ge=0, description="Wall clock duration")


class ExecutionResult(BaseModel):
    """Result returned to callers of ``execute_rule``."""

    success: bool
    execution_log: ExecutionRecord | None = None
    message: str = ""
