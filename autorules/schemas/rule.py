"""Rule API schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from autorules.models.rule import Action, Rule, Trigger


class RuleCreate(BaseModel):
    """Schema for creating a new rule."""

    name: str = Field(..., min_length=1, max_length=100, description="Rule name")
    description: str = Field(default="", max_length=500, description="Rule description")
    enabled: bool = Field(default=True, description="Whether rule is enabled")
    trigger: Trigger = Field(..., description="Trigger definition")
    actions: list[Action] = Field(..., min_length=1, description="Ordered action pipeline")

    def to_rule(self, owner_id: str) -> Rule:
        return Rule(
            owner_id=owner_id,
            name=self.name,
            description=self.description,
            enabled=self.enabled,
            trigger=self.trigger,
            actions=self.actions,
        )


class RuleUpdate(BaseModel):
    """Schema for updating an existing rule."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    enabled: bool | None = None
    trigger: Trigger | None = None
    actions: list[Action] | None = Field(default=None, min_length=1)


class RuleStatusUpdate(BaseModel):
    """Schema for updating rule enabled status."""

    enabled: bool = Field(..., description="Whether rule is enabled")


class RuleExecuteRequest(BaseModel):
    """Schema for a manual rule execution."""

    trigger_data: dict[str, Any] = Field(default_factory=dict, description="Data handed to the actions")


class RuleResponse(BaseModel):
    """Schema for rule response."""

    id: str
    owner_id: str
    name: str
    description: str
    enabled: bool
    trigger: Trigger
    actions: list[Action]
    created_at: datetime
    last_executed_at: datetime | None
    execution_count: int
    next_run_at: datetime | None = None


class RuleDeleteResponse(BaseModel):
    """Schema for rule deletion response."""

    rule_id: str
    store_error: str | None = Field(default=None, description="Set when the durable delete failed")


class TemplateInstantiate(BaseModel):
    """Overrides applied when creating a rule from a template."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    enabled: bool | None = None
    trigger: dict[str, Any] | None = None
    actions: list[dict[str, Any]] | None = None


class TemplateResponse(BaseModel):
    """Schema for a catalogue template."""

    id: str
    name: str
    description: str
    category: str
    trigger: dict[str, Any]
    actions: list[dict[str, Any]]
