"""Execution and trigger API schemas."""

from pydantic import BaseModel, ConfigDict, Field

from autorules.models.event import EmailEvent
from autorules.models.execution import ExecutionRecord


class EmailTriggerRequest(BaseModel):
    """Schema for submitting an inbound email for matching."""

    model_config = ConfigDict(populate_by_name=True)

    subject: str = Field(default="", max_length=1000, description="Email subject")
    body: str = Field(default="", description="Email body text")
    sender: str = Field(default="", alias="from", description="Sender address")

    def to_event(self, owner_id: str) -> EmailEvent:
        return EmailEvent(owner_id=owner_id, subject=self.subject, body=self.body, sender=self.sender)


class EmailTriggerResponse(BaseModel):
    """Schema for the rules an email matched."""

    matched_rule_ids: list[str] = Field(default_factory=list)


class ExecutionResponse(BaseModel):
    """Schema for a manual execution result."""

    success: bool
    message: str
    execution_log: ExecutionRecord | None = None
