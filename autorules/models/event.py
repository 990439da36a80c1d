"""Inbound event models."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EmailEvent(BaseModel):
    """Inbound email produced by mail ingestion."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    owner_id: str = Field(..., min_length=1, description="Mailbox owner")
    subject: str = Field(default="", description="Email subject")
    body: str = Field(default="", description="Email body text")
    sender: str = Field(default="", alias="from", description="Sender address")

    @property
    def search_text(self) -> str:
        """Text the trigger patterns are tested against."""
        return f"{self.subject} {self.body}"

    def to_trigger_data(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class ManualInvocation(BaseModel):
    """Direct, on-demand execution request."""

    rule_id: str = Field(..., min_length=1, description="Rule to execute")
    trigger_data: dict[str, Any] = Field(default_factory=dict)
    owner_id: str | None = Field(default=None, description="Caller; must own the rule when set")
