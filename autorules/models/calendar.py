"""Calendar entry model written by calendar actions."""

from datetime import datetime, timedelta

from pydantic import BaseModel, Field, model_validator

from autorules.models.rule import utcnow


class CalendarEntry(BaseModel):
    """A calendar entry owned by a user."""

    entry_id: str = Field(default="", description="Entry identifier (assigned on create)")
    owner_id: str = Field(..., description="Owning user")
    title: str = Field(..., min_length=1)
    start_date: datetime
    end_date: datetime | None = None
    location: str = ""
    description: str = ""
    attendees: list[str] = Field(default_factory=list)
    all_day: bool = False
    source_execution_id: str | None = Field(
        default=None,
        description="Execution that created the entry",
    )
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def default_end_date(self) -> "CalendarEntry":
        """One hour long unless told otherwise."""
        if self.end_date is None:
            self.end_date = self.start_date + timedelta(hours=1)
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self
