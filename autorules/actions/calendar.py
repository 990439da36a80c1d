"""Calendar entry actions."""

from typing import Any

from pydantic import ValidationError

from autorules.actions.base import ActionExecutor, ActionResult
from autorules.core.errors import ActionError
from autorules.models.calendar import CalendarEntry
from autorules.models.execution import ExecutionContext
from autorules.models.rule import ActionKind
from autorules.storage.calendar_store import CalendarStoreProtocol

# Workflow designer field names -> CalendarEntry field names
_FIELD_ALIASES = {
    "startDate": "start_date",
    "endDate": "end_date",
    "allDay": "all_day",
}


def _normalise(values: dict[str, Any]) -> dict[str, Any]:
    return {_FIELD_ALIASES.get(key, key): value for key, value in values.items()}


class CreateCalendarEntryExecutor(ActionExecutor):
    """Create a calendar entry for the rule's owner."""

    def __init__(self, store: CalendarStoreProtocol):
        self._store = store

    @property
    def action_kind(self) -> ActionKind:
        return ActionKind.CREATE_CALENDAR_ENTRY

    async def execute(self, config: dict[str, Any], context: ExecutionContext) -> ActionResult:
        fields = _normalise(config)
        try:
            entry = CalendarEntry(
                owner_id=context.owner_id,
                title=fields.get("title", ""),
                start_date=fields.get("start_date"),
                end_date=fields.get("end_date"),
                location=fields.get("location") or "",
                description=fields.get("description") or "",
                attendees=fields.get("attendees") or [],
                all_day=bool(fields.get("all_day", False)),
                source_execution_id=context.execution_id,
            )
        except ValidationError as e:
            raise ActionError(
                f"Invalid calendar entry: {e.error_count()} validation error(s)",
                action_kind=self.action_kind.value,
                errors=[err["msg"] for err in e.errors()],
            ) from e

        entry_id = await self._store.create(entry)
        return ActionResult(
            message=f"Calendar entry created: {entry.title}",
            details={"entry_id": entry_id, "start_date": entry.start_date.isoformat()},
        )


class UpdateCalendarEntryExecutor(ActionExecutor):
    """Apply ``updates`` to the calendar entry ``eventId``."""

    def __init__(self, store: CalendarStoreProtocol):
        self._store = store

    @property
    def action_kind(self) -> ActionKind:
        return ActionKind.UPDATE_CALENDAR_ENTRY

    async def execute(self, config: dict[str, Any], context: ExecutionContext) -> ActionResult:
        entry_id = config.get("eventId") or config.get("event_id")
        if not entry_id:
            raise ActionError("Missing eventId", action_kind=self.action_kind.value)

        updates = config.get("updates") or {}
        if not isinstance(updates, dict):
            raise ActionError("updates must be an object", action_kind=self.action_kind.value)

        try:
            updated = await self._store.update(str(entry_id), _normalise(updates))
        except ValidationError as e:
            raise ActionError(
                "Invalid calendar entry update",
                action_kind=self.action_kind.value,
                errors=[err["msg"] for err in e.errors()],
            ) from e

        if updated is None:
            raise ActionError(
                f"Calendar event {entry_id} not found",
                action_kind=self.action_kind.value,
            )

        return ActionResult(
            message=f"Calendar entry updated: {entry_id}",
            details={"entry_id": entry_id, "fields": sorted(updates)},
        )
