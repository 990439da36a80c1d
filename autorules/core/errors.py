"""Engine error hierarchy."""

from typing import Any


class AutomationError(Exception):
    """Base error for the automation engine."""

    code = "AUTOMATION_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class RuleNotFoundError(AutomationError):
    """Rule does not exist (or is not visible to the caller)."""

    code = "RULE_NOT_FOUND"

    def __init__(self, rule_id: str):
        super().__init__(f"Rule {rule_id} not found", {"rule_id": rule_id})
        self.rule_id = rule_id


class StoreUnavailableError(AutomationError):
    """Durable store could not be read or written."""

    code = "STORE_UNAVAILABLE"

    def __init__(self, operation: str, cause: Exception | None = None):
        super().__init__(
            f"Store unavailable during {operation}",
            {"operation": operation, "cause": str(cause) if cause else None},
        )
        self.operation = operation


class ActionError(AutomationError):
    """An action executor could not complete its action."""

    code = "ACTION_FAILED"

    def __init__(self, message: str, action_kind: str | None = None, **details: Any):
        super().__init__(message, {"action_kind": action_kind, **details})
        self.action_kind = action_kind


class UnknownActionError(ActionError):
    """No executor is registered for the action kind."""

    code = "UNKNOWN_ACTION"

    def __init__(self, action_kind: str):
        super().__init__(f"Unknown action type: {action_kind}", action_kind=action_kind)


class TemplateNotFoundError(AutomationError):
    """Requested rule template is not in the catalogue."""

    code = "TEMPLATE_NOT_FOUND"

    def __init__(self, template_id: str):
        super().__init__(f"Template {template_id} not found", {"template_id": template_id})
        self.template_id = template_id
