"""Condition evaluation for conditional actions.

Supported shapes:

- a literal boolean, or a boolean-as-string (only the exact ``"true"`` is true)
- ``{"type": "equals" | "contains" | "greater_than" | "less_than",
  "field": ..., "value": ...}`` compared against ``trigger_data[field]``
- ``{"type": "expression", "expression": "..."}`` evaluated with simpleeval

Anything else evaluates to False. Evaluation never raises.
"""

from typing import Any

from autorules.core.logging import get_logger
from autorules.engine.expression import evaluate_expression

logger = get_logger(__name__)

_MISSING = object()


def lookup_field(data: dict[str, Any], field: str) -> Any:
    """Resolve ``field`` in trigger data, falling back to a dotted path."""
    if field in data:
        return data[field]
    current: Any = data
    for part in field.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str):
        return isinstance(expected, str) and expected in actual
    if isinstance(actual, (list, tuple, set, frozenset, dict)):
        try:
            return expected in actual
        except TypeError:
            # unhashable value tested against a set or dict
            return False
    return False


def _compare(condition_type: str, actual: Any, expected: Any) -> bool:
    if actual is _MISSING:
        return False
    if condition_type == "equals":
        return actual == expected
    if condition_type == "contains":
        return _contains(actual, expected)
    try:
        if condition_type == "greater_than":
            return bool(actual > expected)
        if condition_type == "less_than":
            return bool(actual < expected)
    except TypeError:
        return False
    return False


def evaluate_condition(condition: Any, trigger_data: dict[str, Any]) -> bool:
    """Evaluate a conditional action's condition against trigger data."""
    if isinstance(condition, bool):
        return condition

    if isinstance(condition, str):
        return condition == "true"

    if not isinstance(condition, dict):
        return False

    condition_type = condition.get("type")

    if condition_type == "expression":
        expression = condition.get("expression")
        if not isinstance(expression, str):
            return False
        try:
            return evaluate_expression(expression, trigger_data)
        except ValueError:
            logger.warning("Condition expression could not be evaluated", expression=expression)
            return False

    if condition_type in ("equals", "contains", "greater_than", "less_than"):
        field = condition.get("field")
        if not isinstance(field, str):
            return False
        return _compare(condition_type, lookup_field(trigger_data, field), condition.get("value"))

    logger.debug("Unsupported condition shape", condition_type=condition_type)
    return False
