"""Sandboxed expressions for conditional actions, evaluated with simpleeval."""

from typing import Any, Iterator

from simpleeval import EvalWithCompoundTypes

from autorules.core.logging import get_logger

logger = get_logger(__name__)

SAFE_FUNCTIONS = {
    "abs": abs,
    "bool": bool,
    "float": float,
    "int": int,
    "len": len,
    "lower": lambda value: str(value).lower(),
    "max": max,
    "min": min,
    "round": round,
    "str": str,
}


def _names(data: dict[str, Any], prefix: str = "") -> Iterator[tuple[str, Any]]:
    for key, value in data.items():
        path = f"{prefix}_{key}" if prefix else str(key)
        if isinstance(value, dict):
            yield from _names(value, path)
        else:
            yield str(key), value
            yield path, value


def expression_names(data: dict[str, Any]) -> dict[str, Any]:
    """Variables visible to an expression.

    Nested keys are joined with ``_``: ``{"email": {"subject": ...}}`` is
    reachable as ``email_subject`` and as the bare leaf ``subject``. Top-level
    dicts stay available too, so ``email['subject']`` also works.
    """
    names = dict(_names(data))
    for key, value in data.items():
        names.setdefault(str(key), value)
    return names


def evaluate_expression(expression: str, data: dict[str, Any]) -> bool:
    """Truthiness of ``expression`` against ``data``.

    Raises:
        ValueError: The expression does not parse or fails to evaluate
    """
    evaluator = EvalWithCompoundTypes(names=expression_names(data), functions=SAFE_FUNCTIONS)
    try:
        return bool(evaluator.eval(expression))
    except Exception as e:
        logger.debug("Expression failed", expression=expression, error=str(e))
        raise ValueError(f"Invalid expression: {expression}") from e
