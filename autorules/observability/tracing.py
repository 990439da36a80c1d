"""Execution tracing support."""

import uuid
from typing import Any

import structlog


def generate_trace_id() -> str:
    """Generate a new trace ID."""
    return uuid.uuid4().hex[:16]


class TraceContext:
    """Bind a trace ID plus extra fields to every log line in the block.

    Usage:
        with TraceContext(execution_id, rule_id=rule.id):
            ...
    """

    def __init__(self, trace_id: str | None = None, **fields: Any):
        self._trace_id = trace_id or generate_trace_id()
        self._fields = fields
        self._bound: dict[str, Any] = {}

    def __enter__(self) -> str:
        self._bound = structlog.contextvars.bind_contextvars(
            trace_id=self._trace_id,
            **self._fields,
        )
        return self._trace_id

    def __exit__(self, *args: Any) -> None:
        structlog.contextvars.reset_contextvars(**self._bound)
