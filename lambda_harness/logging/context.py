"""Context variables for invocation-scoped logging data.

contextvars are copied into every task the harness spawns, so the work
branch and the deadline watcher of one invocation log with the same fields.
"""

from contextvars import ContextVar
from typing import Any

correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")

_extra_context: ContextVar[dict[str, Any] | None] = ContextVar("extra_context", default=None)


def get_correlation_id() -> str:
    """Get the correlation ID (Lambda request id) of the current invocation."""
    return correlation_id.get()


def set_correlation_id(value: str) -> None:
    """Set the correlation ID for the current context."""
    correlation_id.set(value)


def get_extra_context() -> dict[str, Any]:
    """Get a copy of the extra fields attached to every log record."""
    context = _extra_context.get()
    if context is None:
        return {}
    return context.copy()


def set_extra_context(**kwargs: Any) -> None:
    """Attach additional fields to every log record of this context.

    Args:
        **kwargs: Key-value pairs to include in log messages.
    """
    current = _extra_context.get()
    current = {} if current is None else current.copy()
    current.update(kwargs)
    _extra_context.set(current)


def clear_context() -> None:
    """Clear all context (correlation ID and extra context)."""
    correlation_id.set("")
    _extra_context.set(None)
