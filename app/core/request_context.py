from __future__ import annotations

from contextvars import ContextVar
from typing import Optional

CONTEXT_FIELDS = ("request_id", "session_id", "user_id")

_CONTEXT: dict[str, ContextVar[Optional[str]]] = {
    field: ContextVar(field, default=None) for field in CONTEXT_FIELDS
}


def set_request_context(**values: Optional[str]) -> None:
    """Bind per-request identifiers; ``None`` values leave the current binding alone."""
    for field, value in values.items():
        if field not in _CONTEXT:
            raise KeyError(f"unknown request context field: {field}")
        if value is not None:
            _CONTEXT[field].set(value)


def get_request_context() -> dict[str, Optional[str]]:
    return {field: var.get() for field, var in _CONTEXT.items()}


def get_request_id() -> Optional[str]:
    return _CONTEXT["request_id"].get()


def clear_request_context() -> None:
    for var in _CONTEXT.values():
        var.set(None)
