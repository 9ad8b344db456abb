"""
Per-event correlation ids.

Each gateway event is handled inside :func:`event_context` so that every log
line emitted while projecting and publishing one snapshot carries the same id.
The id lives in a :class:`contextvars.ContextVar` and is therefore task-local.
"""

from __future__ import annotations

import contextvars
import uuid
from collections.abc import Generator
from contextlib import contextmanager

__all__ = [
    "current_event_id",
    "event_context",
    "new_event_id",
]

_event_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("event_id", default=None)


def new_event_id() -> str:
    """Return a fresh id (UUID4 hex, 32 characters)."""
    return uuid.uuid4().hex


def current_event_id() -> str | None:
    return _event_id.get()


@contextmanager
def event_context(event_id: str | None = None) -> Generator[str]:
    """
    Bind an event id for the duration of the block.

    Args:
        event_id: Id to bind; a new one is generated when omitted

    Yields:
        The bound id. The previous binding is restored on exit.
    """
    bound = event_id or new_event_id()
    token = _event_id.set(bound)
    try:
        yield bound
    finally:
        _event_id.reset(token)
