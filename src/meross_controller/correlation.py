"""
Correlation ID tracking for device commands and polls.

Every write intent and every poll runs inside a correlation context so that the
debounce, queue, send and revert log lines of one operation can be grouped.
The command queue captures the submitter's ID and restores it while the task
runs on the queue worker.
"""

from __future__ import annotations

import contextvars
import uuid
from collections.abc import Generator
from contextlib import contextmanager

__all__ = [
    "correlation_context",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
]

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "meross_correlation_id",
    default=None,
)


def generate_correlation_id() -> str:
    """Return a new correlation ID (UUID4 hex, no dashes)."""
    return uuid.uuid4().hex


def get_correlation_id() -> str | None:
    """Return the correlation ID of the current context, if any."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None) -> None:
    """Set (or clear with None) the correlation ID of the current context."""
    _correlation_id.set(correlation_id)


@contextmanager
def correlation_context(
    correlation_id: str | None = None,
    auto_generate: bool = True,
) -> Generator[str | None]:
    """
    Scope a correlation ID and restore the previous one on exit.

    Args:
        correlation_id: ID to use; None generates one when auto_generate is set
        auto_generate: Generate a new ID if correlation_id is None

    Example:
        with correlation_context() as corr_id:
            await device.set_brightness(55)
    """
    previous_id = get_correlation_id()

    if correlation_id is None and auto_generate:
        correlation_id = generate_correlation_id()

    set_correlation_id(correlation_id)
    try:
        yield correlation_id
    finally:
        set_correlation_id(previous_id)
