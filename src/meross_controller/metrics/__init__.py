"""Metrics module."""

from .registry import (
    record_command,
    record_command_latency,
    record_debounce_superseded,
    record_online_state,
    record_poll,
    record_revert,
    start_metrics_server,
)

__all__ = [
    "record_command",
    "record_command_latency",
    "record_debounce_superseded",
    "record_online_state",
    "record_poll",
    "record_revert",
    "start_metrics_server",
]
