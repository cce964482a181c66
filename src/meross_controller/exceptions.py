"""Exception hierarchy for the Meross device adapter.

Device writes raise typed errors inside the update pipeline; the pipeline turns
every failure into a single `HubStatusError` for the hub after scheduling the
characteristic revert. Poll failures never reach the hub.
"""

from __future__ import annotations

import errno

from meross_controller.const import HAP_SERVICE_COMMUNICATION_FAILURE, UNREACHABLE_MARKERS, UNREACHABLE_REASONS


class MerossError(Exception):
    """Base exception for all adapter errors."""


class ProtocolFailureError(MerossError):
    """Device answered, but not with a successful response.

    Raised when the response has no header or the header method is `ERROR`.

    Attributes:
        detail: Error detail embedded by the device (JSON text), if any

    """

    def __init__(self, detail: str = "") -> None:
        self.detail: str = detail
        super().__init__(f"request failed - {detail}" if detail else "request failed")


class CommandTimeoutError(MerossError):
    """A queued command exceeded the per-task timeout.

    Attributes:
        timeout_seconds: Timeout value that was exceeded

    """

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds: float = timeout_seconds
        super().__init__(f"the request timed out after {timeout_seconds:g}s")


class DeviceConnectionError(MerossError):
    """Transport could not reach the device (host unreachable, refused, ...).

    Transports may raise this to give the adapter a normalized reason.

    Attributes:
        reason: Transport failure reason, e.g. "EHOSTUNREACH"

    """

    def __init__(self, reason: str) -> None:
        self.reason: str = reason
        super().__init__(f"connection failed: {reason}")


class HubStatusError(MerossError):
    """Failure status reported back to the hub for a write intent.

    Attributes:
        status: HAP status code, SERVICE_COMMUNICATION_FAILURE by default

    """

    def __init__(self, status: int = HAP_SERVICE_COMMUNICATION_FAILURE) -> None:
        self.status: int = status
        super().__init__(f"hub status {status}")


class ConfigError(MerossError):
    """Platform configuration file is missing or invalid."""

    def __init__(self, reason: str) -> None:
        self.reason: str = reason
        super().__init__(f"invalid configuration: {reason}")


def parse_error(err: BaseException) -> str:
    """Return a short human-readable description of an error for log lines."""
    if isinstance(err, MerossError):
        return str(err)
    if isinstance(err, TimeoutError):
        return "the request timed out"
    text = str(err)
    return text if text else type(err).__name__


def is_unreachable(err: BaseException) -> bool:
    """Return True when an error means the device could not be reached."""
    if isinstance(err, (CommandTimeoutError, TimeoutError)):
        return True
    if isinstance(err, DeviceConnectionError):
        return err.reason.upper() in UNREACHABLE_REASONS
    if isinstance(err, OSError) and err.errno in (errno.EHOSTUNREACH, errno.ETIMEDOUT):
        return True
    text = parse_error(err)
    return any(marker in text for marker in UNREACHABLE_MARKERS)
