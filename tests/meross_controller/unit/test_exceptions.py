"""Unit tests for the error hierarchy and error classification helpers."""

import errno

import pytest

from meross_controller.exceptions import (
    CommandTimeoutError,
    ConfigError,
    DeviceConnectionError,
    HubStatusError,
    MerossError,
    ProtocolFailureError,
    is_unreachable,
    parse_error,
)


def test_hierarchy() -> None:
    for err in (
        ProtocolFailureError("x"),
        CommandTimeoutError(10),
        DeviceConnectionError("EHOSTUNREACH"),
        HubStatusError(),
        ConfigError("bad"),
    ):
        assert isinstance(err, MerossError)


def test_messages() -> None:
    assert str(ProtocolFailureError('{"code": 5000}')) == 'request failed - {"code": 5000}'
    assert str(ProtocolFailureError()) == "request failed"
    assert str(CommandTimeoutError(10)) == "the request timed out after 10s"
    assert HubStatusError().status == -70402


@pytest.mark.parametrize(
    ("err", "expected"),
    [
        (ProtocolFailureError("{}"), "request failed - {}"),
        (TimeoutError(), "the request timed out"),
        (ValueError("bad body"), "bad body"),
        (RuntimeError(), "RuntimeError"),
    ],
)
def test_parse_error(err: Exception, expected: str) -> None:
    assert parse_error(err) == expected


@pytest.mark.parametrize(
    "err",
    [
        CommandTimeoutError(10),
        TimeoutError(),
        OSError(errno.EHOSTUNREACH, "No route to host"),
        OSError("connect EHOSTUNREACH 192.168.1.40:80"),
        DeviceConnectionError("EHOSTUNREACH"),
        DeviceConnectionError("ETIMEDOUT"),
        DeviceConnectionError("enetunreach"),
        RuntimeError("socket timed out"),
    ],
)
def test_unreachable_errors(err: Exception) -> None:
    assert is_unreachable(err) is True


@pytest.mark.parametrize(
    "err",
    [
        ProtocolFailureError('{"code": 5000}'),
        ValueError("bad body"),
        OSError(errno.ECONNREFUSED, "refused"),
        DeviceConnectionError("ECONNREFUSED"),
    ],
)
def test_reachable_errors(err: Exception) -> None:
    assert is_unreachable(err) is False
