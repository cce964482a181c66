"""Prometheus metrics registry for device commands and polling."""

import threading
from typing import Final

from prometheus_client import (  # type: ignore[import-untyped]
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from meross_controller.const import MEROSS_METRICS_PORT

meross_command_total: Final = Counter(  # type: ignore[assignment]
    "meross_command_total",
    "Total device commands by outcome",
    ["device_id", "namespace", "outcome"],
)

meross_command_latency_seconds: Final = Histogram(  # type: ignore[assignment]
    "meross_command_latency_seconds",
    "Device command round-trip latency in seconds",
    ["device_id"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0),
)

meross_debounce_superseded_total: Final = Counter(  # type: ignore[assignment]
    "meross_debounce_superseded_total",
    "Total writes abandoned because a newer write for the same characteristic arrived",
    ["device_id", "characteristic"],
)

meross_characteristic_revert_total: Final = Counter(  # type: ignore[assignment]
    "meross_characteristic_revert_total",
    "Total hub characteristics reverted after a failed write",
    ["device_id", "characteristic"],
)

meross_poll_total: Final = Counter(  # type: ignore[assignment]
    "meross_poll_total",
    "Total status polls by outcome",
    ["device_id", "outcome"],
)

meross_device_online: Final = Gauge(  # type: ignore[assignment]
    "meross_device_online",
    "Device online state (1 online, 0 offline)",
    ["device_id"],
)

_server_state = {"started": False}
_server_lock = threading.Lock()


def start_metrics_server(port: int = MEROSS_METRICS_PORT) -> None:
    """Start Prometheus HTTP metrics server (idempotent), on MEROSS_METRICS_PORT by default."""
    with _server_lock:
        if not _server_state["started"]:
            start_http_server(port)  # type: ignore[no-untyped-call]
            _server_state["started"] = True


def record_command(device_id: str, namespace: str, outcome: str) -> None:
    meross_command_total.labels(device_id=device_id, namespace=namespace, outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_command_latency(device_id: str, latency_seconds: float) -> None:
    meross_command_latency_seconds.labels(device_id=device_id).observe(latency_seconds)  # type: ignore[no-untyped-call]


def record_debounce_superseded(device_id: str, characteristic: str) -> None:
    meross_debounce_superseded_total.labels(device_id=device_id, characteristic=characteristic).inc()  # type: ignore[no-untyped-call]


def record_revert(device_id: str, characteristic: str) -> None:
    meross_characteristic_revert_total.labels(device_id=device_id, characteristic=characteristic).inc()  # type: ignore[no-untyped-call]


def record_poll(device_id: str, outcome: str) -> None:
    """Record a poll outcome: "ok", "skipped" or "failed"."""
    meross_poll_total.labels(device_id=device_id, outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_online_state(device_id: str, online: bool) -> None:
    meross_device_online.labels(device_id=device_id).set(1 if online else 0)  # type: ignore[no-untyped-call]
