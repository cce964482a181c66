"""Shared fixtures for unit tests.

Provides in-memory stand-ins for the transport platform, the hub characteristic
service and the adaptive lighting controller, plus device factories with short
debounce and revert delays.
"""

import asyncio
from collections.abc import Callable, Mapping
from typing import Any

import pytest

from meross_controller.config import PlatformConfig
from meross_controller.devices import MerossHumidifier, MerossLightbulb
from meross_controller.structs import Characteristic, CommandPayload, DeviceAccessory

TEST_DEBOUNCE_DELAY = 0.01
TEST_REVERT_DELAY = 0.05

JSONDict = dict[str, Any]


def ok_response(namespace: str = "Appliance.Control.Light") -> JSONDict:
    return {"data": {"header": {"method": "SETACK", "namespace": namespace, "messageId": "abc"}, "payload": {}}}


def error_response(error: Mapping[str, Any]) -> JSONDict:
    return {"data": {"header": {"method": "ERROR", "namespace": "Appliance.Control.Light"}, "payload": {"error": dict(error)}}}


def status_response(
    digest: Mapping[str, Any] | None = None,
    system: Mapping[str, Any] | None = None,
) -> JSONDict:
    all_payload: JSONDict = {}
    if digest is not None:
        all_payload["digest"] = dict(digest)
    if system is not None:
        all_payload["system"] = dict(system)
    return {"data": {"header": {"method": "GETACK", "namespace": "Appliance.System.All"}, "payload": {"all": all_payload}}}


class FakePlatform:
    """Records commands and replays scripted results (a dict or an exception)."""

    def __init__(self, config: PlatformConfig | None = None) -> None:
        self.config: PlatformConfig = config or PlatformConfig(refresh_rate=0, cloud_refresh_rate=0, push_rate=0)
        self.sent: list[CommandPayload] = []
        self.send_results: list[JSONDict | BaseException] = []
        self.send_delay: float = 0.0
        self.polled: list[str] = []
        self.poll_results: list[JSONDict | BaseException] = []
        self.updated: list[DeviceAccessory] = []

    async def send_update(self, accessory: DeviceAccessory, command: CommandPayload) -> JSONDict:
        self.sent.append(command)
        if self.send_delay:
            await asyncio.sleep(self.send_delay)
        result = self.send_results.pop(0) if self.send_results else ok_response(command.namespace)
        if isinstance(result, BaseException):
            raise result
        return result

    async def request_update(self, accessory: DeviceAccessory, namespace: str) -> JSONDict:
        self.polled.append(namespace)
        result = self.poll_results.pop(0) if self.poll_results else status_response()
        if isinstance(result, BaseException):
            raise result
        return result

    def update_accessory(self, accessory: DeviceAccessory) -> None:
        self.updated.append(accessory.model_copy())


class FakeHub:
    """Characteristic values as the hub sees them, with a log of pushes."""

    def __init__(self, values: Mapping[Characteristic, Any] | None = None) -> None:
        self.values: dict[Characteristic, Any] = dict(values or {})
        self.updates: list[tuple[Characteristic, Any]] = []

    def get_value(self, characteristic: Characteristic) -> Any:
        return self.values.get(characteristic)

    def update_value(self, characteristic: Characteristic, value: Any) -> None:
        self.values[characteristic] = value
        self.updates.append((characteristic, value))

    def pushed(self, characteristic: Characteristic) -> list[Any]:
        return [value for char, value in self.updates if char == characteristic]


class FakeAdaptiveLighting:
    def __init__(self, active: bool = True) -> None:
        self.active: bool = active
        self.disable_calls: int = 0

    def is_active(self) -> bool:
        return self.active

    def disable(self) -> None:
        self.active = False
        self.disable_calls += 1


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def hub() -> FakeHub:
    return FakeHub()


@pytest.fixture
def adaptive_lighting() -> FakeAdaptiveLighting:
    return FakeAdaptiveLighting()


def make_accessory(model: str = "MSL120", **overrides: Any) -> DeviceAccessory:
    fields: JSONDict = {"device_id": "dev-1", "name": "Desk Lamp", "model": model, "ip_address": "192.168.1.40"}
    fields.update(overrides)
    return DeviceAccessory(**fields)


@pytest.fixture
def make_bulb(platform: FakePlatform, hub: FakeHub) -> Callable[..., MerossLightbulb]:
    """Build a light bulb wired to the shared fake platform and hub."""

    def _make(
        model: str = "MSL120",
        adaptive_lighting: FakeAdaptiveLighting | None = None,
        **accessory_fields: Any,
    ) -> MerossLightbulb:
        bulb = MerossLightbulb(platform, make_accessory(model, **accessory_fields), hub, adaptive_lighting=adaptive_lighting)
        bulb.debounce_delay = TEST_DEBOUNCE_DELAY
        bulb.revert_delay = TEST_REVERT_DELAY
        return bulb

    return _make


@pytest.fixture
def make_humidifier(platform: FakePlatform, hub: FakeHub) -> Callable[..., MerossHumidifier]:
    def _make(model: str = "MOD100", **accessory_fields: Any) -> MerossHumidifier:
        accessory_fields.setdefault("name", "Diffuser")
        device = MerossHumidifier(platform, make_accessory(model, **accessory_fields), hub)
        device.debounce_delay = TEST_DEBOUNCE_DELAY
        device.revert_delay = TEST_REVERT_DELAY
        return device

    return _make
