"""Collaborator interfaces consumed by the device core.

The transport, hub characteristic API, persisted-context store and adaptive
lighting controller live outside this package; devices only talk to them
through these protocols.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from meross_controller.config import PlatformConfig
    from meross_controller.structs import Characteristic, CommandPayload, DeviceAccessory


@runtime_checkable
class Platform(Protocol):
    """Transport and persistence services shared by every device."""

    config: PlatformConfig

    async def send_update(self, accessory: DeviceAccessory, command: CommandPayload) -> Mapping[str, Any]:
        """Send a control command; returns `{"data": {"header": ..., "payload": ...}}` or raises."""
        ...

    async def request_update(self, accessory: DeviceAccessory, namespace: str) -> Mapping[str, Any]:
        """Query device status; returns `{"data": {...}}` or raises."""
        ...

    def update_accessory(self, accessory: DeviceAccessory) -> None:
        """Persist the accessory context."""
        ...


@runtime_checkable
class CharacteristicService(Protocol):
    """Hub-visible characteristics of one accessory service."""

    def get_value(self, characteristic: Characteristic) -> Any:
        ...

    def update_value(self, characteristic: Characteristic, value: Any) -> None:
        """Push a value to the hub without triggering the write handler."""
        ...


@runtime_checkable
class AdaptiveLightingController(Protocol):
    def is_active(self) -> bool:
        ...

    def disable(self) -> None:
        ...
