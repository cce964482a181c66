"""Data structures shared by the device pipeline, the reconcile loop and collaborators."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class Characteristic(StrEnum):
    """Hub characteristics the adapter reads and writes."""

    ON = "On"
    BRIGHTNESS = "Brightness"
    HUE = "Hue"
    SATURATION = "Saturation"
    COLOR_TEMPERATURE = "ColorTemperature"
    ROTATION_SPEED = "RotationSpeed"


class DeviceAccessory(BaseModel):
    """Persisted context of one physical appliance.

    Owned by the hub; devices hold a reference and mutate the identity and
    connectivity fields, then ask the platform to persist them.
    """

    device_id: str
    name: str
    model: str
    channel: int = 0
    connection: Literal["local", "cloud"] = "local"
    is_online: bool = False
    ip_address: str | None = None
    mac_address: str | None = None
    hardware: str | None = None
    firmware: str | None = None
    enable_logging: bool = True
    enable_debug_logging: bool = False


@dataclass
class CharacteristicCache:
    """Last confirmed or observed value of every controllable characteristic.

    Never holds an in-flight value: writes commit only after the device confirms.
    """

    power: bool = False
    brightness: int = 0
    hue: int = 0
    saturation: int = 0
    mired: int = 140
    fan_state: bool = False
    # spray mode, not a percentage
    fan_mode: int = 0


class WriteIntent(BaseModel):
    """A hub request to change one characteristic."""

    model_config = ConfigDict(frozen=True)

    characteristic: Characteristic
    value: bool | int | float


class CommandPayload(BaseModel):
    """Outbound command envelope."""

    namespace: str
    payload: dict[str, Any] = Field(default_factory=dict)
    channel: int = 0


class ResponseHeader(BaseModel):
    method: str
    namespace: str | None = None
    message_id: str | None = Field(default=None, alias="messageId")


class CommandResponse(BaseModel):
    """Device response to a command, as returned by the transport under `data`."""

    header: ResponseHeader | None = None
    payload: dict[str, Any] | None = None

    @classmethod
    def from_result(cls, result: Mapping[str, Any] | None) -> CommandResponse:
        """Build from a transport result `{"data": {"header": ..., "payload": ...}}`.

        Anything that is not a well-formed header yields a response with no header.
        """
        data = result.get("data") if isinstance(result, Mapping) else None
        if not isinstance(data, Mapping):
            return cls()
        header = data.get("header")
        payload = data.get("payload")
        return cls(
            header=ResponseHeader.model_validate(header)
            if isinstance(header, Mapping) and isinstance(header.get("method"), str)
            else None,
            payload=dict(payload) if isinstance(payload, Mapping) else None,
        )

    @property
    def success(self) -> bool:
        return self.header is not None and self.header.method != "ERROR"

    @property
    def error_detail(self) -> str:
        if not self.payload or "error" not in self.payload:
            return ""
        return json.dumps(self.payload["error"], default=str)


class ToggleState(BaseModel):
    onoff: int | None = None
    channel: int = 0


class LightState(BaseModel):
    luminance: int | None = None
    rgb: int | None = None
    temperature: int | None = None
    capacity: int | None = None
    channel: int = 0


class SprayState(BaseModel):
    mode: int | None = None
    channel: int = 0


class StatusDigest(BaseModel):
    """Per-capability status, as found in `all.digest` or in a push payload."""

    toggle: ToggleState | None = None
    togglex: list[ToggleState] | None = None
    light: LightState | None = None
    spray: list[SprayState] | None = None

    def togglex_for(self, channel: int) -> ToggleState | None:
        """Return the togglex entry for a channel, falling back to list position."""
        if not self.togglex:
            return None
        for entry in self.togglex:
            if entry.channel == channel:
                return entry
        if 0 <= channel < len(self.togglex):
            return self.togglex[channel]
        return None


class HardwareInfo(BaseModel):
    mac_address: str | None = Field(default=None, alias="macAddress")
    version: str | None = None


class FirmwareInfo(BaseModel):
    version: str | None = None
    inner_ip: str | None = Field(default=None, alias="innerIp")


class OnlineInfo(BaseModel):
    status: int | None = None


class SystemInfo(BaseModel):
    hardware: HardwareInfo | None = None
    firmware: FirmwareInfo | None = None
    online: OnlineInfo | None = None


class SystemAll(BaseModel):
    """Body of an `Appliance.System.All` response (`payload.all`)."""

    system: SystemInfo | None = None
    digest: StatusDigest | None = None


class StatusPayload(BaseModel):
    """Payload of a full or online-only status query."""

    all: SystemAll | None = None
    online: OnlineInfo | None = None
