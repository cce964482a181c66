"""Humidifiers and diffusers, exposed to the hub as a fan with three speeds."""

from __future__ import annotations

from typing import ClassVar

from typing_extensions import override

from meross_controller.const import HUMIDIFIER_QUEUE_INTERVAL, NS_CONTROL_SPRAY
from meross_controller.converters import (
    FAN_MODE_OFF,
    fan_label,
    fan_mode_to_speed,
    fan_speed_to_mode,
    quantize_fan_speed,
)
from meross_controller.devices.base_device import MerossDevice, WriteHandler
from meross_controller.structs import Characteristic, CharacteristicCache, CommandPayload, StatusDigest


class MerossHumidifier(MerossDevice):
    """Spray device: on/off plus intermittent (50) or continuous (100) speed."""

    push_keys: ClassVar[tuple[str, ...]] = ("spray",)

    @property
    @override
    def queue_interval(self) -> float:
        return HUMIDIFIER_QUEUE_INTERVAL

    @override
    def _seed_cache(self) -> CharacteristicCache:
        return CharacteristicCache(
            fan_state=bool(self._hub_value(Characteristic.ON, False)),
            fan_mode=fan_speed_to_mode(self._hub_value(Characteristic.ROTATION_SPEED, 0)),
        )

    @override
    def namespace_for(self, characteristic: Characteristic) -> str:
        return NS_CONTROL_SPRAY

    @override
    def write_handlers(self) -> dict[Characteristic, WriteHandler]:
        return {
            Characteristic.ON: self.set_fan_state,
            Characteristic.ROTATION_SPEED: self.set_fan_speed,
        }

    def _spray_command(self, mode: int) -> CommandPayload:
        return CommandPayload(namespace=NS_CONTROL_SPRAY, payload={"spray": {"mode": mode, "channel": 0}})

    async def set_fan_state(self, value: object) -> None:
        new_value = bool(value)

        async def _send() -> None:
            # Turning on resumes the last running mode
            mode = max(self.cache.fan_mode, 1) if new_value else FAN_MODE_OFF
            self._log_debug("sending request for state [%s]", "on" if new_value else "off")
            _ = await self._send(self._spray_command(mode))
            self.cache.fan_state = new_value
            self._log_state("current state [%s]", "on" if new_value else "off")

        await self._update_characteristic(
            Characteristic.ON,
            is_noop=lambda: self.cache.fan_state == new_value,
            send=_send,
            revert_value=lambda: self.cache.fan_state,
        )

    async def set_fan_speed(self, value: float) -> None:
        """Set the spray mode from a hub rotation speed.

        Hub apps may send any percentage; the value is snapped to 0, 50 or 100
        first. A speed of 0 switches the spray off and, once the hub has settled,
        restores the hub slider to the last running mode so that switching back
        on does not jump to 100%.
        """
        speed = quantize_fan_speed(value)
        mode = fan_speed_to_mode(speed)

        def _is_noop() -> bool:
            if mode == FAN_MODE_OFF:
                return not self.cache.fan_state
            return self.cache.fan_state and self.cache.fan_mode == mode

        async def _send() -> None:
            self._log_debug("sending request for spray [%s]", fan_label(speed))
            _ = await self._send(self._spray_command(mode))
            if mode == FAN_MODE_OFF:
                self.cache.fan_state = False
                self._log_state("current state [off]")
                self.push_later(Characteristic.ROTATION_SPEED, lambda: fan_mode_to_speed(self.cache.fan_mode))
                return

            self.cache.fan_mode = mode
            if not self.cache.fan_state:
                self.cache.fan_state = True
                self.hub.update_value(Characteristic.ON, True)
            if speed != value:
                self.hub.update_value(Characteristic.ROTATION_SPEED, speed)
            self._log_state("current spray [%s]", fan_label(speed))

        if _is_noop():
            # The slider still snaps onto the running level
            if speed != value:
                self.hub.update_value(Characteristic.ROTATION_SPEED, speed)
            return

        await self._update_characteristic(
            Characteristic.ROTATION_SPEED,
            is_noop=_is_noop,
            send=_send,
            revert_value=lambda: fan_mode_to_speed(self.cache.fan_mode),
        )

    @override
    def apply_update(self, digest: StatusDigest) -> None:
        if not digest.spray or digest.spray[0].mode is None:
            return
        new_mode = digest.spray[0].mode
        if new_mode == FAN_MODE_OFF:
            if self.cache.fan_state:
                self.cache.fan_state = False
                self.hub.update_value(Characteristic.ON, False)
                self._log_state("current state [off]")
            return

        if not self.cache.fan_state:
            self.cache.fan_state = True
            self.hub.update_value(Characteristic.ON, True)
            self._log_state("current state [on]")
        if self.cache.fan_mode != new_mode:
            self.cache.fan_mode = new_mode
            speed = fan_mode_to_speed(new_mode)
            self.hub.update_value(Characteristic.ROTATION_SPEED, speed)
            self._log_state("current spray [%s]", fan_label(speed))
