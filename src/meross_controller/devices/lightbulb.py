"""Local-network light bulbs (MSL colour bulbs and plain dimmable bulbs)."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from typing_extensions import override

from meross_controller.const import (
    ADAPTIVE_LIGHTING_MIRED_THRESHOLD,
    COLOUR_MODELS,
    NS_CONTROL_LIGHT,
    NS_CONTROL_TOGGLEX,
    NS_SYSTEM_ALL,
    NS_SYSTEM_ONLINE,
    ONLINE_ONLY_MODELS,
    SINGLE_TOGGLE_MODELS,
)
from meross_controller.converters import (
    device_temp_to_mired,
    hs_to_rgb,
    mired_to_device_temp,
    mired_to_kelvin,
    pack_rgb,
    rgb_to_hs,
    to_luminance,
    unpack_rgb,
)
from meross_controller.devices.base_device import MerossDevice, WriteHandler
from meross_controller.structs import (
    Characteristic,
    CharacteristicCache,
    CommandPayload,
    LightState,
    StatusDigest,
    ToggleState,
)

if TYPE_CHECKING:
    from meross_controller.structs import DeviceAccessory


def is_colour_model(accessory: DeviceAccessory) -> bool:
    return accessory.model.upper() in COLOUR_MODELS


class MerossLightbulb(MerossDevice):
    """Bulb with power, brightness and, on colour models, hue and colour temperature."""

    push_keys: ClassVar[tuple[str, ...]] = ("togglex", "toggle", "light")

    @property
    @override
    def status_namespace(self) -> str:
        if self.accessory.model.upper() in ONLINE_ONLY_MODELS:
            return NS_SYSTEM_ONLINE
        return NS_SYSTEM_ALL

    @property
    def is_colour(self) -> bool:
        return is_colour_model(self.accessory)

    @override
    def _seed_cache(self) -> CharacteristicCache:
        return CharacteristicCache(
            power=bool(self._hub_value(Characteristic.ON, False)),
            brightness=int(self._hub_value(Characteristic.BRIGHTNESS, 0)),
            hue=int(self._hub_value(Characteristic.HUE, 0)),
            saturation=int(self._hub_value(Characteristic.SATURATION, 0)),
            mired=int(self._hub_value(Characteristic.COLOR_TEMPERATURE, 140)),
        )

    @override
    def namespace_for(self, characteristic: Characteristic) -> str:
        if characteristic is Characteristic.ON:
            return NS_CONTROL_TOGGLEX
        return NS_CONTROL_LIGHT

    @override
    def write_handlers(self) -> dict[Characteristic, WriteHandler]:
        handlers: dict[Characteristic, WriteHandler] = {
            Characteristic.ON: self.set_power,
            Characteristic.BRIGHTNESS: self.set_brightness,
        }
        if self.is_colour:
            handlers[Characteristic.HUE] = self.set_hue
            handlers[Characteristic.COLOR_TEMPERATURE] = self.set_color_temperature
        return handlers

    def _adaptive_lighting_active(self) -> bool:
        return self.adaptive_lighting is not None and self.adaptive_lighting.is_active()

    def _disable_adaptive_lighting(self, reason: str) -> None:
        if self.adaptive_lighting is None or not self.adaptive_lighting.is_active():
            return
        self.adaptive_lighting.disable()
        self._log_state("adaptive lighting disabled %s", reason)

    # -- writes --------------------------------------------------------------

    async def set_power(self, value: object) -> None:
        new_value = bool(value)

        async def _send() -> None:
            self._log_debug("sending request for state [%s]", "on" if new_value else "off")
            _ = await self._send(
                CommandPayload(
                    namespace=NS_CONTROL_TOGGLEX,
                    payload={"togglex": {"onoff": 1 if new_value else 0, "channel": self.channel}},
                    channel=self.channel,
                )
            )
            self.cache.power = new_value
            self._log_state("current state [%s]", "on" if new_value else "off")

        await self._update_characteristic(
            Characteristic.ON,
            is_noop=lambda: self.cache.power == new_value,
            send=_send,
            revert_value=lambda: self.cache.power,
        )

    async def set_brightness(self, value: float) -> None:
        luminance = to_luminance(value)

        async def _send() -> None:
            self._log_debug("sending request for brightness [%s%%]", luminance)
            light: dict[str, int] = {"luminance": luminance}
            if self.is_colour:
                light["capacity"] = 4
            _ = await self._send(
                CommandPayload(namespace=NS_CONTROL_LIGHT, payload={"light": light}, channel=self.channel)
            )
            self.cache.brightness = luminance
            self._log_state("current brightness [%s%%]", luminance)

        await self._update_characteristic(
            Characteristic.BRIGHTNESS,
            is_noop=lambda: self.cache.brightness == luminance,
            send=_send,
            revert_value=lambda: self.cache.brightness,
        )

    def _hub_saturation(self) -> int:
        return int(self._hub_value(Characteristic.SATURATION, self.cache.saturation))

    async def set_hue(self, value: float) -> None:
        hue = int(value)

        async def _send() -> None:
            self._log_debug("sending request for hue [%s]", hue)
            # Saturation is written by the hub alongside hue but only sent with it
            saturation = self._hub_saturation()
            r, g, b = hs_to_rgb(hue, saturation)
            _ = await self._send(
                CommandPayload(
                    namespace=NS_CONTROL_LIGHT,
                    payload={"light": {"rgb": pack_rgb(r, g, b), "capacity": 1, "luminance": self.cache.brightness}},
                    channel=self.channel,
                )
            )
            self.cache.hue = hue
            self.cache.saturation = saturation
            self._log_state("current hue/sat [%s/%s] rgb [%s, %s, %s]", hue, saturation, r, g, b)

        await self._update_characteristic(
            Characteristic.HUE,
            is_noop=lambda: self.cache.hue == hue and self.cache.saturation == self._hub_saturation(),
            send=_send,
            revert_value=lambda: self.cache.hue,
            also_revert={Characteristic.SATURATION: lambda: self.cache.saturation},
        )

    async def set_color_temperature(self, value: float) -> None:
        mired = int(value)

        async def _send() -> None:
            self._log_debug("sending request for mired [%s]", mired)
            _ = await self._send(
                CommandPayload(
                    namespace=NS_CONTROL_LIGHT,
                    payload={"light": {"temperature": mired_to_device_temp(mired), "capacity": 2}},
                    channel=self.channel,
                )
            )
            self.cache.mired = mired
            self._log_state(
                "current mired/kelvin [%s/%s]%s",
                mired,
                mired_to_kelvin(mired),
                " via adaptive lighting" if self._adaptive_lighting_active() else "",
            )

        # Colour temperature is meaningless while the bulb is off
        await self._update_characteristic(
            Characteristic.COLOR_TEMPERATURE,
            is_noop=lambda: not self.cache.power or self.cache.mired == mired,
            send=_send,
            revert_value=lambda: self.cache.mired,
        )

    # -- reconcile -----------------------------------------------------------

    def _power_state(self, digest: StatusDigest) -> ToggleState | None:
        if self.accessory.model.upper() in SINGLE_TOGGLE_MODELS:
            return digest.toggle
        return digest.togglex_for(self.channel)

    @override
    def apply_update(self, digest: StatusDigest) -> None:
        power = self._power_state(digest)
        if power is not None and power.onoff is not None:
            new_power = power.onoff == 1
            if self.cache.power != new_power:
                self.cache.power = new_power
                self.hub.update_value(Characteristic.ON, new_power)
                self._log_state("current state [%s]", "on" if new_power else "off")

        if digest.light is not None:
            self._apply_light(digest.light)

    def _apply_light(self, light: LightState) -> None:
        if light.luminance is not None:
            new_bright = to_luminance(light.luminance)
            if self.cache.brightness != new_bright:
                self.cache.brightness = new_bright
                self.hub.update_value(Characteristic.BRIGHTNESS, new_bright)
                self._log_state("current brightness [%s%%]", new_bright)

        if light.rgb is not None:
            r, g, b = unpack_rgb(light.rgb)
            new_hue, new_sat = rgb_to_hs(r, g, b)
            if self.cache.hue != new_hue or self.cache.saturation != new_sat:
                self.cache.hue = new_hue
                self.cache.saturation = new_sat
                self.hub.update_value(Characteristic.HUE, new_hue)
                self.hub.update_value(Characteristic.SATURATION, new_sat)
                self._log_state("current hue/sat [%s/%s] rgb [%s, %s, %s]", new_hue, new_sat, r, g, b)
            self._disable_adaptive_lighting("as RGB colour chosen")

        if light.temperature is not None:
            new_mired = device_temp_to_mired(light.temperature)
            if self.cache.mired != new_mired:
                difference = abs(self.cache.mired - new_mired)
                self.cache.mired = new_mired
                self.hub.update_value(Characteristic.COLOR_TEMPERATURE, new_mired)
                self._log_state("current mired/kelvin [%s/%s]", new_mired, mired_to_kelvin(new_mired))
                if difference > ADAPTIVE_LIGHTING_MIRED_THRESHOLD:
                    self._disable_adaptive_lighting("due to change of mired")
