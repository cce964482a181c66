"""Device classes and the model-based factory."""

from __future__ import annotations

from typing import TYPE_CHECKING

from meross_controller.const import HUMIDIFIER_MODELS
from meross_controller.devices.base_device import MerossDevice
from meross_controller.devices.humidifier import MerossHumidifier
from meross_controller.devices.lightbulb import MerossLightbulb, is_colour_model

if TYPE_CHECKING:
    from meross_controller.interfaces import AdaptiveLightingController, CharacteristicService, Platform
    from meross_controller.structs import DeviceAccessory

__all__ = ["MerossDevice", "MerossHumidifier", "MerossLightbulb", "create_device"]


def create_device(
    platform: Platform,
    accessory: DeviceAccessory,
    hub: CharacteristicService,
    adaptive_lighting: AdaptiveLightingController | None = None,
) -> MerossDevice:
    """Create the device class matching the accessory model.

    Humidifier models get `MerossHumidifier`; everything else is treated as a
    light bulb. Adaptive lighting is only attached to colour bulbs.
    """
    if accessory.model.upper() in HUMIDIFIER_MODELS:
        return MerossHumidifier(platform, accessory, hub)
    return MerossLightbulb(
        platform,
        accessory,
        hub,
        adaptive_lighting=adaptive_lighting if is_colour_model(accessory) else None,
    )
