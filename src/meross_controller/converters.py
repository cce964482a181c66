"""Conversions between hub value ranges and Meross device encodings.

All functions are pure. Rounding is half-up to match the device firmware's
expectations (Python's round() would round half to even).
"""

from __future__ import annotations

import colorsys
import math

__all__ = [
    "device_temp_to_mired",
    "fan_label",
    "fan_mode_to_speed",
    "fan_speed_to_mode",
    "hs_to_rgb",
    "mired_to_device_temp",
    "mired_to_kelvin",
    "pack_rgb",
    "quantize_fan_speed",
    "rgb_to_hs",
    "to_luminance",
    "unpack_rgb",
]

BRIGHTNESS_MIN = 0
BRIGHTNESS_MAX = 100
MIRED_MIN = 140
MIRED_SPAN = 360
FAN_LOW_MAX = 75

FAN_MODE_OFF = 0
FAN_MODE_CONTINUOUS = 1
FAN_MODE_INTERMITTENT = 2


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def to_luminance(brightness: float) -> int:
    """Hub brightness (0-100) to device luminance, clamped."""
    return max(BRIGHTNESS_MIN, min(BRIGHTNESS_MAX, _round_half_up(brightness)))


def mired_to_device_temp(mired: float) -> int:
    """Hub mired (140-500) to device temperature (1-100, warm to cool).

    The device rejects 0, so a computed 0 is sent as 1.
    """
    device_temp = _round_half_up(((MIRED_SPAN - (mired - MIRED_MIN)) / MIRED_SPAN) * 100)
    return 1 if device_temp == 0 else device_temp


def device_temp_to_mired(device_temp: float) -> int:
    """Device temperature (0-100) to hub mired.

    Inverse of `mired_to_device_temp` for 1-100. 0 maps to 500 mired, which maps
    forward to 1, not 0.
    """
    return _round_half_up(MIRED_MIN + (MIRED_SPAN - (device_temp / 100) * MIRED_SPAN))


def mired_to_kelvin(mired: float) -> int:
    return _round_half_up(1_000_000 / mired)


def hs_to_rgb(hue: float, saturation: float) -> tuple[int, int, int]:
    """Hue (0-360) and saturation (0-100) to an RGB triple at full value."""
    r, g, b = colorsys.hsv_to_rgb((hue % 360) / 360.0, saturation / 100.0, 1.0)
    return (_round_half_up(r * 255), _round_half_up(g * 255), _round_half_up(b * 255))


def rgb_to_hs(r: int, g: int, b: int) -> tuple[int, int]:
    """RGB triple to hue (0-359) and saturation (0-100)."""
    h, s, _v = colorsys.rgb_to_hsv(r / 255.0, g / 255.0, b / 255.0)
    return (_round_half_up(h * 360) % 360, _round_half_up(s * 100))


def pack_rgb(r: int, g: int, b: int) -> int:
    """Pack an RGB triple into the device integer, red most significant."""
    return ((r & 0xFF) << 16) | ((g & 0xFF) << 8) | (b & 0xFF)


def unpack_rgb(value: int) -> tuple[int, int, int]:
    return ((value & 0xFF0000) >> 16, (value & 0x00FF00) >> 8, value & 0x0000FF)


def quantize_fan_speed(speed: float) -> int:
    """Snap a hub rotation speed onto the three supported levels 0, 50 and 100.

    Some hub apps ignore the valid-values hint and send any percentage.
    """
    if speed <= 0:
        return 0
    if speed <= FAN_LOW_MAX:
        return 50
    return 100


def fan_speed_to_mode(speed: float) -> int:
    """Hub rotation speed to spray mode: 0 off, 2 intermittent, 1 continuous."""
    if speed <= 0:
        return FAN_MODE_OFF
    if speed <= FAN_LOW_MAX:
        return FAN_MODE_INTERMITTENT
    return FAN_MODE_CONTINUOUS


def fan_mode_to_speed(mode: int) -> int:
    """Spray mode to a representative hub rotation speed (lossy)."""
    if mode == FAN_MODE_OFF:
        return 0
    if mode == FAN_MODE_CONTINUOUS:
        return 100
    return 50


def fan_label(speed: float) -> str:
    if speed <= 0:
        return "off"
    if speed <= FAN_LOW_MAX:
        return "intermittent"
    return "continuous"
