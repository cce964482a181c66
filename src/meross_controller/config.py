"""Platform configuration file loading.

The configuration is a YAML document:

    refresh_rate: 30
    cloud_refresh_rate: 300
    push_rate: 0.1
    devices:
      - device_id: "2008141234567890123434298f1a2b3c"
        name: Desk Lamp
        model: MSL120
        connection: local
        ip_address: 192.168.1.40
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from meross_controller.const import (
    DEFAULT_CLOUD_REFRESH_RATE,
    DEFAULT_PUSH_RATE,
    DEFAULT_REFRESH_RATE,
    MEROSS_CONFIG_FILE_PATH,
)
from meross_controller.exceptions import ConfigError
from meross_controller.logging_abstraction import get_logger
from meross_controller.structs import DeviceAccessory

logger = get_logger(__name__)


class DeviceConfig(BaseModel):
    device_id: str
    name: str
    model: str
    channel: int = Field(default=0, ge=0)
    connection: Literal["local", "cloud"] = "local"
    ip_address: str | None = None
    enable_logging: bool = True
    enable_debug_logging: bool = False


class PlatformConfig(BaseModel):
    """Platform-wide polling and pacing options, all in seconds."""

    refresh_rate: int = Field(default=DEFAULT_REFRESH_RATE, ge=0)
    cloud_refresh_rate: int = Field(default=DEFAULT_CLOUD_REFRESH_RATE, ge=0)
    push_rate: float = Field(default=DEFAULT_PUSH_RATE, ge=0)
    devices: list[DeviceConfig] = Field(default_factory=list)


def load_config(path: str | Path | None = None) -> PlatformConfig:
    """Load and validate the platform configuration file.

    Raises:
        ConfigError: file missing, unreadable, not YAML, or failing validation

    """
    config_file = Path(path or MEROSS_CONFIG_FILE_PATH)
    if not config_file.exists():
        msg = f"config file not found: {config_file}"
        raise ConfigError(msg)

    try:
        with config_file.open() as f:
            config_data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"failed to parse {config_file}: {e}") from e

    if config_data is None:
        logger.warning("Config file %s is empty, using defaults", config_file)
        config_data = {}

    try:
        config = PlatformConfig.model_validate(config_data)
    except ValidationError as e:
        raise ConfigError(f"{config_file}: {e}") from e

    logger.info("Parsed config: %d devices", len(config.devices))
    return config


def build_accessory(device: DeviceConfig) -> DeviceAccessory:
    """Create the accessory context record for a configured device."""
    return DeviceAccessory(
        device_id=device.device_id,
        name=device.name,
        model=device.model,
        channel=device.channel,
        connection=device.connection,
        ip_address=device.ip_address,
        enable_logging=device.enable_logging,
        enable_debug_logging=device.enable_debug_logging,
    )
