import os

from meross_controller import __version__

__all__ = [
    "ADAPTIVE_LIGHTING_MIRED_THRESHOLD",
    "COLOUR_MODELS",
    "DEBOUNCE_DELAY_SECONDS",
    "DEFAULT_CLOUD_REFRESH_RATE",
    "DEFAULT_PUSH_RATE",
    "DEFAULT_REFRESH_RATE",
    "HAP_SERVICE_COMMUNICATION_FAILURE",
    "HUMIDIFIER_MODELS",
    "HUMIDIFIER_QUEUE_INTERVAL",
    "MEROSS_CONFIG_FILE_PATH",
    "MEROSS_DEBUG",
    "MEROSS_LOG_FORMAT",
    "MEROSS_LOG_HUMAN_OUTPUT",
    "MEROSS_LOG_JSON_FILE",
    "MEROSS_METRICS_PORT",
    "MEROSS_VERSION",
    "NS_CONTROL_LIGHT",
    "NS_CONTROL_SPRAY",
    "NS_CONTROL_TOGGLEX",
    "NS_SYSTEM_ALL",
    "NS_SYSTEM_ONLINE",
    "ONLINE_ONLY_MODELS",
    "QUEUE_TIMEOUT_SECONDS",
    "REVERT_DELAY_SECONDS",
    "SINGLE_TOGGLE_MODELS",
    "UNREACHABLE_MARKERS",
    "UNREACHABLE_REASONS",
    "YES_ANSWER",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", 1, "on", "o")
MEROSS_VERSION: str = __version__

MEROSS_DEBUG = os.environ.get("MEROSS_DEBUG", "0").casefold() in YES_ANSWER

# Logging Configuration
MEROSS_LOG_FORMAT: str = os.environ.get("MEROSS_LOG_FORMAT", "human")  # "json", "human", or "both"
MEROSS_LOG_JSON_FILE: str | None = os.environ.get("MEROSS_LOG_JSON_FILE") or None
MEROSS_LOG_HUMAN_OUTPUT: str = os.environ.get("MEROSS_LOG_HUMAN_OUTPUT", "stdout")  # "stdout", "stderr", or file path

MEROSS_CONFIG_FILE_PATH: str = os.environ.get("MEROSS_CONFIG_FILE_PATH", "/config/meross.yaml")

_metrics_port = os.environ.get("MEROSS_METRICS_PORT", "9410")
MEROSS_METRICS_PORT: int = int(_metrics_port) if _metrics_port and _metrics_port.isdigit() else 9410

# Polling / pacing defaults, all in seconds. A refresh rate of 0 disables periodic polling.
DEFAULT_REFRESH_RATE: int = 30
DEFAULT_CLOUD_REFRESH_RATE: int = 300
DEFAULT_PUSH_RATE: float = 0.1
HUMIDIFIER_QUEUE_INTERVAL: float = 0.25
QUEUE_TIMEOUT_SECONDS: float = 10.0
DEBOUNCE_DELAY_SECONDS: float = 0.3
REVERT_DELAY_SECONDS: float = 2.0

# mired jump that is treated as an external change rather than the adaptive lighting curve
ADAPTIVE_LIGHTING_MIRED_THRESHOLD: int = 10

# HAP status SERVICE_COMMUNICATION_FAILURE
HAP_SERVICE_COMMUNICATION_FAILURE: int = -70402

NS_CONTROL_TOGGLEX = "Appliance.Control.ToggleX"
NS_CONTROL_LIGHT = "Appliance.Control.Light"
NS_CONTROL_SPRAY = "Appliance.Control.Spray"
NS_SYSTEM_ALL = "Appliance.System.All"
NS_SYSTEM_ONLINE = "Appliance.System.Online"

COLOUR_MODELS: frozenset[str] = frozenset({"MSL100", "MSL420", "MSL120", "MSL320"})
ONLINE_ONLY_MODELS: frozenset[str] = frozenset({"MSL320"})
SINGLE_TOGGLE_MODELS: frozenset[str] = frozenset({"MSS1101"})
HUMIDIFIER_MODELS: frozenset[str] = frozenset({"MOD100", "MOD150"})

# Error text fragments that mean the device could not be reached at all
UNREACHABLE_MARKERS: tuple[str, ...] = ("EHOSTUNREACH", "timed out")
# Normalized transport reasons for the same condition
UNREACHABLE_REASONS: frozenset[str] = frozenset({"EHOSTUNREACH", "ENETUNREACH", "ETIMEDOUT"})
