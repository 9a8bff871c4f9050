"""Configuration management for the device simulator."""

from device_simulator.config.loader import ConfigurationError, load_config
from device_simulator.config.settings import DeviceSettings

__all__ = [
    "ConfigurationError",
    "DeviceSettings",
    "load_config",
]
