"""Shared enumerations for the device simulator models."""

from enum import Enum


class DeviceStatus(str, Enum):
    """Operational status of the simulated device."""

    ONLINE = "Online"
    OFFLINE = "Offline"
    MAINTENANCE = "Maintenance"
    ALERT = "Alert"


class MessageType(str, Enum):
    """Recognized application message types (matched case-insensitively)."""

    CONFIGURATION = "configuration"
    COMMAND = "command"
    FIRMWARE = "firmware"


class CommandAction(str, Enum):
    """Actions accepted by a ``command`` message."""

    REBOOT = "reboot"
    RESET = "reset"
    TEST = "test"
