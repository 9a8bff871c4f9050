"""Data models for the device simulator."""

from .device import (
    DEFAULT_ALERT_THRESHOLDS,
    THRESHOLD_KEYS,
    CellularData,
    DeviceRecord,
    default_thresholds,
    normalize_thresholds,
)
from .enums import CommandAction, DeviceStatus, MessageType
from .events import (
    CONTENT_TYPE_JSON,
    AlertEvent,
    ConfigurationAckEvent,
    FirmwareStatusEvent,
    SelfTestEvent,
    SelfTestResult,
    TelemetryEvent,
    encode_event,
)
from .messages import (
    CloudMessage,
    DeviceCommand,
    DeviceConfiguration,
    FirmwareUpdate,
    SetTelemetryIntervalRequest,
    TriggerAlertRequest,
)

__all__ = [
    "AlertEvent",
    "CONTENT_TYPE_JSON",
    "CellularData",
    "CloudMessage",
    "CommandAction",
    "ConfigurationAckEvent",
    "DEFAULT_ALERT_THRESHOLDS",
    "DeviceCommand",
    "DeviceConfiguration",
    "DeviceRecord",
    "DeviceStatus",
    "FirmwareStatusEvent",
    "FirmwareUpdate",
    "MessageType",
    "SelfTestEvent",
    "SelfTestResult",
    "SetTelemetryIntervalRequest",
    "THRESHOLD_KEYS",
    "TelemetryEvent",
    "TriggerAlertRequest",
    "default_thresholds",
    "encode_event",
    "normalize_thresholds",
]
