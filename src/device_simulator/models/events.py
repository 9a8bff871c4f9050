"""Outbound device-to-cloud events.

Every event is a pydantic model serialized as camelCase JSON by
:func:`encode_event`, the only place payload bytes are produced.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .device import CellularData, DeviceRecord
from .enums import DeviceStatus

CONTENT_TYPE_JSON = "application/json"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class _Event(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    timestamp: datetime = Field(default_factory=_utc_now)
    device_id: str = Field(..., alias="deviceId")


class TelemetryEvent(_Event):
    """Periodic telemetry snapshot.

    Pressure is synthetic and does not come from the device record.
    """

    status: DeviceStatus
    battery_level: float = Field(..., alias="batteryLevel")
    signal_strength: int = Field(..., alias="signalStrength")
    temperature: float
    humidity: float
    pressure: float
    motion_detected: bool = Field(..., alias="motionDetected")
    door_open: bool = Field(..., alias="doorOpen")
    cellular_data: CellularData = Field(..., alias="cellularData")
    firmware_version: str = Field(..., alias="firmwareVersion")

    @classmethod
    def from_record(
        cls,
        record: DeviceRecord,
        pressure: float,
        timestamp: Optional[datetime] = None,
    ) -> "TelemetryEvent":
        """Factory for creating a telemetry event from a record snapshot."""
        return cls(
            timestamp=timestamp or _utc_now(),
            device_id=record.device_id,
            status=record.status,
            battery_level=record.battery_level,
            signal_strength=record.signal_strength,
            temperature=record.temperature,
            humidity=record.humidity,
            pressure=pressure,
            motion_detected=record.motion_detected,
            door_open=record.door_open,
            cellular_data=record.cellular_data.model_copy(),
            firmware_version=record.firmware_version,
        )


class AlertEvent(_Event):
    type: Literal["alert"] = "alert"
    alerts: List[str]


class ConfigurationAckEvent(_Event):
    type: Literal["configuration-ack"] = "configuration-ack"
    config: Dict[str, Any]


class FirmwareStatusEvent(_Event):
    type: Literal["firmware-status"] = "firmware-status"
    version: str
    success: bool


class SelfTestResult(BaseModel):
    name: str
    status: str
    value: Any


class SelfTestEvent(_Event):
    type: Literal["self-test"] = "self-test"
    tests: List[SelfTestResult]


def encode_event(event: BaseModel) -> bytes:
    """Serialize an event to UTF-8 JSON bytes using wire (camelCase) names."""
    return event.model_dump_json(by_alias=True).encode("utf-8")
