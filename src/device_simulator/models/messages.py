"""Inbound wire models: application message envelope, payloads, method requests."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr


class CloudMessage(BaseModel):
    """Application message envelope ``{"type": str, "data": any}``."""

    model_config = ConfigDict(extra="ignore")

    type: StrictStr = Field(..., description="Message type, matched case-insensitively")
    data: Any = Field(default=None, description="Type-specific payload")


class DeviceConfiguration(BaseModel):
    """Partial configuration update; only present fields are applied."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    motion_sensitivity: Optional[int] = Field(
        default=None, ge=1, le=10, strict=True, alias="motionSensitivity"
    )
    alert_thresholds: Optional[Dict[str, float]] = Field(
        default=None, alias="alertThresholds"
    )
    reporting_interval: Optional[int] = Field(
        default=None, ge=1, strict=True, alias="reportingInterval"
    )

    @property
    def is_empty(self) -> bool:
        """True when no recognized field was supplied."""
        return (
            self.motion_sensitivity is None
            and self.alert_thresholds is None
            and self.reporting_interval is None
        )


class DeviceCommand(BaseModel):
    """Command payload ``{"action": ..., "parameters": {...}}``."""

    model_config = ConfigDict(extra="ignore")

    action: StrictStr = Field(..., min_length=1)
    parameters: Optional[Dict[str, Any]] = None


class FirmwareUpdate(BaseModel):
    """Firmware update payload."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    version: StrictStr = Field(..., min_length=1)
    description: Optional[str] = None
    download_url: Optional[str] = Field(default=None, alias="downloadUrl")


class SetTelemetryIntervalRequest(BaseModel):
    """Payload of the ``SetTelemetryInterval`` method."""

    interval: int = Field(..., ge=1, strict=True)


class TriggerAlertRequest(BaseModel):
    """Payload of the ``TriggerAlert`` method."""

    message: StrictStr
