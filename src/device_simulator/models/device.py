"""DeviceRecord model: the single mutable record of the simulated device.

Field names are snake_case in Python and camelCase on the wire, matching the
property names reported to the hub (``batteryLevel``, ``alertThresholds``...).
Assignment is validated so the record can never hold an out-of-range value.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import DeviceStatus

# Canonical threshold keys, in evaluation order
THRESHOLD_KEYS: Tuple[str, ...] = (
    "temperatureHigh",
    "temperatureLow",
    "humidityHigh",
    "humidityLow",
    "batteryLow",
)

DEFAULT_ALERT_THRESHOLDS: Dict[str, float] = {
    "temperatureHigh": 30.0,
    "temperatureLow": 10.0,
    "humidityHigh": 80.0,
    "humidityLow": 20.0,
    "batteryLow": 20.0,
}

DEFAULT_MOTION_SENSITIVITY = 5
DEFAULT_REPORTING_INTERVAL = 5
DEFAULT_SIGNAL_STRENGTH = 4
DEFAULT_FIRMWARE_VERSION = "1.0.0"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def default_thresholds() -> Dict[str, float]:
    """Return a fresh copy of the default alert thresholds."""
    return dict(DEFAULT_ALERT_THRESHOLDS)


def normalize_thresholds(thresholds: Mapping[str, Any]) -> Dict[str, float]:
    """Build a complete threshold map from a (possibly partial) mapping.

    The incoming mapping replaces the current map wholesale: canonical keys it
    provides with a numeric value win, canonical keys it omits fall back to
    the defaults, and anything else is dropped.

    Args:
        thresholds: Mapping of threshold name to value, e.g. from a desired
            property patch or a configuration message.

    Returns:
        Dict holding exactly the five canonical keys.
    """
    normalized = default_thresholds()
    for key in THRESHOLD_KEYS:
        value = thresholds.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        normalized[key] = float(value)
    return normalized


class CellularData(BaseModel):
    """Connectivity sub-record for the device's cellular link."""

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    carrier: str = Field(default="T-Mobile", description="Cellular carrier name")
    data_usage_mb: float = Field(
        default=0.0,
        ge=0.0,
        alias="dataUsageMB",
        description="Cumulative data usage in MB (never decreases)",
    )
    plan_limit_mb: float = Field(
        default=1024.0,
        gt=0.0,
        alias="planLimitMB",
        description="Data plan limit in MB",
    )
    last_sync: datetime = Field(
        default_factory=_utc_now,
        alias="lastSync",
        description="When the device last synced over cellular",
    )


class DeviceRecord(BaseModel):
    """The sole unit of shared mutable device state.

    Owned by a DeviceStore; every read-modify-write goes through the store's
    mutation gate. Status is normally derived by the alert evaluator and is
    only set directly by maintenance and firmware operations.
    """

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    device_id: str = Field(
        ...,
        alias="deviceId",
        frozen=True,
        min_length=1,
        description="Device identity, immutable after creation",
    )
    status: DeviceStatus = Field(default=DeviceStatus.ONLINE, description="Operational status")

    # Vitals
    battery_level: float = Field(default=100.0, ge=0.0, le=100.0, alias="batteryLevel")
    signal_strength: int = Field(
        default=DEFAULT_SIGNAL_STRENGTH, ge=1, le=5, alias="signalStrength"
    )
    temperature: float = Field(default=22.0, description="Temperature in Celsius")
    humidity: float = Field(default=45.0, description="Relative humidity in percent")
    motion_detected: bool = Field(default=False, alias="motionDetected")
    door_open: bool = Field(default=False, alias="doorOpen")

    cellular_data: CellularData = Field(default_factory=CellularData, alias="cellularData")

    # Configuration
    motion_sensitivity: int = Field(
        default=DEFAULT_MOTION_SENSITIVITY, ge=1, le=10, alias="motionSensitivity"
    )
    reporting_interval: int = Field(
        default=DEFAULT_REPORTING_INTERVAL,
        ge=1,
        alias="reportingInterval",
        description="Seconds between telemetry ticks",
    )
    alert_thresholds: Dict[str, float] = Field(
        default_factory=default_thresholds, alias="alertThresholds"
    )
    firmware_version: str = Field(
        default=DEFAULT_FIRMWARE_VERSION, min_length=1, alias="firmwareVersion"
    )
    last_maintenance: datetime = Field(default_factory=_utc_now, alias="lastMaintenance")

    @field_validator("alert_thresholds")
    @classmethod
    def validate_threshold_keys(cls, v: Dict[str, float]) -> Dict[str, float]:
        """Require exactly the canonical threshold keys."""
        if set(v) != set(THRESHOLD_KEYS):
            missing = sorted(set(THRESHOLD_KEYS) - set(v))
            extra = sorted(set(v) - set(THRESHOLD_KEYS))
            raise ValueError(
                f"alert thresholds must contain exactly {list(THRESHOLD_KEYS)} "
                f"(missing: {missing}, unexpected: {extra})"
            )
        return v

    def reset_to_defaults(self) -> None:
        """Restore factory configuration and vitals.

        Identity and firmware version survive a reset; everything the user
        can configure goes back to its default.
        """
        self.status = DeviceStatus.ONLINE
        self.battery_level = 100.0
        self.signal_strength = DEFAULT_SIGNAL_STRENGTH
        self.motion_sensitivity = DEFAULT_MOTION_SENSITIVITY
        self.reporting_interval = DEFAULT_REPORTING_INTERVAL
        self.alert_thresholds = default_thresholds()
        self.last_maintenance = _utc_now()

    def configuration_properties(self) -> Dict[str, Any]:
        """Configuration subset echoed back on desired-property updates."""
        return {
            "reportingInterval": self.reporting_interval,
            "motionSensitivity": self.motion_sensitivity,
            "alertThresholds": dict(self.alert_thresholds),
        }

    def maintenance_properties(self) -> Dict[str, Any]:
        """Reported properties pushed after a maintenance visit."""
        return {
            "status": self.status.value,
            "lastMaintenance": self.last_maintenance.isoformat(),
            "batteryLevel": self.battery_level,
        }
