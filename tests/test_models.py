"""Tests for device simulator data models."""

import json
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from device_simulator.models import (
    DEFAULT_ALERT_THRESHOLDS,
    THRESHOLD_KEYS,
    AlertEvent,
    CellularData,
    ConfigurationAckEvent,
    DeviceCommand,
    DeviceConfiguration,
    DeviceRecord,
    DeviceStatus,
    FirmwareStatusEvent,
    SetTelemetryIntervalRequest,
    TelemetryEvent,
    default_thresholds,
    encode_event,
    normalize_thresholds,
)


class TestDeviceStatus:
    """Tests for DeviceStatus enum."""

    def test_wire_values(self) -> None:
        """Status values are the capitalized wire strings."""
        assert DeviceStatus.ONLINE.value == "Online"
        assert DeviceStatus.OFFLINE.value == "Offline"
        assert DeviceStatus.MAINTENANCE.value == "Maintenance"
        assert DeviceStatus.ALERT.value == "Alert"

    def test_str_enum_comparison(self) -> None:
        """DeviceStatus compares equal to its string value."""
        assert DeviceStatus.ALERT == "Alert"


class TestThresholds:
    """Tests for threshold defaults and normalization."""

    def test_defaults(self) -> None:
        assert default_thresholds() == {
            "temperatureHigh": 30.0,
            "temperatureLow": 10.0,
            "humidityHigh": 80.0,
            "humidityLow": 20.0,
            "batteryLow": 20.0,
        }

    def test_default_thresholds_returns_copy(self) -> None:
        """Mutating the returned dict does not change the defaults."""
        thresholds = default_thresholds()
        thresholds["batteryLow"] = 99.0
        assert DEFAULT_ALERT_THRESHOLDS["batteryLow"] == 20.0

    def test_normalize_partial_fills_defaults(self) -> None:
        """Omitted canonical keys fall back to defaults."""
        result = normalize_thresholds({"temperatureHigh": 35})

        assert set(result) == set(THRESHOLD_KEYS)
        assert result["temperatureHigh"] == 35.0
        assert result["humidityLow"] == 20.0

    def test_normalize_drops_unknown_and_non_numeric(self) -> None:
        """Unknown keys, strings and booleans are dropped."""
        result = normalize_thresholds(
            {"pressureHigh": 1050, "batteryLow": "low", "humidityHigh": True}
        )

        assert result == default_thresholds()


class TestDeviceRecord:
    """Tests for DeviceRecord model."""

    def test_factory_defaults(self, record: DeviceRecord) -> None:
        """A new record carries the documented defaults."""
        assert record.status == DeviceStatus.ONLINE
        assert record.battery_level == 100.0
        assert record.signal_strength == 4
        assert record.motion_sensitivity == 5
        assert record.reporting_interval == 5
        assert record.firmware_version == "1.0.0"
        assert record.alert_thresholds == default_thresholds()
        assert record.cellular_data.carrier == "T-Mobile"

    def test_populate_by_alias(self) -> None:
        """Record accepts camelCase wire names."""
        record = DeviceRecord.model_validate({"deviceId": "abc", "batteryLevel": 50})
        assert record.device_id == "abc"
        assert record.battery_level == 50.0

    def test_battery_out_of_range_rejected(self, record: DeviceRecord) -> None:
        """Assignment outside [0, 100] raises."""
        with pytest.raises(ValidationError):
            record.battery_level = 101.0
        with pytest.raises(ValidationError):
            record.battery_level = -1.0

    def test_reporting_interval_must_be_positive(self, record: DeviceRecord) -> None:
        with pytest.raises(ValidationError):
            record.reporting_interval = 0

    def test_device_id_is_frozen(self, record: DeviceRecord) -> None:
        with pytest.raises(ValidationError):
            record.device_id = "other"

    def test_thresholds_require_all_keys(self, record: DeviceRecord) -> None:
        """A threshold map missing a canonical key is rejected."""
        with pytest.raises(ValidationError):
            record.alert_thresholds = {"temperatureHigh": 30.0}

    def test_reset_to_defaults_keeps_identity_and_firmware(self, record: DeviceRecord) -> None:
        """Reset restores configuration but not deviceId/firmwareVersion."""
        record.motion_sensitivity = 9
        record.reporting_interval = 60
        record.alert_thresholds = normalize_thresholds({"batteryLow": 50})
        record.firmware_version = "2.0.0"
        record.battery_level = 12.0

        record.reset_to_defaults()

        assert record.motion_sensitivity == 5
        assert record.reporting_interval == 5
        assert record.alert_thresholds == default_thresholds()
        assert record.battery_level == 100.0
        assert record.device_id == "test-device"
        assert record.firmware_version == "2.0.0"

    def test_configuration_properties(self, record: DeviceRecord) -> None:
        props = record.configuration_properties()
        assert props == {
            "reportingInterval": 5,
            "motionSensitivity": 5,
            "alertThresholds": default_thresholds(),
        }

    def test_maintenance_properties(self, record: DeviceRecord) -> None:
        stamp = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        record.last_maintenance = stamp

        props = record.maintenance_properties()

        assert props == {
            "status": "Online",
            "lastMaintenance": stamp.isoformat(),
            "batteryLevel": 100.0,
        }


class TestInboundMessages:
    """Tests for inbound payload models."""

    def test_configuration_partial(self) -> None:
        config = DeviceConfiguration.model_validate({"reportingInterval": 10})
        assert config.reporting_interval == 10
        assert config.motion_sensitivity is None
        assert config.alert_thresholds is None
        assert not config.is_empty

    def test_configuration_empty(self) -> None:
        assert DeviceConfiguration.model_validate({}).is_empty

    def test_configuration_rejects_out_of_range_sensitivity(self) -> None:
        with pytest.raises(ValidationError):
            DeviceConfiguration.model_validate({"motionSensitivity": 11})

    def test_configuration_rejects_string_interval(self) -> None:
        """Strict ints: "10" is not accepted as 10."""
        with pytest.raises(ValidationError):
            DeviceConfiguration.model_validate({"reportingInterval": "10"})

    def test_command_requires_action(self) -> None:
        with pytest.raises(ValidationError):
            DeviceCommand.model_validate({"parameters": {}})

    def test_interval_request_rejects_zero(self) -> None:
        with pytest.raises(ValidationError):
            SetTelemetryIntervalRequest.model_validate({"interval": 0})


class TestEvents:
    """Tests for outbound event serialization."""

    def test_telemetry_event_from_record(self, record: DeviceRecord) -> None:
        """Telemetry carries the full snapshot in camelCase."""
        event = TelemetryEvent.from_record(record, pressure=1013.25)

        data = json.loads(encode_event(event))

        assert data["deviceId"] == "test-device"
        assert data["status"] == "Online"
        assert data["batteryLevel"] == 100.0
        assert data["pressure"] == 1013.25
        assert data["firmwareVersion"] == "1.0.0"
        assert data["cellularData"]["carrier"] == "T-Mobile"
        assert "dataUsageMB" in data["cellularData"]
        for key in ("timestamp", "temperature", "humidity", "motionDetected", "doorOpen"):
            assert key in data
        assert "type" not in data

    def test_telemetry_cellular_is_a_copy(self, record: DeviceRecord) -> None:
        """Later record changes do not leak into a built event."""
        event = TelemetryEvent.from_record(record, pressure=1000.0)
        record.cellular_data.data_usage_mb = 500.0
        assert event.cellular_data.data_usage_mb == 0.0

    def test_alert_event(self) -> None:
        data = json.loads(encode_event(AlertEvent(device_id="d", alerts=["x"])))
        assert data["type"] == "alert"
        assert data["alerts"] == ["x"]
        assert data["deviceId"] == "d"

    def test_configuration_ack_event(self) -> None:
        event = ConfigurationAckEvent(device_id="d", config={"reportingInterval": 10})
        data = json.loads(encode_event(event))
        assert data["type"] == "configuration-ack"
        assert data["config"] == {"reportingInterval": 10}

    def test_firmware_status_event(self) -> None:
        event = FirmwareStatusEvent(device_id="d", version="2.0.0", success=True)
        data = json.loads(encode_event(event))
        assert data == {
            "timestamp": data["timestamp"],
            "deviceId": "d",
            "type": "firmware-status",
            "version": "2.0.0",
            "success": True,
        }


class TestCellularData:
    """Tests for CellularData model."""

    def test_usage_cannot_go_negative(self) -> None:
        cellular = CellularData()
        with pytest.raises(ValidationError):
            cellular.data_usage_mb = -0.5
