"""Alert evaluation for the simulated device.

Compares the current vitals against the record's alert thresholds and derives
the resulting device status. Evaluation is pure: it never mutates the record,
so the caller decides when (and under which lock) to apply the status.
"""

from dataclasses import dataclass, field
from typing import List

from device_simulator.models.device import DeviceRecord
from device_simulator.models.enums import DeviceStatus


@dataclass(frozen=True)
class AlertEvaluation:
    """Result of evaluating a device record.

    Attributes:
        alerts: Alert messages in evaluation order (may be empty).
        status: Status the record should carry after evaluation.
    """

    status: DeviceStatus
    alerts: List[str] = field(default_factory=list)

    @property
    def has_alerts(self) -> bool:
        """Check if any threshold was violated."""
        return len(self.alerts) > 0


def evaluate(record: DeviceRecord) -> AlertEvaluation:
    """Evaluate alert conditions for a device record.

    Checks temperature, humidity and battery in that order. For the two-sided
    metrics the high threshold is checked first, so at most one of high/low
    fires per metric.

    While the record is in Maintenance the status is returned unchanged; the
    alerts are still reported so they remain observable.

    Args:
        record: Device record to evaluate.

    Returns:
        AlertEvaluation with the ordered alert messages and derived status.
    """
    thresholds = record.alert_thresholds
    alerts: List[str] = []

    if record.temperature > thresholds["temperatureHigh"]:
        alerts.append(f"High temperature alert: {record.temperature:.1f}°C")
    elif record.temperature < thresholds["temperatureLow"]:
        alerts.append(f"Low temperature alert: {record.temperature:.1f}°C")

    if record.humidity > thresholds["humidityHigh"]:
        alerts.append(f"High humidity alert: {record.humidity:.1f}%")
    elif record.humidity < thresholds["humidityLow"]:
        alerts.append(f"Low humidity alert: {record.humidity:.1f}%")

    if record.battery_level < thresholds["batteryLow"]:
        alerts.append(f"Low battery alert: {record.battery_level:.1f}%")

    if record.status == DeviceStatus.MAINTENANCE:
        status = record.status
    elif alerts:
        status = DeviceStatus.ALERT
    else:
        status = DeviceStatus.ONLINE

    return AlertEvaluation(status=status, alerts=alerts)
