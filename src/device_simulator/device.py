"""Wiring of one simulated device from its settings.

Builds the record, the store owning it, the operation runner, the control
channel and the telemetry loop around a given transport. The CLI and the
integration tests share this so both drive the same object graph.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional

from device_simulator.config import DeviceSettings
from device_simulator.control import ControlChannel
from device_simulator.models import CellularData, DeviceRecord
from device_simulator.operations import OperationRunner
from device_simulator.state import DeviceStore
from device_simulator.telemetry import TelemetryLoop
from device_simulator.transport import InMemoryTransport, TransportPort, WebSocketTransport

OFFLINE_RECORD_LIMIT = 100  # sent events kept by the offline transport


@dataclass
class SimulatedDevice:
    """Collaborators of a running device."""

    store: DeviceStore
    transport: TransportPort
    operations: OperationRunner
    channel: ControlChannel
    telemetry: TelemetryLoop


def create_record(config: DeviceSettings) -> DeviceRecord:
    """Create the device record with factory defaults and configured identity."""
    return DeviceRecord(
        device_id=config.device_id,
        firmware_version=config.firmware_version,
        reporting_interval=config.telemetry_interval_seconds,
        cellular_data=CellularData(carrier=config.carrier, plan_limit_mb=config.plan_limit_mb),
    )


def create_transport(config: DeviceSettings, offline: bool = False) -> TransportPort:
    """Pick the transport for the run mode.

    Raises:
        ValueError: If no hub URL is configured and the run is not offline.
    """
    if offline:
        return InMemoryTransport(echo_events=True, max_recorded=OFFLINE_RECORD_LIMIT)
    if not config.hub_url:
        raise ValueError("hub_url is required unless running with --offline")
    return WebSocketTransport(
        url=config.hub_url,
        device_id=config.device_id,
        token=config.hub_token,
        connect_timeout=config.connect_timeout,
        max_retries=config.max_retries,
    )


def build_device(
    config: DeviceSettings,
    transport: TransportPort,
    rng: Optional[random.Random] = None,
) -> SimulatedDevice:
    """Assemble a device around ``transport``."""
    store = DeviceStore(create_record(config))
    operations = OperationRunner()
    channel = ControlChannel(
        store,
        transport,
        operations,
        reboot_duration=config.reboot_duration_seconds,
        firmware_update_duration=config.firmware_update_duration_seconds,
        maintenance_window=config.maintenance_window_seconds,
    )
    telemetry = TelemetryLoop(
        store,
        transport,
        channel,
        operations,
        rng=rng,
        send_backoff=config.send_backoff_seconds,
        health_file=config.health_file,
    )
    return SimulatedDevice(
        store=store,
        transport=transport,
        operations=operations,
        channel=channel,
        telemetry=telemetry,
    )
