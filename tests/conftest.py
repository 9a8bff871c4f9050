"""Shared fixtures for device simulator tests."""

import random

import pytest

from device_simulator.control import ControlChannel
from device_simulator.models import DeviceRecord
from device_simulator.operations import OperationRunner
from device_simulator.state import DeviceStore
from device_simulator.telemetry import TelemetryLoop
from device_simulator.transport import InMemoryTransport

# Short simulated durations keep the suite fast
REBOOT_DURATION = 0.05
FIRMWARE_DURATION = 0.3
MAINTENANCE_WINDOW = 0.1


@pytest.fixture
def record() -> DeviceRecord:
    """Fresh device record with factory defaults."""
    return DeviceRecord(device_id="test-device")


@pytest.fixture
def store(record: DeviceRecord) -> DeviceStore:
    return DeviceStore(record)


@pytest.fixture
def transport() -> InMemoryTransport:
    return InMemoryTransport()


@pytest.fixture
def operations() -> OperationRunner:
    return OperationRunner()


@pytest.fixture
def channel(
    store: DeviceStore, transport: InMemoryTransport, operations: OperationRunner
) -> ControlChannel:
    """Control channel with short operation durations (not yet registered)."""
    return ControlChannel(
        store,
        transport,
        operations,
        reboot_duration=REBOOT_DURATION,
        firmware_update_duration=FIRMWARE_DURATION,
        maintenance_window=MAINTENANCE_WINDOW,
    )


@pytest.fixture
def telemetry(
    store: DeviceStore,
    transport: InMemoryTransport,
    channel: ControlChannel,
    operations: OperationRunner,
) -> TelemetryLoop:
    """Telemetry loop with a seeded random source and a short backoff."""
    return TelemetryLoop(
        store,
        transport,
        channel,
        operations,
        rng=random.Random(42),
        send_backoff=0.05,
    )
