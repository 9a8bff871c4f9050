"""Bounded pseudo-random walk of the device vitals.

Not a physical model: each tick re-rolls the sensor readings inside fixed
bands. The random source is injected so tests can seed it.
"""

import random
from datetime import datetime, timezone

import structlog

from device_simulator.models.device import DeviceRecord

log = structlog.get_logger()

BATTERY_DRAIN_PER_TICK = 0.1  # percent
SIGNAL_RANGE = (1, 5)  # bars, inclusive
TEMPERATURE_BAND = (20.0, 30.0)  # Celsius
HUMIDITY_BAND = (40.0, 70.0)  # percent
PRESSURE_BAND = (1000.0, 1030.0)  # hPa
MOTION_PROBABILITY = 0.1
DOOR_TOGGLE_PROBABILITY = 0.05
MAX_DATA_PER_TICK_MB = 0.1


def advance_vitals(record: DeviceRecord, rng: random.Random) -> None:
    """Advance the record's vitals by one tick.

    Must be called with the mutation gate held. Battery only drains and data
    usage only grows here; recharges come from maintenance and reset.

    Args:
        record: Live record to mutate.
        rng: Random source.
    """
    record.battery_level = max(0.0, record.battery_level - BATTERY_DRAIN_PER_TICK)
    record.signal_strength = rng.randint(*SIGNAL_RANGE)

    low, high = TEMPERATURE_BAND
    record.temperature = low + rng.random() * (high - low)
    low, high = HUMIDITY_BAND
    record.humidity = low + rng.random() * (high - low)

    record.motion_detected = rng.random() < MOTION_PROBABILITY
    if record.motion_detected:
        log.info("motion_detected", device_id=record.device_id)

    if rng.random() < DOOR_TOGGLE_PROBABILITY:
        record.door_open = not record.door_open
        log.info(
            "door_state_changed",
            device_id=record.device_id,
            door="opened" if record.door_open else "closed",
        )

    cellular = record.cellular_data
    cellular.data_usage_mb = cellular.data_usage_mb + rng.random() * MAX_DATA_PER_TICK_MB
    cellular.last_sync = datetime.now(timezone.utc)


def synthetic_pressure(rng: random.Random) -> float:
    """Synthetic barometric pressure reading in hPa."""
    low, high = PRESSURE_BAND
    return round(low + rng.random() * (high - low), 2)
