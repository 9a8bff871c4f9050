"""Telemetry generation: vitals simulation and the periodic send loop."""

from device_simulator.telemetry.loop import SEND_BACKOFF, LoopState, TelemetryLoop
from device_simulator.telemetry.vitals import advance_vitals, synthetic_pressure

__all__ = [
    "SEND_BACKOFF",
    "LoopState",
    "TelemetryLoop",
    "advance_vitals",
    "synthetic_pressure",
]
