"""Periodic telemetry loop.

State machine: ``Stopped -> Running -> Stopping -> Stopped``.

Each tick advances the vitals, evaluates alerts and applies the resulting
status in one gated step, then sends the telemetry event (and an alert event
if anything fired) with the gate released. A failed send waits a fixed
backoff instead of the reporting interval. The interval is re-read every
iteration so control-channel updates apply on the next cycle.
"""

from __future__ import annotations

import asyncio
import random
from enum import Enum
from pathlib import Path
from typing import Optional, Union

import structlog

from device_simulator.analysis import evaluate
from device_simulator.control import ControlChannel
from device_simulator.exceptions import TransportFailure
from device_simulator.health import HealthStatus, update_health_status
from device_simulator.models import (
    CONTENT_TYPE_JSON,
    AlertEvent,
    TelemetryEvent,
    encode_event,
)
from device_simulator.operations import OperationRunner
from device_simulator.state import DeviceStore
from device_simulator.telemetry.vitals import advance_vitals, synthetic_pressure
from device_simulator.transport.base import TransportPort

log = structlog.get_logger()

SEND_BACKOFF = 5.0  # seconds


class LoopState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    STOPPING = "stopping"


class TelemetryLoop:
    """Drives the device for the lifetime of the process.

    Stopping is cooperative: :meth:`stop` takes effect at the next sleep
    boundary, never inside a gated mutation, and in-flight operations are
    allowed to finish before the loop reports Stopped.
    """

    def __init__(
        self,
        store: DeviceStore,
        transport: TransportPort,
        channel: ControlChannel,
        operations: OperationRunner,
        rng: Optional[random.Random] = None,
        send_backoff: float = SEND_BACKOFF,
        health_file: Optional[Union[str, Path]] = None,
    ) -> None:
        """Initialize the loop.

        Args:
            store: Owner of the device record.
            transport: Transport to send events through.
            channel: Control channel registered before the first tick.
            operations: Runner drained on shutdown.
            rng: Random source for the vitals walk.
            send_backoff: Seconds to wait after a failed tick.
            health_file: Optional health file updated on send outcome changes.
        """
        self._store = store
        self._transport = transport
        self._channel = channel
        self._operations = operations
        self._rng = rng or random.Random()
        self._send_backoff = send_backoff
        self._health_file = health_file
        self._state = LoopState.STOPPED
        self._stop_requested = asyncio.Event()
        self._healthy: Optional[bool] = None
        self._ticks = 0
        self._failed_ticks = 0
        self._log = log.bind(device_id=store.device_id)

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def ticks(self) -> int:
        """Ticks completed so far, successful or not."""
        return self._ticks

    @property
    def failed_ticks(self) -> int:
        return self._failed_ticks

    async def start(self) -> None:
        """Register the control channel and run until stopped.

        Raises:
            SetupFailure: If handler registration fails; the loop never runs.
            RuntimeError: If the loop is already running.
        """
        if self._state != LoopState.STOPPED:
            raise RuntimeError(f"Telemetry loop is {self._state.value}")

        self._set_health(HealthStatus.STARTING, force=True)
        await self._channel.register()

        self._state = LoopState.RUNNING
        self._log.info("telemetry_loop_started")
        try:
            while not self._stop_requested.is_set():
                delay = await self.tick()
                await self._sleep(delay)
        finally:
            self._state = LoopState.STOPPING
            self._log.info("telemetry_loop_stopping", operations_in_flight=self._operations.in_flight)
            await self._operations.join()
            self._state = LoopState.STOPPED
            self._stop_requested.clear()
            self._log.info("telemetry_loop_stopped", ticks=self._ticks)

    def stop(self) -> None:
        """Request a cooperative stop."""
        if self._state == LoopState.RUNNING:
            self._state = LoopState.STOPPING
        self._stop_requested.set()

    async def tick(self) -> float:
        """Run one telemetry cycle.

        Returns:
            Seconds to wait before the next tick: the reporting interval, or
            the send backoff if the cycle failed.
        """
        try:
            async with self._store.mutate() as record:
                advance_vitals(record, self._rng)
                evaluation = evaluate(record)
                record.status = evaluation.status
                snapshot = record.model_copy(deep=True)

            telemetry = TelemetryEvent.from_record(snapshot, pressure=synthetic_pressure(self._rng))
            await self._transport.send_event(encode_event(telemetry), CONTENT_TYPE_JSON)
            self._log.debug(
                "telemetry_sent",
                status=snapshot.status.value,
                battery_level=round(snapshot.battery_level, 1),
            )

            if evaluation.has_alerts:
                alert = AlertEvent(device_id=snapshot.device_id, alerts=evaluation.alerts)
                await self._transport.send_event(encode_event(alert), CONTENT_TYPE_JSON)
                self._log.warning("alerts_raised", alerts=evaluation.alerts)
        except TransportFailure as e:
            self._failed_ticks += 1
            self._log.warning("telemetry_send_failed", error=e.message, backoff=self._send_backoff)
            self._set_health(HealthStatus.UNHEALTHY, {"error": e.message})
            return self._send_backoff
        except Exception as e:
            self._failed_ticks += 1
            self._log.error(
                "telemetry_tick_failed",
                error=str(e),
                error_type=type(e).__name__,
                backoff=self._send_backoff,
            )
            self._set_health(HealthStatus.UNHEALTHY, {"error": str(e)})
            return self._send_backoff
        finally:
            self._ticks += 1

        self._set_health(HealthStatus.HEALTHY)
        return float(snapshot.reporting_interval)

    async def _sleep(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._stop_requested.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    def _set_health(self, status: HealthStatus, details: Optional[dict] = None, force: bool = False) -> None:
        healthy = status == HealthStatus.HEALTHY
        if not force and self._healthy is healthy:
            return
        if status != HealthStatus.STARTING:
            self._healthy = healthy
        if self._health_file is None:
            return
        try:
            update_health_status(
                status,
                {"device_id": self._store.device_id, **(details or {})},
                path=self._health_file,
            )
        except OSError as e:
            self._log.warning("health_file_write_failed", path=str(self._health_file), error=str(e))
