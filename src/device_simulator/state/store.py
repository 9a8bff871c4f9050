"""Owned device state behind a single mutation gate.

The DeviceStore is the only holder of the live DeviceRecord. The telemetry
loop and every control-channel handler reach the record through
:meth:`DeviceStore.mutate`, which serializes read-modify-write sequences with
an ``asyncio.Lock``. Observers get deep copies from :meth:`DeviceStore.snapshot`.

Example usage:
    store = DeviceStore(DeviceRecord(device_id="sim-1"))

    async with store.mutate() as record:
        record.reporting_interval = 10

    current = await store.snapshot()
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import AsyncIterator

import structlog

from device_simulator.models import DeviceRecord, DeviceStatus

log = structlog.get_logger()


class DeviceStore:
    """Mutation gate around the device record.

    Also tracks maintenance holds: while at least one maintenance or firmware
    operation holds the device, its status stays ``Maintenance`` and the
    alert evaluator leaves it alone.

    Never await network I/O or a simulated delay inside ``mutate()``.
    """

    def __init__(self, record: DeviceRecord) -> None:
        """Initialize the store.

        Args:
            record: The record to own. Callers must not keep a reference to it.
        """
        self._record = record
        self._lock = asyncio.Lock()
        self._maintenance_holds = 0

    @property
    def device_id(self) -> str:
        """Device identity (immutable, safe to read without the gate)."""
        return self._record.device_id

    @property
    def maintenance_holds(self) -> int:
        """Number of operations currently holding the device in Maintenance."""
        return self._maintenance_holds

    @contextlib.asynccontextmanager
    async def mutate(self) -> AsyncIterator[DeviceRecord]:
        """Acquire the gate and yield the live record.

        If the block raises, assignments already made stay applied; handlers
        validate their input before entering the gate so a block never fails
        halfway.
        """
        async with self._lock:
            yield self._record

    async def snapshot(self) -> DeviceRecord:
        """Return a deep copy of the record taken under the gate."""
        async with self._lock:
            return self._record.model_copy(deep=True)

    async def hold_maintenance(self, reason: str) -> None:
        """Put the device into Maintenance for the duration of an operation."""
        async with self._lock:
            self._hold_locked()
        log.info("maintenance_hold_acquired", reason=reason, holds=self._maintenance_holds)

    async def release_maintenance(self, reason: str) -> None:
        """Release a maintenance hold; the last release restores Online."""
        async with self._lock:
            self._release_locked()
        log.info("maintenance_hold_released", reason=reason, holds=self._maintenance_holds)

    async def reset_to_defaults(self) -> None:
        """Restore factory settings; an active maintenance hold keeps the device in Maintenance."""
        async with self._lock:
            self._record.reset_to_defaults()
            if self._maintenance_holds > 0:
                self._record.status = DeviceStatus.MAINTENANCE

    def hold_maintenance_locked(self, record: DeviceRecord) -> None:
        """Acquire a hold from inside an existing ``mutate()`` block.

        Args:
            record: The record yielded by ``mutate()``, proving the gate is held.
        """
        self._check_owned(record)
        self._hold_locked()

    def release_maintenance_locked(self, record: DeviceRecord) -> None:
        """Release a hold from inside an existing ``mutate()`` block."""
        self._check_owned(record)
        self._release_locked()

    def _check_owned(self, record: DeviceRecord) -> None:
        if record is not self._record:
            raise ValueError("record does not belong to this store")

    def _hold_locked(self) -> None:
        self._maintenance_holds += 1
        self._record.status = DeviceStatus.MAINTENANCE

    def _release_locked(self) -> None:
        if self._maintenance_holds > 0:
            self._maintenance_holds -= 1
        if self._maintenance_holds == 0 and self._record.status == DeviceStatus.MAINTENANCE:
            self._record.status = DeviceStatus.ONLINE
