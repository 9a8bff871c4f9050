"""Runner for simulated long-running device operations.

Reboot, firmware update and maintenance windows take seconds of simulated
time. Each runs as its own asyncio task so the inbound dispatch path returns
immediately and the telemetry loop keeps ticking. Only the start and
completion steps touch device state, and they take the mutation gate
themselves; the wait in between holds nothing.

Operations are not cancellable mid-flight: shutdown calls :meth:`join`
and lets them finish.

Example usage::

    runner = OperationRunner()
    runner.run(
        "firmware-update",
        duration=5.0,
        on_start=hold_maintenance,
        on_complete=apply_firmware,
    )
    ...
    await runner.join()
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Deque, List, Optional, Set

import structlog

log = structlog.get_logger()

OperationStep = Callable[[], Awaitable[None]]

RESULT_HISTORY = 50  # finished results kept for inspection


@dataclass
class OperationResult:
    """Outcome of a completed operation."""

    name: str
    """Operation name (e.g., 'reboot', 'firmware-update')."""

    success: bool
    """Whether both steps completed without raising."""

    duration: float
    """Wall-clock seconds from start to completion."""

    error: Optional[str] = None
    """Error message if a step raised."""


class OperationRunner:
    """Schedules simulated operations onto background tasks.

    Failures inside an operation are logged and captured in its
    OperationResult; they never propagate into the caller that scheduled it.
    """

    def __init__(self, history: int = RESULT_HISTORY) -> None:
        self._tasks: Set[asyncio.Task[OperationResult]] = set()
        self._results: Deque[OperationResult] = deque(maxlen=history)

    @property
    def in_flight(self) -> int:
        """Number of operations not yet finished."""
        return len(self._tasks)

    @property
    def results(self) -> List[OperationResult]:
        """Most recent finished results, oldest first."""
        return list(self._results)

    def run(
        self,
        name: str,
        duration: float,
        on_start: Optional[OperationStep] = None,
        on_complete: Optional[OperationStep] = None,
    ) -> asyncio.Task[OperationResult]:
        """Schedule an operation and return immediately.

        Must be called from a running event loop.

        Args:
            name: Operation name for logging.
            duration: Simulated duration in seconds.
            on_start: Coroutine factory run before the wait.
            on_complete: Coroutine factory run after the wait.

        Returns:
            The task running the operation.
        """
        task = asyncio.get_running_loop().create_task(
            self._execute(name, duration, on_start, on_complete),
            name=f"operation-{name}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        log.debug("operation_scheduled", operation=name, duration=duration)
        return task

    async def _execute(
        self,
        name: str,
        duration: float,
        on_start: Optional[OperationStep],
        on_complete: Optional[OperationStep],
    ) -> OperationResult:
        started = time.monotonic()
        log.info("operation_started", operation=name, duration=duration)
        try:
            if on_start is not None:
                await on_start()
            await asyncio.sleep(duration)
            if on_complete is not None:
                await on_complete()
        except Exception as e:
            result = OperationResult(
                name=name,
                success=False,
                duration=time.monotonic() - started,
                error=str(e),
            )
            log.error(
                "operation_failed",
                operation=name,
                error=str(e),
                error_type=type(e).__name__,
            )
        else:
            result = OperationResult(
                name=name,
                success=True,
                duration=time.monotonic() - started,
            )
            log.info("operation_completed", operation=name, elapsed=round(result.duration, 3))
        self._results.append(result)
        return result

    async def join(self) -> List[OperationResult]:
        """Wait for every in-flight operation, including ones scheduled meanwhile.

        Returns:
            Results of the operations that were awaited.
        """
        finished: List[OperationResult] = []
        while self._tasks:
            pending = list(self._tasks)
            log.info("operations_draining", count=len(pending))
            finished.extend(await asyncio.gather(*pending))
        return finished
