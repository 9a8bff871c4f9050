"""Background runner for simulated multi-second device operations."""

from device_simulator.operations.runner import RESULT_HISTORY, OperationResult, OperationRunner

__all__ = ["RESULT_HISTORY", "OperationResult", "OperationRunner"]
