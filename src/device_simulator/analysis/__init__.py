"""Alert analysis for device vitals."""

from device_simulator.analysis.alerts import AlertEvaluation, evaluate

__all__ = ["AlertEvaluation", "evaluate"]
