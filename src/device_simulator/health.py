"""File-based health check for container monitoring.

The simulator writes its current health to a small JSON file that a Docker
HEALTHCHECK can read. The telemetry loop marks the device healthy after a
successful send and unhealthy after a send failure.

Docker HEALTHCHECK example:
    HEALTHCHECK --interval=30s --timeout=3s --retries=3 \\
        CMD python -c "import json; h=json.loads(open('/tmp/device-simulator-health').read()); exit(0 if h['status']=='healthy' else 1)"

Example usage:
    from device_simulator.health import update_health_status, HealthStatus

    update_health_status(HealthStatus.STARTING)
    update_health_status(HealthStatus.HEALTHY, {"device_id": "sim-1"})
    update_health_status(HealthStatus.UNHEALTHY, {"error": "Send failed"})
    clear_health_status()
"""

import json
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

HEALTH_FILE = Path("/tmp/device-simulator-health")

PathLike = Union[str, Path]


class HealthStatus(Enum):
    """Health status values written to the health file.

    Values:
        STARTING: Simulator is registering handlers and connecting
        HEALTHY: Last telemetry send succeeded
        UNHEALTHY: Last telemetry send failed
    """

    STARTING = "starting"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


def update_health_status(
    status: HealthStatus,
    details: Optional[Dict[str, Any]] = None,
    path: Optional[PathLike] = None,
) -> None:
    """Write health status to file.

    Args:
        status: Current health status of the simulator.
        details: Optional dictionary with additional status information.
        path: Health file location. Defaults to HEALTH_FILE.

    Example:
        >>> update_health_status(HealthStatus.HEALTHY, {"device_id": "sim-1"})
        >>> # File now contains:
        >>> # {"status": "healthy", "timestamp": "2024-01-15T12:30:00+00:00", "details": {"device_id": "sim-1"}}
    """
    health_data = {
        "status": status.value,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "details": details or {},
    }
    Path(path or HEALTH_FILE).write_text(json.dumps(health_data))


def get_health_status(path: Optional[PathLike] = None) -> Optional[Dict[str, Any]]:
    """Read current health status from file.

    Returns:
        Dictionary with health status data, or None if the file is missing
        or unreadable.
    """
    health_file = Path(path or HEALTH_FILE)
    if not health_file.exists():
        return None
    try:
        return json.loads(health_file.read_text())
    except (json.JSONDecodeError, OSError):
        return None


def clear_health_status(path: Optional[PathLike] = None) -> None:
    """Remove the health file on shutdown."""
    Path(path or HEALTH_FILE).unlink(missing_ok=True)
