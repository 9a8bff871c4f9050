"""
Device Simulator - A simulated cellular IoT security device.

The simulated device emits periodic sensor telemetry to a hub and reacts to
direct methods, desired-property updates and configuration, command and
firmware messages.

Features:
- Configuration via YAML with environment variable overrides
- Docker secrets support for the hub token
- Structured logging (JSON for production, text for development)
- WebSocket hub transport with retry and backoff, plus an in-memory transport
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
