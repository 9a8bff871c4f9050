"""Transport port and adapters.

- TransportPort: the interface the device core depends on
- InMemoryTransport: in-process adapter for tests and offline runs
- WebSocketTransport: JSON-framed WebSocket link to a device hub
"""

from device_simulator.transport.base import (
    DesiredPropertyHandler,
    InboundMessage,
    MessageDisposition,
    MessageHandler,
    MethodHandler,
    MethodRequest,
    MethodResponse,
    TransportPort,
)
from device_simulator.transport.memory import InMemoryTransport, SentEvent
from device_simulator.transport.websocket import WebSocketTransport, create_connect_retry

__all__ = [
    # Port
    "TransportPort",
    "InboundMessage",
    "MessageDisposition",
    "MethodRequest",
    "MethodResponse",
    "MessageHandler",
    "MethodHandler",
    "DesiredPropertyHandler",
    # Adapters
    "InMemoryTransport",
    "SentEvent",
    "WebSocketTransport",
    "create_connect_retry",
]
