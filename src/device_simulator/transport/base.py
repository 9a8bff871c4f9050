"""Transport port: the device's only view of the hub connection.

The core never touches sockets or authentication. It sends events, pushes
reported properties and registers handlers through this Protocol; adapters
(:mod:`.memory`, :mod:`.websocket`) implement it.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Protocol, runtime_checkable

from device_simulator.models.events import CONTENT_TYPE_JSON


class MessageDisposition(str, Enum):
    """Verdict returned for an inbound application message."""

    ACCEPT = "accept"
    REJECT = "reject"


@dataclass
class InboundMessage:
    """A cloud-to-device application message as delivered by the transport."""

    body: bytes
    """Raw message body (UTF-8 JSON envelope)."""

    message_id: str = ""
    """Transport-assigned identifier used for ack/reject."""

    properties: Dict[str, str] = field(default_factory=dict)
    """Application properties attached by the sender."""


@dataclass
class MethodRequest:
    """A direct method invocation."""

    name: str
    """Method name (e.g., 'SetTelemetryInterval')."""

    payload: bytes = b""
    """Raw JSON payload; empty when the caller sent none."""

    request_id: str = ""
    """Transport-assigned identifier used to route the response."""

    def json(self) -> Any:
        """Decode the payload as JSON; empty payload decodes to None.

        Raises:
            ValueError: If the payload is not valid UTF-8 JSON.
        """
        if not self.payload:
            return None
        return json.loads(self.payload.decode("utf-8"))


@dataclass
class MethodResponse:
    """Status-coded response to a direct method."""

    status: int
    """200 on success, 400 on malformed payload, 404 for unknown methods."""

    payload: Optional[Dict[str, Any]] = None
    """Optional JSON-serializable response body."""


MessageHandler = Callable[[InboundMessage], Awaitable[MessageDisposition]]
MethodHandler = Callable[[MethodRequest], Awaitable[MethodResponse]]
DesiredPropertyHandler = Callable[[Dict[str, Any]], Awaitable[None]]


@runtime_checkable
class TransportPort(Protocol):
    """Interface every transport adapter implements.

    Send and connect errors surface as
    :class:`~device_simulator.exceptions.TransportFailure`.
    """

    async def connect(self) -> None:
        """Open the connection."""
        ...

    async def close(self) -> None:
        """Close the connection; safe to call twice."""
        ...

    async def send_event(self, payload: bytes, content_type: str = CONTENT_TYPE_JSON) -> None:
        """Send a device-to-cloud event."""
        ...

    async def on_inbound_message(self, handler: MessageHandler) -> None:
        """Register the single application-message handler."""
        ...

    async def on_method(self, name: str, handler: MethodHandler) -> None:
        """Register a handler for one direct method name."""
        ...

    async def on_desired_property_change(self, handler: DesiredPropertyHandler) -> None:
        """Register the desired-property patch handler."""
        ...

    async def update_reported_properties(self, properties: Mapping[str, Any]) -> None:
        """Push reported properties to the twin."""
        ...
