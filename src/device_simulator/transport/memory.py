"""In-process transport adapter.

Used by the test suite and by ``device-simulator --offline``. Sent events,
reported properties and message dispositions are recorded; inbound traffic is
injected with :meth:`InMemoryTransport.deliver_message`,
:meth:`InMemoryTransport.invoke_method` and
:meth:`InMemoryTransport.patch_desired`.
"""

from __future__ import annotations

import asyncio
import json
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Mapping, Optional

import structlog

from device_simulator.exceptions import SetupFailure, TransportFailure
from device_simulator.models.events import CONTENT_TYPE_JSON
from device_simulator.transport.base import (
    DesiredPropertyHandler,
    InboundMessage,
    MessageDisposition,
    MessageHandler,
    MethodHandler,
    MethodRequest,
    MethodResponse,
)

log = structlog.get_logger()


@dataclass
class SentEvent:
    """An event captured by the in-memory transport."""

    payload: bytes
    content_type: str

    def json(self) -> Dict[str, Any]:
        """Decode the payload."""
        return json.loads(self.payload.decode("utf-8"))

    @property
    def event_type(self) -> str:
        """Value of the ``type`` field; telemetry events carry none."""
        return self.json().get("type", "telemetry")


class InMemoryTransport:
    """TransportPort implementation that keeps everything in memory.

    Attributes:
        fail_sends: When > 0, the next ``fail_sends`` sends raise
            TransportFailure (decremented per failure). -1 fails forever.
        fail_registration: When True, handler registration raises SetupFailure.
        echo_events: Log every sent event (offline mode).
    """

    def __init__(self, echo_events: bool = False, max_recorded: Optional[int] = None) -> None:
        """Initialize the transport.

        Args:
            echo_events: Log sent events and reported properties.
            max_recorded: Keep only the newest entries of each record (None keeps all).
        """
        self.connected = False
        self.fail_sends = 0
        self.fail_registration = False
        self.echo_events = echo_events
        self._events: Deque[SentEvent] = deque(maxlen=max_recorded)
        self._reported: Deque[Dict[str, Any]] = deque(maxlen=max_recorded)
        self._dispositions: Deque[MessageDisposition] = deque(maxlen=max_recorded)
        self._message_handler: Optional[MessageHandler] = None
        self._method_handlers: Dict[str, MethodHandler] = {}
        self._desired_handler: Optional[DesiredPropertyHandler] = None

    # TransportPort

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.connected = False

    async def send_event(self, payload: bytes, content_type: str = CONTENT_TYPE_JSON) -> None:
        if self.fail_sends:
            if self.fail_sends > 0:
                self.fail_sends -= 1
            raise TransportFailure("Simulated send failure")
        event = SentEvent(payload=payload, content_type=content_type)
        self._events.append(event)
        if self.echo_events:
            log.info("event_sent", event_type=event.event_type, payload=event.json())

    async def on_inbound_message(self, handler: MessageHandler) -> None:
        self._check_registration("inbound message")
        self._message_handler = handler

    async def on_method(self, name: str, handler: MethodHandler) -> None:
        self._check_registration(f"method {name}")
        self._method_handlers[name] = handler

    async def on_desired_property_change(self, handler: DesiredPropertyHandler) -> None:
        self._check_registration("desired properties")
        self._desired_handler = handler

    async def update_reported_properties(self, properties: Mapping[str, Any]) -> None:
        self._reported.append(dict(properties))
        if self.echo_events:
            log.info("reported_properties_updated", properties=dict(properties))

    # Inbound injection

    async def deliver_message(
        self, body: bytes | str, message_id: str = ""
    ) -> MessageDisposition:
        """Deliver an application message and record the handler's verdict."""
        if self._message_handler is None:
            raise RuntimeError("No inbound message handler registered")
        if isinstance(body, str):
            body = body.encode("utf-8")
        disposition = await self._message_handler(
            InboundMessage(body=body, message_id=message_id)
        )
        self._dispositions.append(disposition)
        return disposition

    async def invoke_method(self, name: str, payload: Any = None) -> MethodResponse:
        """Invoke a direct method; unknown names answer 404 like a real hub."""
        handler = self._method_handlers.get(name)
        if handler is None:
            return MethodResponse(status=404, payload={"error": f"Unknown method: {name}"})
        if payload is None:
            raw = b""
        elif isinstance(payload, bytes):
            raw = payload
        else:
            raw = json.dumps(payload).encode("utf-8")
        return await handler(MethodRequest(name=name, payload=raw))

    async def patch_desired(self, properties: Mapping[str, Any]) -> None:
        """Deliver a desired-property patch."""
        if self._desired_handler is None:
            raise RuntimeError("No desired property handler registered")
        await self._desired_handler(dict(properties))

    # Inspection

    @property
    def events(self) -> List[SentEvent]:
        return list(self._events)

    @property
    def reported(self) -> List[Dict[str, Any]]:
        return list(self._reported)

    @property
    def dispositions(self) -> List[MessageDisposition]:
        return list(self._dispositions)

    @property
    def registered_methods(self) -> List[str]:
        return sorted(self._method_handlers)

    def events_of_type(self, event_type: str) -> List[Dict[str, Any]]:
        """Decoded events whose ``type`` matches (``telemetry`` for untyped)."""
        return [e.json() for e in self.events if e.event_type == event_type]

    async def wait_for_events(
        self, event_type: str, count: int = 1, timeout: float = 5.0
    ) -> List[Dict[str, Any]]:
        """Poll until ``count`` events of a type were sent.

        Raises:
            asyncio.TimeoutError: If they do not arrive within ``timeout``.
        """

        async def _poll() -> List[Dict[str, Any]]:
            while True:
                matched = self.events_of_type(event_type)
                if len(matched) >= count:
                    return matched
                await asyncio.sleep(0.01)

        return await asyncio.wait_for(_poll(), timeout=timeout)

    def _check_registration(self, what: str) -> None:
        if self.fail_registration:
            raise SetupFailure(f"Registration of {what} handler refused")
