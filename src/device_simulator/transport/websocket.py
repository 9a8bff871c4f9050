"""WebSocket transport adapter for a device hub.

Carries all device traffic over a single WebSocket as JSON frames, each with
a ``kind`` field.

Device to hub::

    {"kind": "event", "contentType": "application/json", "body": "<json text>"}
    {"kind": "reported", "properties": {...}}
    {"kind": "ack", "messageId": "..."}
    {"kind": "reject", "messageId": "..."}
    {"kind": "methodResponse", "requestId": "...", "status": 200, "payload": {...}}

Hub to device::

    {"kind": "message", "messageId": "...", "body": {...} | "<json text>"}
    {"kind": "method", "requestId": "...", "name": "...", "payload": {...}}
    {"kind": "desired", "properties": {...}}

Features:
- Bearer-token authentication header
- Exponential backoff on connect (tenacity)
- Automatic reconnection while running
- Each inbound frame handled on its own task, so slow handlers never block
  the receive loop

Example usage:
    transport = WebSocketTransport(
        url="wss://hub.example.com/devices/sim-1",
        device_id="sim-1",
        token="abc123",
    )
    await transport.connect()
    await transport.send_event(b'{"temperature": 22.0}')
    await transport.close()
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional, Set

import structlog
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from device_simulator.exceptions import TransportFailure
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

if TYPE_CHECKING:
    from websockets.asyncio.client import ClientConnection

logger = structlog.get_logger(__name__)

RECONNECT_DELAY = 5.0  # seconds between reconnect attempts while running


def create_connect_retry(
    max_retries: int = 5,
    min_wait: float = 1,
    max_wait: float = 60,
    log_level: int = logging.WARNING,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Create a tenacity retry decorator for connection attempts.

    Retries on network errors and handshake failures with exponential backoff
    starting at ``min_wait`` seconds and capped at ``max_wait``. The last
    error is re-raised once attempts are exhausted.

    Args:
        max_retries: Maximum number of attempts.
        min_wait: Minimum wait time in seconds between attempts.
        max_wait: Maximum wait time in seconds between attempts.
        log_level: Log level for retry attempt messages.

    Returns:
        A tenacity retry decorator (works on coroutine functions).
    """
    from websockets.exceptions import InvalidHandshake

    stdlib_logger = logging.getLogger(__name__)

    return retry(
        stop=stop_after_attempt(max(1, max_retries)),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type((OSError, asyncio.TimeoutError, InvalidHandshake)),
        before_sleep=before_sleep_log(stdlib_logger, log_level),
        reraise=True,
    )


def _encode_body(body: Any) -> bytes:
    if isinstance(body, str):
        return body.encode("utf-8")
    return json.dumps(body).encode("utf-8")


def _as_mapping(value: Any) -> Dict[str, Any]:
    """Frame fields that must be objects; anything else reads as empty."""
    if isinstance(value, dict):
        return dict(value)
    if value is not None:
        logger.warning("transport_field_not_object", value_type=type(value).__name__)
    return {}


class WebSocketTransport:
    """TransportPort implementation over a JSON-framed WebSocket."""

    def __init__(
        self,
        url: str,
        device_id: str,
        token: Optional[str] = None,
        connect_timeout: float = 10.0,
        max_retries: int = 5,
    ) -> None:
        """Initialize the transport.

        Args:
            url: Hub WebSocket URL (ws:// or wss://).
            device_id: Identity sent in the X-Device-Id header.
            token: Optional bearer token.
            connect_timeout: Seconds to wait for the handshake.
            max_retries: Connect attempts before giving up.
        """
        self._url = url
        self._device_id = device_id
        self._token = token
        self._connect_timeout = connect_timeout
        self._max_retries = max_retries
        self._ws: ClientConnection | None = None
        self._running = False
        self._receive_task: asyncio.Task[None] | None = None
        self._frame_tasks: Set[asyncio.Task[None]] = set()
        self._send_lock = asyncio.Lock()
        self._message_handler: Optional[MessageHandler] = None
        self._method_handlers: Dict[str, MethodHandler] = {}
        self._desired_handler: Optional[DesiredPropertyHandler] = None

    @property
    def url(self) -> str:
        return self._url

    def _headers(self) -> Dict[str, str]:
        headers = {"X-Device-Id": self._device_id}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _open(self) -> None:
        import websockets

        self._ws = await asyncio.wait_for(
            websockets.connect(self._url, additional_headers=self._headers()),
            timeout=self._connect_timeout,
        )
        logger.info("transport_connected", url=self._url, device_id=self._device_id)

    async def connect(self) -> None:
        """Connect with retries and start the receive loop.

        Raises:
            TransportFailure: If every attempt fails.
        """
        if self._running:
            return
        try:
            await create_connect_retry(max_retries=self._max_retries)(self._open)()
        except Exception as e:
            raise TransportFailure(
                f"Cannot connect to hub at {self._url}: {e}",
            ) from e
        self._running = True
        self._receive_task = asyncio.get_running_loop().create_task(
            self._receive_loop(), name="transport-receive"
        )

    async def close(self) -> None:
        """Stop the receive loop and close the socket."""
        self._running = False
        if self._receive_task is not None:
            self._receive_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._receive_task
            self._receive_task = None
        if self._frame_tasks:
            await asyncio.gather(*self._frame_tasks, return_exceptions=True)
        if self._ws is not None:
            with contextlib.suppress(Exception):
                await self._ws.close()
            self._ws = None
        logger.debug("transport_closed", url=self._url)

    def is_connected(self) -> bool:
        """Check if the WebSocket is currently open."""
        return self._ws is not None and self._ws.state.name == "OPEN"

    async def _send_frame(self, frame: Dict[str, Any]) -> None:
        from websockets.exceptions import ConnectionClosed

        if not self.is_connected():
            raise TransportFailure("Hub connection is not open")
        assert self._ws is not None
        try:
            async with self._send_lock:
                await self._ws.send(json.dumps(frame))
        except (ConnectionClosed, OSError) as e:
            raise TransportFailure(f"Send failed: {e}") from e

    async def send_event(self, payload: bytes, content_type: str = CONTENT_TYPE_JSON) -> None:
        await self._send_frame(
            {"kind": "event", "contentType": content_type, "body": payload.decode("utf-8")}
        )

    async def update_reported_properties(self, properties: Mapping[str, Any]) -> None:
        await self._send_frame({"kind": "reported", "properties": dict(properties)})

    async def on_inbound_message(self, handler: MessageHandler) -> None:
        self._message_handler = handler

    async def on_method(self, name: str, handler: MethodHandler) -> None:
        self._method_handlers[name] = handler

    async def on_desired_property_change(self, handler: DesiredPropertyHandler) -> None:
        self._desired_handler = handler

    async def _receive_loop(self) -> None:
        """Receive frames until closed, reconnecting on disconnect."""
        from websockets.exceptions import ConnectionClosed, InvalidHandshake

        while self._running:
            if not self.is_connected():
                try:
                    await self._open()
                except (OSError, asyncio.TimeoutError, InvalidHandshake) as e:
                    logger.warning("transport_reconnect_failed", url=self._url, error=str(e))
                    await asyncio.sleep(RECONNECT_DELAY)
                    continue

            try:
                assert self._ws is not None
                async for raw in self._ws:
                    self._spawn(raw)
            except ConnectionClosed as e:
                logger.warning("transport_disconnected", reason=str(e))
                self._ws = None
                await asyncio.sleep(1.0)
            except Exception as e:
                logger.error("transport_error", error=str(e), error_type=type(e).__name__)
                self._ws = None
                await asyncio.sleep(RECONNECT_DELAY)

    def _spawn(self, raw: str | bytes) -> None:
        task = asyncio.get_running_loop().create_task(self._handle_frame(raw))
        self._frame_tasks.add(task)
        task.add_done_callback(self._frame_tasks.discard)

    async def _handle_frame(self, raw: str | bytes) -> None:
        try:
            frame = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("transport_invalid_frame", frame=str(raw)[:100])
            return
        if not isinstance(frame, dict):
            logger.warning("transport_invalid_frame", frame=str(raw)[:100])
            return

        kind = frame.get("kind")
        try:
            if kind == "message":
                await self._dispatch_message(frame)
            elif kind == "method":
                await self._dispatch_method(frame)
            elif kind == "desired":
                if self._desired_handler is not None:
                    await self._desired_handler(_as_mapping(frame.get("properties")))
            else:
                logger.debug("transport_frame_ignored", kind=kind)
        except TransportFailure as e:
            logger.warning("transport_reply_failed", kind=kind, error=str(e))
        except Exception as e:
            logger.error(
                "transport_frame_failed", kind=kind, error=str(e), error_type=type(e).__name__
            )
            await self._reply_failure(kind, frame)

    async def _reply_failure(self, kind: Any, frame: Dict[str, Any]) -> None:
        if kind == "message":
            reply = {"kind": "reject", "messageId": str(frame.get("messageId", ""))}
        elif kind == "method":
            reply = {
                "kind": "methodResponse",
                "requestId": str(frame.get("requestId", "")),
                "status": 500,
                "payload": {"error": "Internal error"},
            }
        else:
            return
        try:
            await self._send_frame(reply)
        except TransportFailure as e:
            logger.warning("transport_reply_failed", kind=kind, error=str(e))

    async def _dispatch_message(self, frame: Dict[str, Any]) -> None:
        message_id = str(frame.get("messageId", ""))
        disposition = MessageDisposition.REJECT
        if self._message_handler is not None:
            message = InboundMessage(
                body=_encode_body(frame.get("body")),
                message_id=message_id,
                properties=_as_mapping(frame.get("properties")),
            )
            disposition = await self._message_handler(message)
        kind = "ack" if disposition == MessageDisposition.ACCEPT else "reject"
        await self._send_frame({"kind": kind, "messageId": message_id})

    async def _dispatch_method(self, frame: Dict[str, Any]) -> None:
        name = str(frame.get("name", ""))
        request_id = str(frame.get("requestId", ""))
        handler = self._method_handlers.get(name)
        if handler is None:
            response = MethodResponse(status=404, payload={"error": f"Unknown method: {name}"})
        else:
            payload = frame.get("payload")
            request = MethodRequest(
                name=name,
                payload=b"" if payload is None else _encode_body(payload),
                request_id=request_id,
            )
            response = await handler(request)
        await self._send_frame(
            {
                "kind": "methodResponse",
                "requestId": request_id,
                "status": response.status,
                "payload": response.payload,
            }
        )
