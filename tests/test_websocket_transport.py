"""Tests for the WebSocket transport adapter.

Uses a fake connection object in place of a real socket:
- Outbound frame encoding
- Inbound frame dispatch (message, method, desired)
- Connect retry and failure mapping
"""

import asyncio
import json
from types import SimpleNamespace
from typing import Any, Dict, List
from unittest.mock import AsyncMock, patch

import pytest
from websockets.exceptions import ConnectionClosedError

from device_simulator.exceptions import TransportFailure
from device_simulator.transport import (
    InboundMessage,
    MessageDisposition,
    MethodRequest,
    MethodResponse,
    WebSocketTransport,
    create_connect_retry,
)


class FakeConnection:
    """Stand-in for a websockets ClientConnection."""

    def __init__(self, inbound: List[Dict[str, Any]] = None) -> None:
        self.state = SimpleNamespace(name="OPEN")
        self.sent: List[Dict[str, Any]] = []
        self._inbound: asyncio.Queue = asyncio.Queue()
        for frame in inbound or []:
            self._inbound.put_nowait(json.dumps(frame))

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def close(self) -> None:
        self.state = SimpleNamespace(name="CLOSED")

    def feed(self, frame: Any) -> None:
        self._inbound.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))

    def __aiter__(self) -> "FakeConnection":
        return self

    async def __anext__(self) -> str:
        return await self._inbound.get()


def make_transport(ws: FakeConnection = None, **kwargs: Any) -> WebSocketTransport:
    transport = WebSocketTransport(url="ws://hub.test/devices/sim-1", device_id="sim-1", **kwargs)
    if ws is not None:
        transport._ws = ws
    return transport


async def wait_for_sent(ws: FakeConnection, count: int = 1) -> List[Dict[str, Any]]:
    for _ in range(200):
        if len(ws.sent) >= count:
            return ws.sent
        await asyncio.sleep(0.01)
    raise AssertionError(f"expected {count} frames, got {ws.sent}")


class TestOutboundFrames:
    """Tests for frames the device sends."""

    @pytest.mark.asyncio
    async def test_send_event_frame(self) -> None:
        ws = FakeConnection()
        transport = make_transport(ws)

        await transport.send_event(b'{"temperature": 22.5}')

        assert ws.sent == [
            {"kind": "event", "contentType": "application/json", "body": '{"temperature": 22.5}'}
        ]

    @pytest.mark.asyncio
    async def test_reported_frame(self) -> None:
        ws = FakeConnection()
        transport = make_transport(ws)

        await transport.update_reported_properties({"reportingInterval": 10})

        assert ws.sent == [{"kind": "reported", "properties": {"reportingInterval": 10}}]

    @pytest.mark.asyncio
    async def test_send_without_connection_fails(self) -> None:
        with pytest.raises(TransportFailure):
            await make_transport().send_event(b"{}")

    @pytest.mark.asyncio
    async def test_send_on_closed_socket_fails(self) -> None:
        ws = FakeConnection()
        ws.send = AsyncMock(side_effect=ConnectionClosedError(None, None))  # type: ignore[method-assign]
        transport = make_transport(ws)

        with pytest.raises(TransportFailure):
            await transport.send_event(b"{}")


class TestInboundFrames:
    """Tests for frames the hub sends."""

    @pytest.mark.asyncio
    async def test_message_acknowledged(self) -> None:
        ws = FakeConnection()
        transport = make_transport(ws)
        received: List[InboundMessage] = []

        async def handler(message: InboundMessage) -> MessageDisposition:
            received.append(message)
            return MessageDisposition.ACCEPT

        await transport.on_inbound_message(handler)

        await transport._handle_frame(
            json.dumps({"kind": "message", "messageId": "m-1", "body": {"type": "command"}})
        )

        assert ws.sent == [{"kind": "ack", "messageId": "m-1"}]
        assert json.loads(received[0].body) == {"type": "command"}

    @pytest.mark.asyncio
    async def test_message_body_as_text(self) -> None:
        ws = FakeConnection()
        transport = make_transport(ws)
        handler = AsyncMock(return_value=MessageDisposition.REJECT)
        await transport.on_inbound_message(handler)

        await transport._handle_frame(
            json.dumps({"kind": "message", "messageId": "m-2", "body": "{not json"})
        )

        assert handler.await_args.args[0].body == b"{not json"
        assert ws.sent == [{"kind": "reject", "messageId": "m-2"}]

    @pytest.mark.asyncio
    async def test_message_without_handler_rejected(self) -> None:
        ws = FakeConnection()
        transport = make_transport(ws)

        await transport._handle_frame(json.dumps({"kind": "message", "messageId": "m-3", "body": {}}))

        assert ws.sent == [{"kind": "reject", "messageId": "m-3"}]

    @pytest.mark.asyncio
    async def test_method_response(self) -> None:
        ws = FakeConnection()
        transport = make_transport(ws)

        async def handler(request: MethodRequest) -> MethodResponse:
            return MethodResponse(status=200, payload={"echo": request.json()})

        await transport.on_method("Echo", handler)

        await transport._handle_frame(
            json.dumps({"kind": "method", "requestId": "r-1", "name": "Echo", "payload": {"a": 1}})
        )

        assert ws.sent == [
            {"kind": "methodResponse", "requestId": "r-1", "status": 200, "payload": {"echo": {"a": 1}}}
        ]

    @pytest.mark.asyncio
    async def test_unregistered_method_is_404(self) -> None:
        ws = FakeConnection()
        transport = make_transport(ws)

        await transport._handle_frame(json.dumps({"kind": "method", "requestId": "r-2", "name": "Nope"}))

        assert ws.sent[0]["status"] == 404
        assert ws.sent[0]["requestId"] == "r-2"

    @pytest.mark.asyncio
    async def test_method_without_payload(self) -> None:
        ws = FakeConnection()
        transport = make_transport(ws)
        handler = AsyncMock(return_value=MethodResponse(status=200))
        await transport.on_method("PerformMaintenance", handler)

        await transport._handle_frame(
            json.dumps({"kind": "method", "requestId": "r-3", "name": "PerformMaintenance"})
        )

        assert handler.await_args.args[0].payload == b""

    @pytest.mark.asyncio
    async def test_desired_properties(self) -> None:
        transport = make_transport(FakeConnection())
        handler = AsyncMock()
        await transport.on_desired_property_change(handler)

        await transport._handle_frame(
            json.dumps({"kind": "desired", "properties": {"reportingInterval": 7}})
        )

        handler.assert_awaited_once_with({"reportingInterval": 7})

    @pytest.mark.asyncio
    async def test_non_object_properties_read_as_empty(self) -> None:
        ws = FakeConnection()
        transport = make_transport(ws)
        handler = AsyncMock(return_value=MessageDisposition.ACCEPT)
        await transport.on_inbound_message(handler)

        await transport._handle_frame(
            json.dumps(
                {"kind": "message", "messageId": "m-5", "body": {"type": "x"}, "properties": "oops"}
            )
        )

        assert handler.await_args.args[0].properties == {}
        assert ws.sent == [{"kind": "ack", "messageId": "m-5"}]

    @pytest.mark.asyncio
    async def test_non_object_desired_properties_read_as_empty(self) -> None:
        transport = make_transport(FakeConnection())
        handler = AsyncMock()
        await transport.on_desired_property_change(handler)

        await transport._handle_frame(json.dumps({"kind": "desired", "properties": [1, 2]}))

        handler.assert_awaited_once_with({})

    @pytest.mark.asyncio
    async def test_handler_error_rejects_message(self) -> None:
        ws = FakeConnection()
        transport = make_transport(ws)
        await transport.on_inbound_message(AsyncMock(side_effect=RuntimeError("boom")))

        await transport._handle_frame(json.dumps({"kind": "message", "messageId": "m-6", "body": {}}))

        assert ws.sent == [{"kind": "reject", "messageId": "m-6"}]

    @pytest.mark.asyncio
    async def test_handler_error_is_500(self) -> None:
        ws = FakeConnection()
        transport = make_transport(ws)
        await transport.on_method("Echo", AsyncMock(side_effect=RuntimeError("boom")))

        await transport._handle_frame(json.dumps({"kind": "method", "requestId": "r-4", "name": "Echo"}))

        assert ws.sent[0]["status"] == 500
        assert ws.sent[0]["requestId"] == "r-4"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"kind": "telemetry"}'])
    async def test_invalid_or_unknown_frames_ignored(self, raw: str) -> None:
        ws = FakeConnection()
        transport = make_transport(ws)

        await transport._handle_frame(raw)

        assert ws.sent == []

    @pytest.mark.asyncio
    async def test_reply_failure_does_not_raise(self) -> None:
        ws = FakeConnection()
        ws.send = AsyncMock(side_effect=ConnectionClosedError(None, None))  # type: ignore[method-assign]
        transport = make_transport(ws)

        await transport._handle_frame(json.dumps({"kind": "message", "messageId": "m-4"}))


class TestConnect:
    """Tests for connect(), retries and the receive loop."""

    @pytest.mark.asyncio
    async def test_connect_sends_headers_and_dispatches(self) -> None:
        ws = FakeConnection()
        connect = AsyncMock(return_value=ws)
        transport = make_transport(token="secret")
        await transport.on_method("Ping", AsyncMock(return_value=MethodResponse(status=200)))

        with patch("websockets.connect", connect):
            await transport.connect()
            try:
                assert transport.is_connected()
                headers = connect.call_args.kwargs["additional_headers"]
                assert headers == {"X-Device-Id": "sim-1", "Authorization": "Bearer secret"}

                ws.feed({"kind": "method", "requestId": "r-9", "name": "Ping"})
                sent = await wait_for_sent(ws)
                assert sent[0]["kind"] == "methodResponse"
                assert sent[0]["status"] == 200
            finally:
                await transport.close()

        assert not transport.is_connected()

    @pytest.mark.asyncio
    async def test_no_authorization_without_token(self) -> None:
        assert make_transport()._headers() == {"X-Device-Id": "sim-1"}

    @pytest.mark.asyncio
    async def test_connect_failure_raises_transport_failure(self) -> None:
        connect = AsyncMock(side_effect=OSError("refused"))
        transport = make_transport(max_retries=1)

        with patch("websockets.connect", connect):
            with pytest.raises(TransportFailure) as exc_info:
                await transport.connect()

        assert "refused" in exc_info.value.message
        assert connect.await_count == 1

    @pytest.mark.asyncio
    async def test_connect_retries_then_succeeds(self) -> None:
        ws = FakeConnection()
        connect = AsyncMock(side_effect=[OSError("refused"), ws])
        transport = make_transport(max_retries=3)

        with patch("websockets.connect", connect), patch("asyncio.sleep", new=AsyncMock()):
            await transport.connect()
        try:
            assert connect.await_count == 2
            assert transport.is_connected()
        finally:
            await transport.close()


class TestConnectRetry:
    """Tests for create_connect_retry()."""

    @pytest.mark.asyncio
    async def test_non_network_errors_not_retried(self) -> None:
        calls = []

        @create_connect_retry(max_retries=3, min_wait=0, max_wait=0)
        async def attempt() -> None:
            calls.append(1)
            raise ValueError("bad")

        with pytest.raises(ValueError):
            await attempt()
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self) -> None:
        calls = []

        @create_connect_retry(max_retries=3, min_wait=0, max_wait=0)
        async def attempt() -> None:
            calls.append(1)
            raise OSError("down")

        with pytest.raises(OSError):
            await attempt()
        assert len(calls) == 3
