"""Control channel: the device's inbound surfaces.

Three independent surfaces reach the device record:

- Direct methods (request/response with a status code)
- Desired-property patches (twin), echoed back as reported properties
- Application messages (configuration, command, firmware), acknowledged or
  rejected per message

Every handler validates its input before taking the mutation gate, so a
record update is all-or-nothing. Sends and simulated delays happen outside
the gate; multi-second effects are handed to the OperationRunner.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Type, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from device_simulator.control.envelope import (
    CommandEnvelope,
    ConfigurationEnvelope,
    Envelope,
    FirmwareEnvelope,
    UnknownEnvelope,
    parse_envelope,
)
from device_simulator.exceptions import (
    MalformedInboundPayload,
    SetupFailure,
    TransportFailure,
    UnknownOperation,
)
from device_simulator.models import (
    CONTENT_TYPE_JSON,
    AlertEvent,
    CommandAction,
    ConfigurationAckEvent,
    DeviceCommand,
    DeviceConfiguration,
    DeviceStatus,
    FirmwareStatusEvent,
    FirmwareUpdate,
    SelfTestEvent,
    SelfTestResult,
    SetTelemetryIntervalRequest,
    TriggerAlertRequest,
    encode_event,
    normalize_thresholds,
)
from device_simulator.operations import OperationRunner
from device_simulator.state import DeviceStore
from device_simulator.transport.base import (
    InboundMessage,
    MessageDisposition,
    MethodRequest,
    MethodResponse,
    TransportPort,
)

log = structlog.get_logger()

STATUS_OK = 200
STATUS_BAD_REQUEST = 400
STATUS_SERVER_ERROR = 500

# Default simulated durations (seconds)
REBOOT_DURATION = 2.0
FIRMWARE_UPDATE_DURATION = 5.0
MAINTENANCE_WINDOW = 10.0

ArgsT = TypeVar("ArgsT", bound=BaseModel)


def parse_method_args(model: Type[ArgsT], request: MethodRequest) -> ArgsT:
    """Decode and validate a method payload.

    Raises:
        MalformedInboundPayload: If the payload is missing, not JSON or invalid.
    """
    try:
        payload = request.json()
    except ValueError as e:
        raise MalformedInboundPayload(f"{request.name}: payload is not valid JSON") from e
    if payload is None:
        raise MalformedInboundPayload(f"{request.name}: payload is required")
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "payload" for err in e.errors())
        raise MalformedInboundPayload(f"{request.name}: invalid {fields}") from e


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class ControlChannel:
    """Dispatcher for methods, desired properties and application messages."""

    METHOD_NAMES = ("SetTelemetryInterval", "TriggerAlert", "PerformMaintenance")

    def __init__(
        self,
        store: DeviceStore,
        transport: TransportPort,
        operations: OperationRunner,
        reboot_duration: float = REBOOT_DURATION,
        firmware_update_duration: float = FIRMWARE_UPDATE_DURATION,
        maintenance_window: float = MAINTENANCE_WINDOW,
    ) -> None:
        """Initialize the channel.

        Args:
            store: Owner of the device record.
            transport: Transport to reply through.
            operations: Runner for simulated multi-second operations.
            reboot_duration: Simulated reboot time in seconds.
            firmware_update_duration: Simulated firmware flash time in seconds.
            maintenance_window: How long PerformMaintenance holds Maintenance.
        """
        self._store = store
        self._transport = transport
        self._operations = operations
        self._reboot_duration = reboot_duration
        self._firmware_update_duration = firmware_update_duration
        self._maintenance_window = maintenance_window
        self._log = log.bind(device_id=store.device_id)
        self._methods: Dict[str, Callable[[MethodRequest], Awaitable[MethodResponse]]] = {
            "SetTelemetryInterval": self._set_telemetry_interval,
            "TriggerAlert": self._trigger_alert,
            "PerformMaintenance": self._perform_maintenance,
        }

    async def register(self) -> None:
        """Register every handler with the transport.

        Raises:
            SetupFailure: If the transport refuses any registration.
        """
        try:
            for name in self.METHOD_NAMES:
                await self._transport.on_method(name, self.handle_method)
            await self._transport.on_desired_property_change(self.handle_desired_properties)
            await self._transport.on_inbound_message(self.handle_message)
        except SetupFailure:
            raise
        except Exception as e:
            raise SetupFailure(f"Failed to register control channel handlers: {e}") from e
        self._log.info("control_channel_registered", methods=list(self.METHOD_NAMES))

    async def _send(self, event: BaseModel) -> None:
        await self._transport.send_event(encode_event(event), CONTENT_TYPE_JSON)

    # Direct methods

    async def handle_method(self, request: MethodRequest) -> MethodResponse:
        """Method boundary: malformed input answers 400, failures 500."""
        handler = self._methods.get(request.name)
        if handler is None:
            self._log.warning("unknown_method", method=request.name)
            return MethodResponse(status=404, payload={"error": f"Unknown method: {request.name}"})

        self._log.info("method_received", method=request.name)
        try:
            return await handler(request)
        except MalformedInboundPayload as e:
            self._log.warning("method_payload_invalid", method=request.name, error=e.message)
            return MethodResponse(status=STATUS_BAD_REQUEST, payload={"error": e.message})
        except Exception as e:
            self._log.error(
                "method_failed",
                method=request.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return MethodResponse(status=STATUS_SERVER_ERROR, payload={"error": str(e)})

    async def _set_telemetry_interval(self, request: MethodRequest) -> MethodResponse:
        args = parse_method_args(SetTelemetryIntervalRequest, request)
        async with self._store.mutate() as record:
            record.reporting_interval = args.interval
        self._log.info("telemetry_interval_updated", interval=args.interval)
        return MethodResponse(status=STATUS_OK, payload={"reportingInterval": args.interval})

    async def _trigger_alert(self, request: MethodRequest) -> MethodResponse:
        args = parse_method_args(TriggerAlertRequest, request)
        async with self._store.mutate() as record:
            record.status = DeviceStatus.ALERT
        await self._send(AlertEvent(device_id=self._store.device_id, alerts=[args.message]))
        self._log.info("alert_triggered", message=args.message)
        return MethodResponse(status=STATUS_OK)

    async def _perform_maintenance(self, request: MethodRequest) -> MethodResponse:
        async with self._store.mutate() as record:
            self._store.hold_maintenance_locked(record)
            record.battery_level = 100.0
            record.last_maintenance = datetime.now(timezone.utc)
            reported = record.maintenance_properties()

        self._operations.run(
            "maintenance",
            self._maintenance_window,
            on_complete=lambda: self._store.release_maintenance("maintenance"),
        )
        await self._transport.update_reported_properties(reported)
        self._log.info("maintenance_performed", window=self._maintenance_window)
        return MethodResponse(status=STATUS_OK, payload=reported)

    # Desired properties

    async def handle_desired_properties(self, desired: Mapping[str, Any]) -> None:
        """Apply recognized desired properties and echo the configuration back.

        Unrecognized keys and invalid values are ignored.
        """
        self._log.info("desired_properties_received", keys=sorted(desired))
        changes: Dict[str, Any] = {}
        for key, value in desired.items():
            if key == "reportingInterval":
                if _is_int(value) and value >= 1:
                    changes["reporting_interval"] = value
                else:
                    self._log.warning("desired_property_invalid", key=key, value=value)
            elif key == "motionSensitivity":
                if _is_int(value) and 1 <= value <= 10:
                    changes["motion_sensitivity"] = value
                else:
                    self._log.warning("desired_property_invalid", key=key, value=value)
            elif key == "alertThresholds":
                if isinstance(value, Mapping):
                    changes["alert_thresholds"] = normalize_thresholds(value)
                else:
                    self._log.warning("desired_property_invalid", key=key, value=value)

        async with self._store.mutate() as record:
            for field_name, value in changes.items():
                setattr(record, field_name, value)
            reported = record.configuration_properties()

        if changes:
            self._log.info("desired_properties_applied", fields=sorted(changes))
        try:
            await self._transport.update_reported_properties(reported)
        except TransportFailure as e:
            self._log.warning("reported_properties_failed", error=e.message)

    # Application messages

    async def handle_message(self, message: InboundMessage) -> MessageDisposition:
        """Dispatch boundary for application messages.

        Malformed input and unexpected errors reject the message; unknown
        types and actions are acknowledged as no-ops.
        """
        try:
            envelope = parse_envelope(message.body)
        except MalformedInboundPayload as e:
            self._log.warning(
                "inbound_message_rejected", message_id=message.message_id, error=e.message
            )
            return MessageDisposition.REJECT

        try:
            await self._dispatch(envelope)
        except UnknownOperation as e:
            self._log.warning(
                "unknown_operation", kind=e.kind, operation=e.operation, message_id=message.message_id
            )
        except TransportFailure as e:
            # The record change already committed; only the reply was lost
            self._log.warning(
                "inbound_reply_failed", message_id=message.message_id, error=e.message
            )
        except Exception as e:
            self._log.error(
                "inbound_message_failed",
                message_id=message.message_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return MessageDisposition.REJECT
        return MessageDisposition.ACCEPT

    async def _dispatch(self, envelope: Envelope) -> None:
        if isinstance(envelope, ConfigurationEnvelope):
            await self._apply_configuration(envelope.config)
        elif isinstance(envelope, CommandEnvelope):
            await self._run_command(envelope.command)
        elif isinstance(envelope, FirmwareEnvelope):
            await self._start_firmware_update(envelope.firmware)
        elif isinstance(envelope, UnknownEnvelope):
            raise UnknownOperation(envelope.type, kind="message type")

    async def _apply_configuration(self, config: Optional[DeviceConfiguration]) -> None:
        if config is None:
            self._log.info("configuration_message_empty")
            return

        applied: Dict[str, Any] = {}
        async with self._store.mutate() as record:
            if config.motion_sensitivity is not None:
                record.motion_sensitivity = config.motion_sensitivity
                applied["motionSensitivity"] = config.motion_sensitivity
            if config.alert_thresholds is not None:
                record.alert_thresholds = normalize_thresholds(config.alert_thresholds)
                applied["alertThresholds"] = dict(record.alert_thresholds)
            if config.reporting_interval is not None:
                record.reporting_interval = config.reporting_interval
                applied["reportingInterval"] = config.reporting_interval

        self._log.info("configuration_applied", fields=sorted(applied))
        await self._send(ConfigurationAckEvent(device_id=self._store.device_id, config=applied))

    async def _run_command(self, command: Optional[DeviceCommand]) -> None:
        if command is None:
            self._log.info("command_message_empty")
            return

        action = command.action.strip().lower()
        if action == CommandAction.REBOOT.value:
            self._log.info("device_rebooting", duration=self._reboot_duration)
            self._operations.run(
                "reboot", self._reboot_duration, on_complete=self._finish_reboot
            )
        elif action == CommandAction.RESET.value:
            await self._store.reset_to_defaults()
            self._log.info("device_reset", maintenance_holds=self._store.maintenance_holds)
        elif action == CommandAction.TEST.value:
            await self._run_self_test()
        else:
            raise UnknownOperation(command.action, kind="command")

    async def _finish_reboot(self) -> None:
        self._log.info("device_rebooted")

    async def _run_self_test(self) -> None:
        self._log.info("self_test_running")
        record = await self._store.snapshot()
        report = SelfTestEvent(
            device_id=record.device_id,
            tests=[
                SelfTestResult(name="Battery", status="Pass", value=record.battery_level),
                SelfTestResult(name="Signal", status="Pass", value=record.signal_strength),
                SelfTestResult(name="Sensors", status="Pass", value="OK"),
                SelfTestResult(name="Cellular", status="Pass", value="Connected"),
            ],
        )
        await self._send(report)
        self._log.info("self_test_completed")

    async def _start_firmware_update(self, firmware: Optional[FirmwareUpdate]) -> None:
        if firmware is None:
            self._log.info("firmware_message_empty")
            return

        version = firmware.version
        await self._store.hold_maintenance("firmware-update")
        self._log.info("firmware_update_started", version=version)

        async def complete() -> None:
            async with self._store.mutate() as record:
                record.firmware_version = version
                self._store.release_maintenance_locked(record)
            self._log.info("firmware_update_completed", version=version)
            try:
                await self._send(
                    FirmwareStatusEvent(
                        device_id=self._store.device_id, version=version, success=True
                    )
                )
            except TransportFailure as e:
                self._log.warning("firmware_status_send_failed", version=version, error=e.message)

        self._operations.run("firmware-update", self._firmware_update_duration, on_complete=complete)
