"""Custom exceptions for the device simulator.

All exceptions inherit from DeviceSimulatorError for consistent error handling.
The inbound dispatch path translates them into transport dispositions or
method status codes; the CLI maps them to exit codes.
"""

from typing import Optional


class DeviceSimulatorError(Exception):
    """Base exception for all device simulator errors.

    Attributes:
        message: Human-readable error message.
        hint: Optional troubleshooting hint.
        exit_code: Suggested exit code for the CLI.
    """

    exit_code: int = 1

    def __init__(
        self,
        message: str,
        hint: Optional[str] = None,
        exit_code: Optional[int] = None,
    ) -> None:
        self.message = message
        self.hint = hint
        if exit_code is not None:
            self.exit_code = exit_code
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the exception message with optional hint."""
        if self.hint:
            return f"{self.message}\n\nHint: {self.hint}"
        return self.message


class TransportFailure(DeviceSimulatorError):
    """Sending to or connecting with the hub failed.

    Never fatal to a running device: the telemetry loop backs off and retries.
    """

    exit_code: int = 2

    def __init__(
        self,
        message: str = "Transport operation failed",
        hint: Optional[str] = None,
    ) -> None:
        if hint is None:
            hint = "Check that the hub is reachable and DEVICE_HUB_URL is correct."
        super().__init__(message=message, hint=hint, exit_code=2)


class MalformedInboundPayload(DeviceSimulatorError):
    """An inbound message, envelope or method argument could not be parsed.

    The message is rejected (or the method answered with 400) and the device
    record is left untouched.
    """

    def __init__(self, message: str = "Malformed inbound payload") -> None:
        super().__init__(message=message)


class UnknownOperation(DeviceSimulatorError):
    """Unrecognized command action or message type; logged and acknowledged."""

    def __init__(self, operation: str, kind: str = "operation") -> None:
        self.operation = operation
        self.kind = kind
        super().__init__(message=f"Unknown {kind}: {operation}")


class SetupFailure(DeviceSimulatorError):
    """Handler registration failed at startup; aborts the telemetry loop."""

    exit_code: int = 3

    def __init__(
        self,
        message: str = "Failed to register control channel handlers",
        hint: Optional[str] = None,
    ) -> None:
        super().__init__(message=message, hint=hint, exit_code=3)
