"""Parsing of application message envelopes into typed variants.

An inbound body ``{"type": ..., "data": ...}`` becomes exactly one of
ConfigurationEnvelope, CommandEnvelope, FirmwareEnvelope or UnknownEnvelope.
Everything that fails validation raises MalformedInboundPayload, so the
dispatcher only ever sees well-formed payloads.
"""

from dataclasses import dataclass
from typing import Any, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from device_simulator.exceptions import MalformedInboundPayload
from device_simulator.models import (
    CloudMessage,
    DeviceCommand,
    DeviceConfiguration,
    FirmwareUpdate,
    MessageType,
)

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass(frozen=True)
class ConfigurationEnvelope:
    config: Optional[DeviceConfiguration]


@dataclass(frozen=True)
class CommandEnvelope:
    command: Optional[DeviceCommand]


@dataclass(frozen=True)
class FirmwareEnvelope:
    firmware: Optional[FirmwareUpdate]


@dataclass(frozen=True)
class UnknownEnvelope:
    type: str


Envelope = Union[ConfigurationEnvelope, CommandEnvelope, FirmwareEnvelope, UnknownEnvelope]


def _describe(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        loc = ".".join(str(part) for part in item.get("loc", ())) or "body"
        parts.append(f"{loc}: {item.get('msg', 'invalid value')}")
    return "; ".join(parts)


def parse_payload(model: Type[ModelT], data: Any) -> Optional[ModelT]:
    """Validate an envelope's ``data`` against a payload model.

    ``data`` may be an object or a string holding JSON text. Absent data
    (None) yields None.

    Raises:
        MalformedInboundPayload: If the data does not fit the model.
    """
    if data is None:
        return None
    try:
        if isinstance(data, (str, bytes)):
            return model.model_validate_json(data)
        return model.model_validate(data)
    except ValidationError as e:
        raise MalformedInboundPayload(f"Invalid {model.__name__} payload: {_describe(e)}") from e


def parse_envelope(body: Union[bytes, str]) -> Envelope:
    """Parse a raw message body into a typed envelope.

    The ``type`` field is matched case-insensitively.

    Args:
        body: Raw UTF-8 JSON message body.

    Returns:
        The envelope variant for the message type.

    Raises:
        MalformedInboundPayload: On invalid JSON, an invalid envelope
            (e.g. non-string ``type``) or an invalid payload for a known type.
    """
    try:
        message = CloudMessage.model_validate_json(body)
    except ValidationError as e:
        raise MalformedInboundPayload(f"Invalid message envelope: {_describe(e)}") from e

    kind = message.type.strip().lower()
    if kind == MessageType.CONFIGURATION.value:
        return ConfigurationEnvelope(config=parse_payload(DeviceConfiguration, message.data))
    if kind == MessageType.COMMAND.value:
        return CommandEnvelope(command=parse_payload(DeviceCommand, message.data))
    if kind == MessageType.FIRMWARE.value:
        return FirmwareEnvelope(firmware=parse_payload(FirmwareUpdate, message.data))
    return UnknownEnvelope(type=message.type)
