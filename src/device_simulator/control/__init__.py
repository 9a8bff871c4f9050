"""Inbound control surfaces: methods, desired properties, application messages."""

from device_simulator.control.channel import ControlChannel, parse_method_args
from device_simulator.control.envelope import (
    CommandEnvelope,
    ConfigurationEnvelope,
    Envelope,
    FirmwareEnvelope,
    UnknownEnvelope,
    parse_envelope,
    parse_payload,
)

__all__ = [
    "ControlChannel",
    "CommandEnvelope",
    "ConfigurationEnvelope",
    "Envelope",
    "FirmwareEnvelope",
    "UnknownEnvelope",
    "parse_envelope",
    "parse_method_args",
    "parse_payload",
]
