"""Modelos de dominio del gateway de hubs."""

from .errors import BrokerUnavailableError, HubGatewayError, UnknownHubError
from .hardware_address import (
    MAC_RE,
    default_sensor_name,
    is_valid_mac,
    normalize_mac,
    parse_mac,
)
from .messages import (
    HubStatusMessage,
    InboundMessage,
    MessageKind,
    PairingRequestMessage,
    SensorDeletedMessage,
    SyncRequestMessage,
    TelemetryMessage,
)

__all__ = [
    "BrokerUnavailableError",
    "HubGatewayError",
    "UnknownHubError",
    "MAC_RE",
    "default_sensor_name",
    "is_valid_mac",
    "normalize_mac",
    "parse_mac",
    "HubStatusMessage",
    "InboundMessage",
    "MessageKind",
    "PairingRequestMessage",
    "SensorDeletedMessage",
    "SyncRequestMessage",
    "TelemetryMessage",
]
