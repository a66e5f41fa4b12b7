"""Mensajes entrantes de los hubs - variante cerrada.

El router decodifica topic + payload una sola vez en uno de estos tipos;
los handlers reciben el mensaje ya validado y nunca vuelven a mirar el topic.

    sensors/{hub}/data             → TelemetryMessage
    sensors/{hub}/status           → HubStatusMessage
    sensors/{hub}/pairing/request  → PairingRequestMessage
    sensors/{hub}/sync/request     → SyncRequestMessage
    sensors/{hub}/sensor/deleted   → SensorDeletedMessage
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union


class MessageKind(Enum):
    TELEMETRY = "data"
    HUB_STATUS = "status"
    PAIRING_REQUEST = "pairing/request"
    SYNC_REQUEST = "sync/request"
    SENSOR_DELETED = "sensor/deleted"


@dataclass(frozen=True)
class TelemetryMessage:
    hub_mac: str
    sensor_mac: str
    temp: Optional[float] = None
    hum: Optional[float] = None
    battery: Optional[float] = None
    rssi: Optional[float] = None

    kind = MessageKind.TELEMETRY


@dataclass(frozen=True)
class HubStatusMessage:
    hub_mac: str
    fields: Dict[str, Any] = field(default_factory=dict)

    kind = MessageKind.HUB_STATUS


@dataclass(frozen=True)
class PairingRequestMessage:
    hub_mac: str
    sensor_mac: str

    kind = MessageKind.PAIRING_REQUEST


@dataclass(frozen=True)
class SyncRequestMessage:
    hub_mac: str

    kind = MessageKind.SYNC_REQUEST


@dataclass(frozen=True)
class SensorDeletedMessage:
    hub_mac: str
    sensor_mac: str

    kind = MessageKind.SENSOR_DELETED


InboundMessage = Union[
    TelemetryMessage,
    HubStatusMessage,
    PairingRequestMessage,
    SyncRequestMessage,
    SensorDeletedMessage,
]
