"""Validadores de payloads MQTT de los hubs.

Convierte (hub_mac, tipo, JSON) en un mensaje tipado de
``core.domain.messages``. Un payload que no valida se descarta en el router.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from ..core.domain import (
    HubStatusMessage,
    InboundMessage,
    MessageKind,
    PairingRequestMessage,
    SensorDeletedMessage,
    SyncRequestMessage,
    TelemetryMessage,
    parse_mac,
)

logger = logging.getLogger(__name__)


class SensorAddressPayload(BaseModel):
    """Payload mínimo: ``{"sensor_mac": "AA:BB:CC:DD:EE:FF"}``."""

    model_config = ConfigDict(extra="ignore")

    sensor_mac: str

    @field_validator("sensor_mac")
    @classmethod
    def validate_sensor_mac(cls, v: str) -> str:
        mac = parse_mac(v)
        if mac is None:
            raise ValueError(f"sensor_mac must look like AA:BB:CC:DD:EE:FF, got: {v!r}")
        return mac


class TelemetryPayload(SensorAddressPayload):
    """Trama de telemetría.

    Formato esperado:
    {
        "sensor_mac": "11:22:33:44:55:66",
        "temp": 21.5,
        "hum": 47,
        "battery": 90,
        "rssi": -62
    }

    Las medidas son numéricas: booleanos y strings numéricos invalidan la trama.
    """

    temp: Optional[float] = None
    hum: Optional[float] = None
    battery: Optional[float] = None
    rssi: Optional[float] = None

    @field_validator("temp", "hum", "battery", "rssi", mode="before")
    @classmethod
    def validate_numeric(cls, v: Any) -> Any:
        if v is None:
            return v
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError(f"measurement must be a JSON number, got: {v!r}")
        return v


@dataclass
class ValidationResult:
    """Resultado de validación."""

    valid: bool
    message: Optional[InboundMessage] = None
    error: Optional[str] = None


def decode_message(hub_mac: str, kind: MessageKind, data: Any) -> ValidationResult:
    """Valida el payload y construye el mensaje tipado.

    Args:
        hub_mac: MAC del hub ya normalizada (segmento 2 del topic)
        kind: Tipo resuelto desde el sufijo del topic
        data: JSON parseado (None si el payload venía vacío)
    """
    if kind is MessageKind.SYNC_REQUEST:
        # El hub puede mandar su lista local o nada; la respuesta no depende de ella.
        return ValidationResult(valid=True, message=SyncRequestMessage(hub_mac=hub_mac))

    if not isinstance(data, dict):
        return ValidationResult(valid=False, error=f"payload must be a JSON object, got {type(data).__name__}")

    if kind is MessageKind.HUB_STATUS:
        return ValidationResult(valid=True, message=HubStatusMessage(hub_mac=hub_mac, fields=dict(data)))

    try:
        if kind is MessageKind.TELEMETRY:
            payload = TelemetryPayload.model_validate(data)
            message: InboundMessage = TelemetryMessage(
                hub_mac=hub_mac,
                sensor_mac=payload.sensor_mac,
                temp=payload.temp,
                hum=payload.hum,
                battery=payload.battery,
                rssi=payload.rssi,
            )
        elif kind is MessageKind.PAIRING_REQUEST:
            payload = SensorAddressPayload.model_validate(data)
            message = PairingRequestMessage(hub_mac=hub_mac, sensor_mac=payload.sensor_mac)
        else:
            payload = SensorAddressPayload.model_validate(data)
            message = SensorDeletedMessage(hub_mac=hub_mac, sensor_mac=payload.sensor_mac)
    except ValidationError as e:
        logger.debug("[MQTT_VALIDATOR] Validation failed kind=%s: %s", kind.value, e)
        return ValidationResult(valid=False, error=str(e))

    return ValidationResult(valid=True, message=message)
