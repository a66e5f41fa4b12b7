"""Handlers de ingesta: uno por tipo de mensaje de hub.

Cada handler recibe un mensaje ya decodificado, aplica las invariantes de
upsert / soft-delete contra el store y emite al grupo del hub.

Las referencias que no existen (hub no registrado, sensor inactivo,
solicitud ya pendiente) no son errores: con entrega at-least-once y
carreras entre hub y nube son rutinarias. Se devuelven como
``HandlerOutcome`` y se loguean en DEBUG.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ..core.domain import (
    HubStatusMessage,
    InboundMessage,
    MessageKind,
    PairingRequestMessage,
    SensorDeletedMessage,
    SyncRequestMessage,
    TelemetryMessage,
    UnknownHubError,
    default_sensor_name,
)
from ..infrastructure.persistence import SensorStore
from ..transports.websocket.gateway import (
    EVENT_HUB_STATUS,
    EVENT_PAIRING_REQUEST,
    EVENT_SENSOR_DATA,
    LiveGateway,
)
from .publisher import PublishResult, ReconciliationPublisher

logger = logging.getLogger(__name__)

# Valor que envía el hub cuando la sonda no pudo leer.
SENTINEL_NO_VALUE = -999


class HandlerOutcome(Enum):
    READING_STORED = "reading_stored"
    STATUS_CACHED = "status_cached"
    PAIRING_CREATED = "pairing_created"
    PAIRING_ALREADY_PENDING = "pairing_already_pending"
    SYNC_SENT = "sync_sent"
    SYNC_SKIPPED = "sync_skipped"
    SENSOR_DEACTIVATED = "sensor_deactivated"
    SENSOR_NOT_ACTIVE = "sensor_not_active"
    UNKNOWN_HUB = "unknown_hub"
    INACTIVE_SENSOR = "inactive_sensor"


def normalize_measurement(value: Optional[float]) -> Optional[float]:
    """-999 (o ausencia) → None. Cualquier otro valor, incluido 0, se conserva."""
    if value is None or value == SENTINEL_NO_VALUE:
        return None
    return value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _epoch_ms(ts: datetime) -> int:
    return int(ts.timestamp() * 1000)


class IngestionHandlers:
    def __init__(
        self,
        store: SensorStore,
        gateway: LiveGateway,
        publisher: ReconciliationPublisher,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._store = store
        self._gateway = gateway
        self._publisher = publisher
        self._clock = clock
        self._dispatch: Dict[MessageKind, Callable[[Any], HandlerOutcome]] = {
            MessageKind.TELEMETRY: self.handle_telemetry,
            MessageKind.HUB_STATUS: self.handle_hub_status,
            MessageKind.PAIRING_REQUEST: self.handle_pairing_request,
            MessageKind.SYNC_REQUEST: self.handle_sync_request,
            MessageKind.SENSOR_DELETED: self.handle_sensor_deleted,
        }

    def dispatch(self, message: InboundMessage) -> HandlerOutcome:
        return self._dispatch[message.kind](message)

    def handle_telemetry(self, message: TelemetryMessage) -> HandlerOutcome:
        device_id = self._store.find_device_id(message.hub_mac)
        if device_id is None:
            logger.debug("[HANDLER] Telemetry from unregistered hub %s dropped", message.hub_mac)
            return HandlerOutcome.UNKNOWN_HUB

        now = self._clock()
        sensor_id = self._store.upsert_active_sensor(
            device_id,
            message.sensor_mac,
            default_sensor_name(message.sensor_mac),
            now,
        )
        if sensor_id is None:
            logger.debug(
                "[HANDLER] Telemetry for inactive sensor %s on hub %s dropped",
                message.sensor_mac,
                message.hub_mac,
            )
            return HandlerOutcome.INACTIVE_SENSOR

        temp = normalize_measurement(message.temp)
        hum = normalize_measurement(message.hum)

        self._store.insert_reading(sensor_id, temp, hum, message.battery, message.rssi, now)

        self._gateway.broadcast(
            message.hub_mac,
            EVENT_SENSOR_DATA,
            {
                "sensor_mac": message.sensor_mac,
                "temp": temp,
                "hum": hum,
                "battery": message.battery,
                "rssi": message.rssi,
                "ts": _epoch_ms(now),
            },
        )
        return HandlerOutcome.READING_STORED

    def handle_hub_status(self, message: HubStatusMessage) -> HandlerOutcome:
        # El hub_mac del topic prevalece sobre un campo homónimo del payload.
        status = {**message.fields, "hub_mac": message.hub_mac}
        self._gateway.status_cache.put(message.hub_mac, status)
        self._gateway.broadcast(message.hub_mac, EVENT_HUB_STATUS, status)
        return HandlerOutcome.STATUS_CACHED

    def handle_pairing_request(self, message: PairingRequestMessage) -> HandlerOutcome:
        device_id = self._store.find_device_id(message.hub_mac)
        if device_id is None:
            logger.debug("[HANDLER] Pairing request from unregistered hub %s dropped", message.hub_mac)
            return HandlerOutcome.UNKNOWN_HUB

        now = self._clock()
        request_id = self._store.create_pending_pairing_request(device_id, message.sensor_mac, now)
        if request_id is None:
            logger.debug(
                "[HANDLER] Pairing for %s on hub %s already pending",
                message.sensor_mac,
                message.hub_mac,
            )
            return HandlerOutcome.PAIRING_ALREADY_PENDING

        logger.info("[HANDLER] Pairing request id=%d hub=%s sensor=%s", request_id, message.hub_mac, message.sensor_mac)
        self._gateway.broadcast(
            message.hub_mac,
            EVENT_PAIRING_REQUEST,
            {
                "id": request_id,
                "hub_mac": message.hub_mac,
                "sensor_mac": message.sensor_mac,
                "ts": _epoch_ms(now),
            },
        )
        return HandlerOutcome.PAIRING_CREATED

    def handle_sync_request(self, message: SyncRequestMessage) -> HandlerOutcome:
        if not self._publisher.is_connected:
            return HandlerOutcome.SYNC_SKIPPED

        try:
            result = self.push_sync(message.hub_mac)
        except UnknownHubError:
            logger.debug("[HANDLER] Sync request from unregistered hub %s dropped", message.hub_mac)
            return HandlerOutcome.UNKNOWN_HUB
        return HandlerOutcome.SYNC_SENT if result.ok else HandlerOutcome.SYNC_SKIPPED

    def push_sync(self, hub_mac: str) -> PublishResult:
        """Publica la lista autoritativa de sensores activos del hub.

        Raises:
            UnknownHubError: si el hub no está registrado.
        """
        device_id = self._store.find_device_id(hub_mac)
        if device_id is None:
            raise UnknownHubError(hub_mac)
        sensors = self._store.list_active_sensors(device_id)
        return self._publisher.publish_sync(hub_mac, sensors)

    def handle_sensor_deleted(self, message: SensorDeletedMessage) -> HandlerOutcome:
        affected = self._store.soft_delete_sensor(message.hub_mac, message.sensor_mac)
        if not affected:
            return HandlerOutcome.SENSOR_NOT_ACTIVE

        logger.info(
            "[HANDLER] Hub %s locally deleted sensor %s - marked inactive",
            message.hub_mac,
            message.sensor_mac,
        )
        return HandlerOutcome.SENSOR_DEACTIVATED
