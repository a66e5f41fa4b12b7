"""Publicación de respuestas hacia los hubs.

Tres operaciones salientes, sin cola de reintentos propia:
- sync: lista autoritativa de sensores activos
- decisión de pairing: su resultado es obligatorio; quien la invoca
  (acción de administrador) llama ``raise_for_status()``
- orden de borrado de sensor: best-effort; si falla solo se loguea y el
  siguiente sync del hub converge
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Protocol

import orjson

from ..core.domain import BrokerUnavailableError
from .topics import pairing_response_topic, sensor_remove_topic, sync_topic

logger = logging.getLogger(__name__)


class BrokerClient(Protocol):
    @property
    def is_connected(self) -> bool: ...

    def publish(self, topic: str, payload: bytes) -> bool: ...


@dataclass(frozen=True)
class PublishResult:
    ok: bool
    topic: str
    error: Optional[str] = None

    def raise_for_status(self) -> None:
        if not self.ok:
            raise BrokerUnavailableError(self.topic, self.error or "publish failed")


class ReconciliationPublisher:
    def __init__(self, client: BrokerClient):
        self._client = client

    @property
    def is_connected(self) -> bool:
        return self._client.is_connected

    def _publish(self, topic: str, body: Dict[str, Any]) -> PublishResult:
        if not self._client.is_connected:
            return PublishResult(ok=False, topic=topic, error="MQTT client not connected")
        try:
            sent = self._client.publish(topic, orjson.dumps(body))
        except Exception as e:
            logger.exception("[PUBLISH] Error publishing topic=%s", topic)
            return PublishResult(ok=False, topic=topic, error=type(e).__name__)
        if not sent:
            return PublishResult(ok=False, topic=topic, error="publish rejected by client")
        return PublishResult(ok=True, topic=topic)

    def publish_sync(self, hub_mac: str, sensors: Iterable[Dict[str, Any]]) -> PublishResult:
        sensor_list = [{"mac": s["mac"], "name": s["name"]} for s in sensors]
        result = self._publish(sync_topic(hub_mac), {"sensors": sensor_list})
        if result.ok:
            logger.info("[Sync] Pushed sync to %s with %d sensor(s)", hub_mac, len(sensor_list))
        else:
            logger.warning("[Sync] Could not push sync to %s: %s", hub_mac, result.error)
        return result

    def publish_pairing_decision(self, hub_mac: str, sensor_mac: str, approved: bool) -> PublishResult:
        """Decisión de administrador. El llamador debe comprobar el resultado."""
        result = self._publish(
            pairing_response_topic(hub_mac),
            {"sensor_mac": sensor_mac, "approved": approved},
        )
        if result.ok:
            logger.info(
                "[PUBLISH] Pairing %s for %s sent to hub %s",
                "approved" if approved else "rejected",
                sensor_mac,
                hub_mac,
            )
        else:
            logger.error("[PUBLISH] Pairing decision for %s not delivered to %s: %s", sensor_mac, hub_mac, result.error)
        return result

    def publish_sensor_remove(self, hub_mac: str, sensor_mac: str) -> PublishResult:
        """Orden de borrado best-effort. Un fallo nunca bloquea el borrado en BD."""
        result = self._publish(sensor_remove_topic(hub_mac), {"sensor_mac": sensor_mac})
        if result.ok:
            logger.info("[PUBLISH] Sent sensor/remove for %s to hub %s", sensor_mac, hub_mac)
        else:
            logger.warning(
                "[PUBLISH] sensor/remove not sent (%s) - %s will be removed from hub %s on next sync/request",
                result.error,
                sensor_mac,
                hub_mac,
            )
        return result
