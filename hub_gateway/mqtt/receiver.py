"""Receptor MQTT principal.

Une el cliente paho con el router de mensajes. Los mensajes se procesan uno
a uno en el hilo de red de paho, en orden de llegada: cada handler termina
(incluyendo sus round trips a BD) antes de despachar el siguiente.
"""

from __future__ import annotations

import logging

from ..core.transport import MQTTClient
from .message_handler import MessageRouter

logger = logging.getLogger(__name__)


class MQTTReceiver:
    """Ciclo de vida de la suscripción MQTT de los hubs."""

    def __init__(self, client: MQTTClient, router: MessageRouter):
        self._client = client
        self._router = router
        self._running = False

    def start(self) -> bool:
        """Inicia el receptor. Devuelve True si el broker respondió a tiempo."""
        self._client.set_message_handler(self._router.handle)
        self._running = True
        connected = self._client.connect()
        if connected:
            logger.info("[MQTT] Started successfully")
        return connected

    def stop(self):
        """Detiene el receptor."""
        self._running = False
        self._client.disconnect()
        logger.info("[MQTT] Stopped. %s", self._router.stats)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_connected(self) -> bool:
        return self._client.is_connected

    @property
    def stats(self) -> dict:
        return {
            "running": self._running,
            "connected": self._client.is_connected,
            "broker": f"{self._client.broker_host}:{self._client.broker_port}",
            "reconnect_count": self._client.reconnect_count,
            **self._router.stats.to_dict(),
        }

    def health_check(self) -> dict:
        return {
            "healthy": self._running and self._client.is_connected,
            "running": self._running,
            "connected": self._client.is_connected,
            "messages_processed": self._router.stats.processed,
            "messages_failed": self._router.stats.failed,
        }
