"""Cliente MQTT del gateway (entrada de hubs y publicación de respuestas)."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Sequence

import paho.mqtt.client as mqtt

logger = logging.getLogger(__name__)


class MQTTClient:
    """Cliente MQTT ligero.

    Responsabilidades:
    - Conexión/desconexión a broker MQTT (con reconexión automática de paho)
    - Suscripción a topics en cada (re)conexión
    - Delegación de mensajes a handler
    - Publicación de respuestas a los hubs
    """

    def __init__(
        self,
        broker_host: str = "localhost",
        broker_port: int = 1883,
        username: Optional[str] = None,
        password: Optional[str] = None,
        client_id: str = "hub-gateway",
        subscriptions: Sequence[str] = (),
        reconnect_seconds: int = 5,
        qos: int = 1,
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.username = username
        self.password = password
        self.client_id = f"{client_id}-{int(time.time())}"
        self.subscriptions = list(subscriptions)
        self.reconnect_seconds = reconnect_seconds
        self.qos = qos

        self._client: Optional[mqtt.Client] = None
        self._connected = False
        self._message_handler: Optional[Callable[[str, bytes], None]] = None
        self._reconnect_count = 0

    def set_message_handler(self, handler: Callable[[str, bytes], None]):
        """Configura el handler de mensajes."""
        self._message_handler = handler

    def connect(self, wait_seconds: float = 5.0) -> bool:
        """Conecta al broker MQTT.

        La conexión es asíncrona: si el broker no está disponible, paho
        reintenta cada ``reconnect_seconds`` y este método devuelve False.
        """
        try:
            self._client = mqtt.Client(
                client_id=self.client_id,
                protocol=mqtt.MQTTv311,
                callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            )

            self._client.on_connect = self._on_connect
            self._client.on_disconnect = self._on_disconnect
            self._client.on_message = self._on_message

            if self.username and self.password:
                self._client.username_pw_set(self.username, self.password)

            self._client.reconnect_delay_set(
                min_delay=1, max_delay=max(1, self.reconnect_seconds)
            )

            logger.info("[MQTT] Connecting to %s:%d", self.broker_host, self.broker_port)
            self._client.connect_async(self.broker_host, self.broker_port, keepalive=60)
            self._client.loop_start()

            # Esperar conexión
            for _ in range(int(wait_seconds * 10)):
                if self._connected:
                    return True
                time.sleep(0.1)

            logger.error("[MQTT] Connection timeout - paho keeps retrying in background")
            return False

        except Exception as e:
            logger.exception("[MQTT] Connection failed: %s", e)
            return False

    def disconnect(self):
        """Desconecta del broker."""
        if self._client:
            try:
                self._client.loop_stop()
                self._client.disconnect()
            except Exception as e:
                logger.warning("[MQTT] Disconnect error: %s", e)
        self._connected = False

    def publish(self, topic: str, payload: bytes) -> bool:
        """Publica un mensaje. Devuelve False si no hay conexión o paho lo rechaza."""
        if self._client is None or not self._connected:
            return False

        info = self._client.publish(topic, payload, qos=self.qos)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.warning("[MQTT] Publish rejected: topic=%s rc=%s", topic, info.rc)
            return False
        return True

    def _on_connect(self, client, userdata, flags, rc, properties=None):
        """Callback de conexión."""
        if rc == 0:
            self._connected = True
            if self._reconnect_count:
                logger.info("[MQTT] Reconnected to broker (reconnects=%d)", self._reconnect_count)
            else:
                logger.info("[MQTT] Connected to broker")
            for topic in self.subscriptions:
                client.subscribe(topic, qos=self.qos)
                logger.info("[MQTT] Subscribed to %s", topic)
        else:
            self._connected = False
            logger.error("[MQTT] Connection failed: rc=%s", rc)

    def _on_disconnect(self, client, userdata, flags, rc, properties=None):
        """Callback de desconexión."""
        if self._connected:
            self._reconnect_count += 1
        self._connected = False
        logger.warning("[MQTT] Disconnected (rc=%s)", rc)

    def _on_message(self, client, userdata, msg):
        """Callback de mensaje - delega al handler."""
        if self._message_handler:
            self._message_handler(msg.topic, msg.payload)

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def reconnect_count(self) -> int:
        return self._reconnect_count
