"""Transport layer - Conexión MQTT."""

from .mqtt_client import MQTTClient

__all__ = ["MQTTClient"]
