from __future__ import annotations


class HubGatewayError(Exception):
    """Base de errores del gateway."""


class BrokerUnavailableError(HubGatewayError):
    """El broker MQTT no está conectado o rechazó la publicación."""

    def __init__(self, topic: str, reason: str = "MQTT client not connected"):
        super().__init__(f"{reason} (topic={topic})")
        self.topic = topic
        self.reason = reason


class UnknownHubError(HubGatewayError):
    def __init__(self, hub_mac: str):
        super().__init__(f"Hub not registered: {hub_mac}")
        self.hub_mac = hub_mac
