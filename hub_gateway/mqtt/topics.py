"""Topics MQTT de los hubs.

Entrada:  sensors/{hub_mac}/data | status | pairing/request | sync/request | sensor/deleted
Salida:   sensors/{hub_mac}/sync | pairing/response | sensor/remove
"""

from __future__ import annotations

from typing import Optional, Tuple

from ..core.domain import MessageKind, parse_mac

TOPIC_PREFIX = "sensors"

SUBSCRIPTIONS = [f"{TOPIC_PREFIX}/+/{kind.value}" for kind in MessageKind]

_SUFFIXES = {kind.value: kind for kind in MessageKind}


def parse_topic(topic: str) -> Optional[Tuple[str, MessageKind]]:
    """Resuelve (hub_mac normalizada, tipo de mensaje) desde el topic.

    Devuelve None para cualquier topic que no sea de los hubs: prefijo
    distinto, pocos segmentos, sufijo desconocido o MAC de hub inválida.
    """
    parts = topic.split("/")
    if len(parts) < 3 or parts[0] != TOPIC_PREFIX:
        return None

    kind = _SUFFIXES.get("/".join(parts[2:]))
    if kind is None:
        return None

    hub_mac = parse_mac(parts[1])
    if hub_mac is None:
        return None

    return hub_mac, kind


def sync_topic(hub_mac: str) -> str:
    return f"{TOPIC_PREFIX}/{hub_mac}/sync"


def pairing_response_topic(hub_mac: str) -> str:
    return f"{TOPIC_PREFIX}/{hub_mac}/pairing/response"


def sensor_remove_topic(hub_mac: str) -> str:
    return f"{TOPIC_PREFIX}/{hub_mac}/sensor/remove"
