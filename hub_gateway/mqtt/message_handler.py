"""Router de mensajes MQTT de los hubs.

topic + payload crudo → mensaje tipado → handler.

Nada de lo que llega por el broker puede tumbar el router: topics ajenos se
ignoran, payloads ilegibles se descartan con un log, y cualquier excepción
de un handler se loguea y se cuenta antes de pasar al siguiente mensaje.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

import orjson

from ..core.domain import MessageKind
from .handlers import HandlerOutcome, IngestionHandlers
from .receiver_stats import ReceiverStats
from .topics import parse_topic
from .validators import decode_message

logger = logging.getLogger(__name__)

_NO_PAYLOAD = object()


def parse_json(payload: bytes, topic: str) -> Any:
    """Parsea payload JSON. Devuelve _NO_PAYLOAD si no es JSON válido."""
    try:
        return orjson.loads(payload)
    except orjson.JSONDecodeError as e:
        logger.warning("[MQTT] Invalid JSON: %s (topic=%s)", e, topic)
        return _NO_PAYLOAD


class MessageRouter:
    def __init__(self, handlers: IngestionHandlers):
        self._handlers = handlers
        self._stats = ReceiverStats()

    def handle(self, topic: str, payload: bytes) -> Optional[HandlerOutcome]:
        """Procesa un mensaje MQTT. Nunca lanza excepciones."""
        self._stats.received += 1
        self._stats.last_message_at = time.time()

        try:
            resolved = parse_topic(topic)
            if resolved is None:
                self._stats.ignored += 1
                logger.debug("[MQTT] Ignoring topic %s", topic)
                return None
            hub_mac, kind = resolved

            if kind is MessageKind.SYNC_REQUEST and not payload.strip():
                data = None
            else:
                data = parse_json(payload, topic)
                if data is _NO_PAYLOAD:
                    self._stats.failed += 1
                    return None

            validation = decode_message(hub_mac, kind, data)
            if not validation.valid:
                logger.warning("[MQTT] Validation failed: %s (topic=%s)", validation.error, topic)
                self._stats.failed += 1
                return None

            outcome = self._handlers.dispatch(validation.message)
            self._stats.processed += 1

            if self._stats.processed % 100 == 0:
                logger.info("[MQTT] %s", self._stats)

            return outcome

        except Exception as e:
            logger.exception("[MQTT] Processing error topic=%s: %s", topic, e)
            self._stats.failed += 1
            return None

    @property
    def stats(self) -> ReceiverStats:
        return self._stats
