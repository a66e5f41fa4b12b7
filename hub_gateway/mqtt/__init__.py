"""MQTT de los hubs de sensores.

Este módulo proporciona:
- Router de mensajes entrantes (topics sensors/{hub}/...)
- Handlers de ingesta con las invariantes de upsert / soft-delete
- Publicador de respuestas (sync, decisión de pairing, borrado de sensor)

Estructura modular:
- topics.py: Parseo de topics entrantes y construcción de salientes
- validators.py: Validación de payloads → mensajes tipados
- handlers.py: Handlers de ingesta
- message_handler.py: Router (parseo, decodificación, despacho)
- publisher.py: Publicaciones salientes
- receiver.py: Receptor MQTT principal
"""

from .handlers import HandlerOutcome, IngestionHandlers
from .message_handler import MessageRouter
from .publisher import PublishResult, ReconciliationPublisher
from .receiver import MQTTReceiver
from .topics import SUBSCRIPTIONS

__all__ = [
    "HandlerOutcome",
    "IngestionHandlers",
    "MessageRouter",
    "PublishResult",
    "ReconciliationPublisher",
    "MQTTReceiver",
    "SUBSCRIPTIONS",
]
