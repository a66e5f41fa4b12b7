"""Contadores del router MQTT de los hubs."""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass
class ReceiverStats:
    """Contadores por mensaje.

    ignored: topics ajenos a los hubs.
    failed: payload ilegible, inválido o excepción en el handler.
    """

    received: int = 0
    processed: int = 0
    ignored: int = 0
    failed: int = 0
    last_message_at: float = 0.0

    def __str__(self) -> str:
        return (
            f"Stats: received={self.received} processed={self.processed} "
            f"ignored={self.ignored} failed={self.failed}"
        )

    def to_dict(self) -> dict:
        return asdict(self)
