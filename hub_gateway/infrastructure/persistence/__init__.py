"""Persistence infrastructure: esquema y store relacional."""

from .schema import ensure_schema, metadata, PAIRING_STATUSES
from .store import SensorStore

__all__ = [
    "ensure_schema",
    "metadata",
    "PAIRING_STATUSES",
    "SensorStore",
]
