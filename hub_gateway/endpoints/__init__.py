"""Módulo de endpoints HTTP.

Contiene los endpoints de administración organizados por recurso.
"""

from .devices import router as devices_router
from .health import router as health_router
from .hubs import router as hubs_router
from .pairing import router as pairing_router
from .readings import router as readings_router
from .sensors import router as sensors_router

__all__ = [
    "devices_router",
    "health_router",
    "hubs_router",
    "pairing_router",
    "readings_router",
    "sensors_router",
]
