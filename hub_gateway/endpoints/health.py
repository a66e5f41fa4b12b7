"""Health and readiness endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from common.db import ping
from ..infrastructure.persistence import SensorStore
from ..mqtt import MQTTReceiver
from ..transports.websocket import LiveGateway
from .deps import get_gateway, get_receiver, get_store

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


@router.get("/health")
@router.get("/api/health")
def health():
    """Liveness probe: always returns ok if process is running."""
    return {"status": "ok"}


@router.get("/ready")
def ready(store: SensorStore = Depends(get_store)):
    """Readiness probe: checks DB connectivity."""
    if not ping(store.engine):
        raise HTTPException(status_code=503, detail="not ready")
    return {"status": "ready"}


@router.get("/health/mqtt")
def mqtt_health(
    receiver: MQTTReceiver | None = Depends(get_receiver),
    gateway: LiveGateway = Depends(get_gateway),
):
    """Estado del receptor MQTT y del fan-out en vivo."""
    if receiver is None:
        return {"status": "disabled", "gateway": gateway.stats}

    return {
        "status": "ok" if receiver.is_connected else "disconnected",
        "receiver": receiver.stats,
        "gateway": gateway.stats,
    }
