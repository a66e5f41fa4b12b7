"""Endpoints por hub: último estado conocido y sync manual."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from ..auth import require_api_key
from ..core.domain import UnknownHubError, parse_mac
from ..mqtt import IngestionHandlers, ReconciliationPublisher
from ..mqtt.topics import sync_topic
from ..schemas import SyncPushResult
from ..transports.websocket import LiveGateway
from .deps import get_gateway, get_handlers, get_publisher

router = APIRouter(prefix="/api/hubs", tags=["hubs"], dependencies=[Depends(require_api_key)])
logger = logging.getLogger(__name__)


def _hub_mac_or_400(hub_mac: str) -> str:
    mac = parse_mac(hub_mac)
    if mac is None:
        raise HTTPException(status_code=400, detail="Valid MAC address required (format AA:BB:CC:DD:EE:FF)")
    return mac


@router.get("/{hub_mac}/status")
def hub_status(hub_mac: str, gateway: LiveGateway = Depends(get_gateway)):
    status = gateway.last_status(_hub_mac_or_400(hub_mac))
    if status is None:
        raise HTTPException(status_code=404, detail="No status received for this hub")
    return status


@router.post("/{hub_mac}/sync", response_model=SyncPushResult)
def push_sync(
    hub_mac: str,
    handlers: IngestionHandlers = Depends(get_handlers),
    publisher: ReconciliationPublisher = Depends(get_publisher),
):
    """Empuja ya la lista autoritativa de sensores al hub."""
    mac = _hub_mac_or_400(hub_mac)
    if not publisher.is_connected:
        raise HTTPException(status_code=503, detail="MQTT broker unavailable")

    try:
        result = handlers.push_sync(mac)
    except UnknownHubError:
        raise HTTPException(status_code=404, detail="Hub not registered")
    except Exception as e:
        logger.exception("DB error pushing sync err=%s", type(e).__name__)
        raise HTTPException(status_code=500, detail="Database error")

    if not result.ok:
        raise HTTPException(status_code=503, detail="Sync could not be delivered to hub")
    return SyncPushResult(hub_mac=mac, topic=sync_topic(mac))
