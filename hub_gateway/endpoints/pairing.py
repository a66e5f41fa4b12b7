"""Endpoints del flujo de pairing (aprobación por el administrador)."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from common.config import Settings
from ..auth import require_api_key
from ..core.domain import BrokerUnavailableError
from ..infrastructure.persistence import PAIRING_STATUSES, SensorStore
from ..mqtt import ReconciliationPublisher
from ..schemas import PairingRequestOut, PairingResolution
from .deps import get_publisher, get_settings, get_store

router = APIRouter(prefix="/api/pairing", tags=["pairing"], dependencies=[Depends(require_api_key)])
logger = logging.getLogger(__name__)


@router.get("/requests", response_model=List[PairingRequestOut])
def list_pairing_requests(
    status: Optional[str] = Query(default=None),
    store: SensorStore = Depends(get_store),
):
    if status and status not in PAIRING_STATUSES:
        raise HTTPException(status_code=400, detail="status must be pending, approved, or rejected")
    try:
        return store.list_pairing_requests(status or None)
    except Exception as e:
        logger.exception("DB error listing pairing requests err=%s", type(e).__name__)
        raise HTTPException(status_code=500, detail="Database error")


def _resolve_request(
    request_id: int,
    approved: bool,
    store: SensorStore,
    publisher: ReconciliationPublisher,
    resolved_by: str,
) -> dict:
    """Resuelve una solicitud pendiente y publica la decisión al hub.

    La decisión tiene que llegar al hub: con el broker caído la solicitud
    se queda pendiente y se devuelve 503. Si el broker cae justo entre la
    actualización y la publicación, la solicitud queda resuelta pero el
    fallo se reporta igualmente.
    """
    try:
        existing = store.get_pairing_request(request_id)
    except Exception as e:
        logger.exception("DB error loading pairing request err=%s", type(e).__name__)
        raise HTTPException(status_code=500, detail="Database error")

    if existing is None or existing["status"] != "pending":
        raise HTTPException(status_code=404, detail="Pending pairing request not found")

    if not publisher.is_connected:
        raise HTTPException(status_code=503, detail="MQTT broker unavailable")

    try:
        row = store.resolve_pairing_request(request_id, approved, resolved_by, datetime.now(timezone.utc))
        if row is None:
            raise HTTPException(status_code=404, detail="Pending pairing request not found")
        hub_mac = store.find_device_mac(row["device_id"])
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("DB error resolving pairing request err=%s", type(e).__name__)
        raise HTTPException(status_code=500, detail="Database error")

    if hub_mac is not None:
        try:
            publisher.publish_pairing_decision(hub_mac, row["slave_mac"], approved).raise_for_status()
        except BrokerUnavailableError:
            raise HTTPException(status_code=503, detail="Pairing decision could not be delivered to hub")

    return row


@router.post("/requests/{request_id}/approve", response_model=PairingResolution)
def approve_request(
    request_id: int = Path(..., ge=1),
    store: SensorStore = Depends(get_store),
    publisher: ReconciliationPublisher = Depends(get_publisher),
    settings: Settings = Depends(get_settings),
):
    return _resolve_request(request_id, True, store, publisher, settings.admin_username)


@router.post("/requests/{request_id}/reject", response_model=PairingResolution)
def reject_request(
    request_id: int = Path(..., ge=1),
    store: SensorStore = Depends(get_store),
    publisher: ReconciliationPublisher = Depends(get_publisher),
    settings: Settings = Depends(get_settings),
):
    return _resolve_request(request_id, False, store, publisher, settings.admin_username)
