"""Endpoints de hubs: listado y registro / re-aprovisionamiento."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from ..auth import require_api_key
from ..infrastructure.persistence import SensorStore
from ..schemas import DeviceOut, DeviceRegistered, DeviceRegisterIn
from .deps import get_store

router = APIRouter(prefix="/api/devices", tags=["devices"], dependencies=[Depends(require_api_key)])
logger = logging.getLogger(__name__)


@router.get("", response_model=List[DeviceOut])
def list_devices(store: SensorStore = Depends(get_store)):
    try:
        return store.list_devices()
    except Exception as e:
        logger.exception("DB error listing devices err=%s", type(e).__name__)
        raise HTTPException(status_code=500, detail="Database error")


@router.post("/register", response_model=DeviceRegistered, status_code=201)
def register_device(payload: DeviceRegisterIn, store: SensorStore = Depends(get_store)):
    """Registra (o re-aprovisiona) un hub.

    Cada llamada emite un api_key nuevo de 64 caracteres hex; las
    credenciales anteriores del hub quedan invalidadas.
    """
    api_key = secrets.token_hex(32)
    try:
        row = store.register_device(payload.mac, payload.name, api_key, datetime.now(timezone.utc))
    except Exception as e:
        logger.exception("DB error registering device err=%s", type(e).__name__)
        raise HTTPException(status_code=500, detail="Database error")

    logger.info("[DEVICES] Hub %s registered id=%s", row["mac"], row["id"])
    return row
