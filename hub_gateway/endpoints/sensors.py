"""Endpoints de sensores: listado, renombrado y borrado."""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, Response

from ..auth import require_api_key
from ..infrastructure.persistence import SensorStore
from ..mqtt import ReconciliationPublisher
from ..schemas import SensorOut, SensorRenamed, SensorRenameIn
from .deps import get_publisher, get_store

router = APIRouter(prefix="/api/sensors", tags=["sensors"], dependencies=[Depends(require_api_key)])
logger = logging.getLogger(__name__)


@router.get("", response_model=List[SensorOut])
def list_sensors(store: SensorStore = Depends(get_store)):
    try:
        return store.list_sensors()
    except Exception as e:
        logger.exception("DB error listing sensors err=%s", type(e).__name__)
        raise HTTPException(status_code=500, detail="Database error")


@router.put("/{sensor_id}", response_model=SensorRenamed)
def rename_sensor(
    payload: SensorRenameIn,
    sensor_id: int = Path(..., ge=1),
    store: SensorStore = Depends(get_store),
):
    try:
        row = store.rename_sensor(sensor_id, payload.name)
    except Exception as e:
        logger.exception("DB error renaming sensor err=%s", type(e).__name__)
        raise HTTPException(status_code=500, detail="Database error")

    if row is None:
        raise HTTPException(status_code=404, detail="Sensor not found")
    return row


@router.delete("/{sensor_id}", status_code=204)
def delete_sensor(
    sensor_id: int = Path(..., ge=1),
    store: SensorStore = Depends(get_store),
    publisher: ReconciliationPublisher = Depends(get_publisher),
):
    """Borra el sensor y sus lecturas, y avisa al hub por MQTT.

    El aviso es best-effort: si el broker no está disponible el borrado
    sigue siendo válido y el hub converge en su próximo sync.
    """
    try:
        sensor = store.get_sensor_with_hub(sensor_id)
        if sensor is None:
            raise HTTPException(status_code=404, detail="Sensor not found")
        store.delete_sensor(sensor_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("DB error deleting sensor err=%s", type(e).__name__)
        raise HTTPException(status_code=500, detail="Database error")

    publisher.publish_sensor_remove(sensor["hub_mac"], sensor["sensor_mac"])
    return Response(status_code=204)
