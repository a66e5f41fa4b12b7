"""Endpoints de histórico de lecturas por sensor."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from ..auth import require_api_key
from ..infrastructure.persistence import SensorStore
from ..schemas import ReadingOut
from .deps import get_store

router = APIRouter(
    prefix="/api/sensors/{sensor_id}/readings",
    tags=["readings"],
    dependencies=[Depends(require_api_key)],
)
logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 500
MAX_LIMIT = 5000


def _as_utc(ts: Optional[datetime]) -> Optional[datetime]:
    if ts is None:
        return None
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


@router.get("", response_model=List[ReadingOut])
def list_readings(
    sensor_id: int = Path(..., ge=1),
    start: Optional[datetime] = Query(default=None, alias="from"),
    end: Optional[datetime] = Query(default=None, alias="to"),
    limit: int = Query(default=DEFAULT_LIMIT, ge=1),
    store: SensorStore = Depends(get_store),
):
    try:
        return store.list_readings(
            sensor_id,
            limit=min(limit, MAX_LIMIT),
            start=_as_utc(start),
            end=_as_utc(end),
        )
    except Exception as e:
        logger.exception("DB error listing readings err=%s", type(e).__name__)
        raise HTTPException(status_code=500, detail="Database error")


@router.get("/latest", response_model=ReadingOut)
def latest_reading(
    sensor_id: int = Path(..., ge=1),
    store: SensorStore = Depends(get_store),
):
    try:
        row = store.latest_reading(sensor_id)
    except Exception as e:
        logger.exception("DB error reading latest err=%s", type(e).__name__)
        raise HTTPException(status_code=500, detail="Database error")

    if row is None:
        raise HTTPException(status_code=404, detail="No readings found")
    return row
