from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .core.domain import parse_mac


class PairingStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DeviceOut(BaseModel):
    id: int
    mac: str
    name: Optional[str] = None
    registered_at: datetime


class DeviceRegisterIn(BaseModel):
    mac: str
    name: Optional[str] = Field(default=None, max_length=64)

    @field_validator("mac")
    @classmethod
    def validate_mac(cls, v: str) -> str:
        mac = parse_mac(v)
        if mac is None:
            raise ValueError("Valid MAC address required (format AA:BB:CC:DD:EE:FF)")
        return mac


class DeviceRegistered(DeviceOut):
    # Se entrega una sola vez; el hub lo recibe por BLE durante el aprovisionamiento.
    api_key: str


class SensorOut(BaseModel):
    id: int
    device_id: int
    mac: str
    name: str
    paired_at: datetime
    active: bool
    hub_mac: str
    hub_name: Optional[str] = None


class SensorRenameIn(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name is required")
        return v[:64]


class SensorRenamed(BaseModel):
    id: int
    mac: str
    name: str


class ReadingOut(BaseModel):
    id: int
    temp: Optional[float] = None
    hum: Optional[float] = None
    battery: Optional[float] = None
    rssi: Optional[float] = None
    recorded_at: datetime


class PairingRequestOut(BaseModel):
    id: int
    slave_mac: str
    status: PairingStatus
    requested_at: datetime
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    hub_mac: str
    hub_name: Optional[str] = None


class PairingResolution(BaseModel):
    id: int
    device_id: int
    slave_mac: str
    status: PairingStatus
    requested_at: datetime
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None


class SyncPushResult(BaseModel):
    hub_mac: str
    topic: str
