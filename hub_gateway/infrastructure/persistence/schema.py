"""Esquema relacional: devices, sensors, readings, pairing_requests.

Declarado con SQLAlchemy Core para que el mismo DDL sirva en PostgreSQL
(producción) y SQLite (tests). Las consultas viven en store.py como SQL
parametrizado.
"""

from __future__ import annotations

import logging

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    text,
    true,
)
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

metadata = MetaData()

devices = Table(
    "devices",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("mac", String(17), nullable=False, unique=True),
    Column("name", String(64), nullable=True),
    Column("api_key", String(64), nullable=False),
    Column("registered_at", DateTime(timezone=True), nullable=False),
)

sensors = Table(
    "sensors",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "device_id",
        Integer,
        ForeignKey("devices.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("mac", String(17), nullable=False),
    Column("name", String(64), nullable=False),
    Column("active", Boolean, nullable=False, server_default=true()),
    Column("paired_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("device_id", "mac", name="uq_sensors_device_mac"),
)

readings = Table(
    "readings",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "sensor_id",
        Integer,
        ForeignKey("sensors.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("temp", Float, nullable=True),
    Column("hum", Float, nullable=True),
    Column("battery", Float, nullable=True),
    Column("rssi", Float, nullable=True),
    Column("recorded_at", DateTime(timezone=True), nullable=False),
    Index("ix_readings_sensor_recorded", "sensor_id", "recorded_at"),
)

pairing_requests = Table(
    "pairing_requests",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "device_id",
        Integer,
        ForeignKey("devices.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("slave_mac", String(17), nullable=False),
    Column("status", String(16), nullable=False, server_default="pending"),
    Column("requested_at", DateTime(timezone=True), nullable=False),
    Column("resolved_at", DateTime(timezone=True), nullable=True),
    Column("resolved_by", String(64), nullable=True),
    # Como mucho una solicitud pendiente por (hub, sensor).
    Index(
        "uq_pairing_pending",
        "device_id",
        "slave_mac",
        unique=True,
        postgresql_where=text("status = 'pending'"),
        sqlite_where=text("status = 'pending'"),
    ),
)

PAIRING_STATUSES = ("pending", "approved", "rejected")


def ensure_schema(engine: Engine) -> None:
    """Crea las tablas si no existen. Seguro de llamar varias veces."""
    logger.info("[STORE] Ensuring schema exists")
    metadata.create_all(engine)
