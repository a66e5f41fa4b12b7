"""Store relacional del gateway.

Todas las operaciones son SQL parametrizado (``sqlalchemy.text`` con bind
params) y cada operación lógica corre en su propio ``engine.begin()``.

Las dos guardas críticas son sentencias atómicas, no lectura-luego-escritura:
- upsert de sensor que solo reactiva si ya estaba activo
- alta de solicitud de pairing que no duplica una pendiente
Requiere un dialecto con upsert nativo (PostgreSQL, SQLite >= 3.35).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import Boolean, DateTime, bindparam, text
from sqlalchemy.engine import Engine
from sqlalchemy.sql.elements import TextClause

from ...core.domain import default_sensor_name

logger = logging.getLogger(__name__)

_TS = DateTime(timezone=True)

Row = Dict[str, Any]


def _sql(statement: str, *, ts_params: tuple = (), ts_columns: tuple = (), bool_columns: tuple = ()) -> TextClause:
    """Compila SQL con tipos explícitos para timestamps y booleanos.

    Sin tipos, SQLite devolvería timestamps como texto y booleanos como 0/1.
    """
    clause = text(statement)
    if ts_params:
        clause = clause.bindparams(*(bindparam(name, type_=_TS) for name in ts_params))
    typed = {name: _TS for name in ts_columns}
    typed.update({name: Boolean for name in bool_columns})
    if typed:
        clause = clause.columns(**typed)
    return clause


_SELECT_DEVICE_ID = text("SELECT id FROM devices WHERE mac = :mac")

_SELECT_DEVICE_MAC = text("SELECT mac FROM devices WHERE id = :device_id")

# ON CONFLICT ... WHERE: un sensor inactivo (soft-deleted) no devuelve fila,
# así una trama de telemetría nunca lo resucita.
_UPSERT_ACTIVE_SENSOR = _sql(
    """
    INSERT INTO sensors (device_id, mac, name, active, paired_at)
    VALUES (:device_id, :mac, :name, TRUE, :now)
    ON CONFLICT (device_id, mac) DO UPDATE
      SET active = TRUE
      WHERE sensors.active = TRUE
    RETURNING id
    """,
    ts_params=("now",),
)

_INSERT_READING = _sql(
    """
    INSERT INTO readings (sensor_id, temp, hum, battery, rssi, recorded_at)
    VALUES (:sensor_id, :temp, :hum, :battery, :rssi, :now)
    RETURNING id
    """,
    ts_params=("now",),
)

_INSERT_PENDING_PAIRING = _sql(
    """
    INSERT INTO pairing_requests (device_id, slave_mac, status, requested_at)
    VALUES (:device_id, :slave_mac, 'pending', :now)
    ON CONFLICT (device_id, slave_mac) WHERE status = 'pending' DO NOTHING
    RETURNING id
    """,
    ts_params=("now",),
)

_SELECT_ACTIVE_SENSORS = text(
    """
    SELECT mac, name
    FROM sensors
    WHERE device_id = :device_id AND active = TRUE
    ORDER BY id
    """
)

# Aprobación de pairing: única vía que (re)activa un sensor ya conocido.
_ACTIVATE_SENSOR = _sql(
    """
    INSERT INTO sensors (device_id, mac, name, active, paired_at)
    VALUES (:device_id, :mac, :name, TRUE, :now)
    ON CONFLICT (device_id, mac) DO UPDATE
      SET active = TRUE, paired_at = excluded.paired_at
    RETURNING id
    """,
    ts_params=("now",),
)

_SOFT_DELETE_SENSOR = text(
    """
    UPDATE sensors SET active = FALSE
    WHERE mac = :sensor_mac
      AND device_id = (SELECT id FROM devices WHERE mac = :hub_mac)
      AND active = TRUE
    RETURNING mac
    """
)


class SensorStore:
    """Acceso a devices, sensors, readings y pairing_requests."""

    def __init__(self, engine: Engine):
        self._engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine

    # ------------------------------------------------------------------
    # Core: usado por los handlers de ingesta
    # ------------------------------------------------------------------

    def find_device_id(self, hub_mac: str) -> Optional[int]:
        with self._engine.connect() as conn:
            row = conn.execute(_SELECT_DEVICE_ID, {"mac": hub_mac}).first()
        return int(row.id) if row else None

    def find_device_mac(self, device_id: int) -> Optional[str]:
        with self._engine.connect() as conn:
            row = conn.execute(_SELECT_DEVICE_MAC, {"device_id": device_id}).first()
        return str(row.mac) if row else None

    def upsert_active_sensor(
        self,
        device_id: int,
        sensor_mac: str,
        default_name: str,
        now: datetime,
    ) -> Optional[int]:
        """Inserta o reafirma un sensor activo.

        Returns:
            id del sensor, o None si existe pero está inactivo.
        """
        with self._engine.begin() as conn:
            row = conn.execute(
                _UPSERT_ACTIVE_SENSOR,
                {"device_id": device_id, "mac": sensor_mac, "name": default_name, "now": now},
            ).first()
        return int(row.id) if row else None

    def insert_reading(
        self,
        sensor_id: int,
        temp: Optional[float],
        hum: Optional[float],
        battery: Optional[float],
        rssi: Optional[float],
        now: datetime,
    ) -> int:
        with self._engine.begin() as conn:
            row = conn.execute(
                _INSERT_READING,
                {
                    "sensor_id": sensor_id,
                    "temp": temp,
                    "hum": hum,
                    "battery": battery,
                    "rssi": rssi,
                    "now": now,
                },
            ).one()
        return int(row.id)

    def create_pending_pairing_request(
        self,
        device_id: int,
        sensor_mac: str,
        now: datetime,
    ) -> Optional[int]:
        """Crea una solicitud pendiente; None si ya había una pendiente."""
        with self._engine.begin() as conn:
            row = conn.execute(
                _INSERT_PENDING_PAIRING,
                {"device_id": device_id, "slave_mac": sensor_mac, "now": now},
            ).first()
        return int(row.id) if row else None

    def list_active_sensors(self, device_id: int) -> List[Row]:
        with self._engine.connect() as conn:
            rows = conn.execute(_SELECT_ACTIVE_SENSORS, {"device_id": device_id}).mappings().all()
        return [{"mac": r["mac"], "name": r["name"]} for r in rows]

    def soft_delete_sensor(self, hub_mac: str, sensor_mac: str) -> int:
        """Marca inactivo el sensor si estaba activo. Devuelve filas afectadas."""
        with self._engine.begin() as conn:
            rows = conn.execute(
                _SOFT_DELETE_SENSOR,
                {"hub_mac": hub_mac, "sensor_mac": sensor_mac},
            ).fetchall()
        return len(rows)

    # ------------------------------------------------------------------
    # Administración (endpoints HTTP)
    # ------------------------------------------------------------------

    def list_devices(self) -> List[Row]:
        stmt = _sql(
            "SELECT id, mac, name, registered_at FROM devices ORDER BY registered_at DESC, id DESC",
            ts_columns=("registered_at",),
        )
        with self._engine.connect() as conn:
            return [dict(r) for r in conn.execute(stmt).mappings().all()]

    def register_device(self, mac: str, name: Optional[str], api_key: str, now: datetime) -> Row:
        """Alta o re-aprovisionamiento de un hub.

        En re-aprovisionamiento se rota el api_key y se conserva el nombre
        si no se envía uno nuevo.
        """
        stmt = _sql(
            """
            INSERT INTO devices (mac, name, api_key, registered_at)
            VALUES (:mac, :name, :api_key, :now)
            ON CONFLICT (mac) DO UPDATE
              SET name = COALESCE(excluded.name, devices.name),
                  api_key = excluded.api_key
            RETURNING id, mac, name, api_key, registered_at
            """,
            ts_params=("now",),
            ts_columns=("registered_at",),
        )
        with self._engine.begin() as conn:
            row = conn.execute(
                stmt, {"mac": mac, "name": name, "api_key": api_key, "now": now}
            ).mappings().one()
        return dict(row)

    def list_sensors(self) -> List[Row]:
        stmt = _sql(
            """
            SELECT s.id, s.device_id, s.mac, s.name, s.paired_at, s.active,
                   d.mac AS hub_mac, d.name AS hub_name
            FROM sensors s
            JOIN devices d ON d.id = s.device_id
            ORDER BY s.paired_at DESC, s.id DESC
            """,
            ts_columns=("paired_at",),
            bool_columns=("active",),
        )
        with self._engine.connect() as conn:
            return [dict(r) for r in conn.execute(stmt).mappings().all()]

    def rename_sensor(self, sensor_id: int, name: str) -> Optional[Row]:
        stmt = text("UPDATE sensors SET name = :name WHERE id = :id RETURNING id, mac, name")
        with self._engine.begin() as conn:
            row = conn.execute(stmt, {"name": name, "id": sensor_id}).mappings().first()
        return dict(row) if row else None

    def get_sensor_with_hub(self, sensor_id: int) -> Optional[Row]:
        stmt = text(
            """
            SELECT s.id, s.mac AS sensor_mac, d.mac AS hub_mac
            FROM sensors s
            JOIN devices d ON d.id = s.device_id
            WHERE s.id = :id
            """
        )
        with self._engine.connect() as conn:
            row = conn.execute(stmt, {"id": sensor_id}).mappings().first()
        return dict(row) if row else None

    def delete_sensor(self, sensor_id: int) -> bool:
        """Borra las lecturas del sensor y lo deja inactivo.

        La fila queda como lápida: una trama de telemetría repetida o en
        vuelo no puede volver a crear el sensor. Solo una aprobación de
        pairing lo reactiva.
        """
        with self._engine.begin() as conn:
            conn.execute(text("DELETE FROM readings WHERE sensor_id = :id"), {"id": sensor_id})
            rows = conn.execute(
                text("UPDATE sensors SET active = FALSE WHERE id = :id RETURNING id"), {"id": sensor_id}
            ).fetchall()
        return bool(rows)

    def list_readings(
        self,
        sensor_id: int,
        limit: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Row]:
        clauses = ["sensor_id = :sensor_id"]
        params: Dict[str, Any] = {"sensor_id": sensor_id, "limit": limit}
        ts_params = []
        if start is not None:
            clauses.append("recorded_at >= :start")
            params["start"] = start
            ts_params.append("start")
        if end is not None:
            clauses.append("recorded_at <= :end")
            params["end"] = end
            ts_params.append("end")

        stmt = _sql(
            f"""
            SELECT id, temp, hum, battery, rssi, recorded_at
            FROM readings
            WHERE {" AND ".join(clauses)}
            ORDER BY recorded_at DESC, id DESC
            LIMIT :limit
            """,
            ts_params=tuple(ts_params),
            ts_columns=("recorded_at",),
        )
        with self._engine.connect() as conn:
            return [dict(r) for r in conn.execute(stmt, params).mappings().all()]

    def latest_reading(self, sensor_id: int) -> Optional[Row]:
        rows = self.list_readings(sensor_id, limit=1)
        return rows[0] if rows else None

    def list_pairing_requests(self, status: Optional[str] = None) -> List[Row]:
        where = "WHERE pr.status = :status" if status else ""
        stmt = _sql(
            f"""
            SELECT pr.id, pr.slave_mac, pr.status,
                   pr.requested_at, pr.resolved_at, pr.resolved_by,
                   d.mac AS hub_mac, d.name AS hub_name
            FROM pairing_requests pr
            JOIN devices d ON d.id = pr.device_id
            {where}
            ORDER BY pr.requested_at DESC, pr.id DESC
            """,
            ts_columns=("requested_at", "resolved_at"),
        )
        params = {"status": status} if status else {}
        with self._engine.connect() as conn:
            return [dict(r) for r in conn.execute(stmt, params).mappings().all()]

    def resolve_pairing_request(
        self,
        request_id: int,
        approved: bool,
        resolved_by: str,
        now: datetime,
    ) -> Optional[Row]:
        """pending → approved|rejected, una sola vez. None si no estaba pendiente.

        Al aprobar, el sensor queda activo en la misma transacción (se crea
        con el nombre por defecto si no existía).
        """
        stmt = _sql(
            """
            UPDATE pairing_requests
            SET status = :status, resolved_at = :now, resolved_by = :resolved_by
            WHERE id = :id AND status = 'pending'
            RETURNING id, device_id, slave_mac, status, requested_at, resolved_at, resolved_by
            """,
            ts_params=("now",),
            ts_columns=("requested_at", "resolved_at"),
        )
        with self._engine.begin() as conn:
            row = conn.execute(
                stmt,
                {
                    "status": "approved" if approved else "rejected",
                    "now": now,
                    "resolved_by": resolved_by,
                    "id": request_id,
                },
            ).mappings().first()
            if row is not None and approved:
                conn.execute(
                    _ACTIVATE_SENSOR,
                    {
                        "device_id": row["device_id"],
                        "mac": row["slave_mac"],
                        "name": default_sensor_name(row["slave_mac"]),
                        "now": now,
                    },
                ).first()
        return dict(row) if row else None

    def get_pairing_request(self, request_id: int) -> Optional[Row]:
        stmt = text("SELECT id, device_id, slave_mac, status FROM pairing_requests WHERE id = :id")
        with self._engine.connect() as conn:
            row = conn.execute(stmt, {"id": request_id}).mappings().first()
        return dict(row) if row else None
