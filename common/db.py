from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url

from .config import Settings, get_settings


logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignora ON DELETE CASCADE si no se activa por conexión.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str, **kwargs) -> Engine:
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        engine = create_engine(url, future=True, **kwargs)
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    else:
        engine = create_engine(
            url,
            pool_pre_ping=True,
            pool_recycle=300,
            future=True,
            **kwargs,
        )

    # Log básico de parámetros de conexión (sin contraseña)
    logger.info(
        "[DB] Engine creado backend=%s host=%s db=%s",
        url.get_backend_name(),
        url.host,
        url.database,
    )
    return engine


def ping(engine: Engine) -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("[DB] Test de conexión FALLÓ")
        return False


def get_engine(settings: Settings | None = None) -> Engine:
    global _engine

    if _engine is not None:
        return _engine

    settings = settings or get_settings()
    _engine = build_engine(settings.database_url)

    if ping(_engine):
        logger.info("[DB] Test de conexión OK")

    return _engine


def dispose_engine() -> None:
    global _engine

    if _engine is not None:
        _engine.dispose()
        _engine = None
