"""Gateway de hubs de sensores de temperatura.

Une las piezas: BD, receptor MQTT de los hubs, fan-out en vivo por
websocket y los endpoints HTTP de administración.

Ejecutar:
    hub-gateway
o bien:
    uvicorn --factory hub_gateway.main:create_app
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from common.config import Settings, get_settings
from common.db import dispose_engine, get_engine
from . import __version__
from .core.transport import MQTTClient
from .endpoints import (
    devices_router,
    health_router,
    hubs_router,
    pairing_router,
    readings_router,
    sensors_router,
)
from .infrastructure.persistence import SensorStore, ensure_schema
from .mqtt import SUBSCRIPTIONS, IngestionHandlers, MessageRouter, MQTTReceiver, ReconciliationPublisher
from .mqtt.publisher import BrokerClient
from .transports.websocket import HubStatusCache, LiveGateway, websocket_viewer

logger = logging.getLogger(__name__)


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Un solo mensaje legible, sin volcar el modelo completo.
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return JSONResponse(status_code=400, content={"detail": message})


def _build_mqtt_client(settings: Settings) -> MQTTClient:
    return MQTTClient(
        broker_host=settings.mqtt_broker_host,
        broker_port=settings.mqtt_broker_port,
        username=settings.mqtt_username,
        password=settings.mqtt_password,
        client_id=settings.mqtt_client_id,
        subscriptions=SUBSCRIPTIONS,
        reconnect_seconds=settings.mqtt_reconnect_seconds,
    )


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    mqtt_client: Optional[BrokerClient] = None,
) -> FastAPI:
    """Construye la aplicación con todos sus componentes en ``app.state``.

    Args:
        settings: Configuración; por defecto la del entorno.
        engine: Engine ya construido (tests); por defecto el compartido,
            que se libera al apagar la aplicación.
        mqtt_client: Cliente de broker ya construido (tests). El receptor
            solo arranca si FF_MQTT_ENABLED está activo.
    """
    settings = settings or get_settings()
    engine = engine or get_engine(settings)
    ensure_schema(engine)

    store = SensorStore(engine)
    gateway = LiveGateway(
        HubStatusCache(settings.hub_status_cache_size),
        viewer_queue_size=settings.viewer_queue_size,
    )
    client = mqtt_client or _build_mqtt_client(settings)
    publisher = ReconciliationPublisher(client)
    handlers = IngestionHandlers(store, gateway, publisher)

    receiver: Optional[MQTTReceiver] = None
    if settings.mqtt_enabled:
        receiver = MQTTReceiver(client, MessageRouter(handlers))
    else:
        logger.warning("[MAIN] FF_MQTT_ENABLED=false - hub ingestion disabled")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if receiver is not None and not receiver.start():
            logger.error("[MAIN] MQTT broker not reachable at startup - retrying in background")
        yield
        if receiver is not None:
            receiver.stop()
        dispose_engine()

    app = FastAPI(title="Hub Gateway", version=__version__, lifespan=lifespan)

    app.state.settings = settings
    app.state.store = store
    app.state.gateway = gateway
    app.state.publisher = publisher
    app.state.handlers = handlers
    app.state.receiver = receiver

    app.add_exception_handler(RequestValidationError, _validation_error)

    app.include_router(health_router)
    app.include_router(devices_router)
    app.include_router(sensors_router)
    app.include_router(readings_router)
    app.include_router(pairing_router)
    app.include_router(hubs_router)
    app.add_api_websocket_route("/ws", websocket_viewer)

    return app


def run() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )
    logger.info("[MAIN] Hub Gateway %s starting env=%s", __version__, settings.environment)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
