"""Fixtures compartidas: BD SQLite en memoria, broker falso y app."""

from datetime import datetime, timezone
from typing import List, Tuple

import orjson
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from common.config import Settings
from common.db import build_engine
from hub_gateway.infrastructure.persistence import SensorStore, ensure_schema
from hub_gateway.main import create_app
from hub_gateway.mqtt import IngestionHandlers, MessageRouter, ReconciliationPublisher
from hub_gateway.transports.websocket import HubStatusCache, LiveGateway

HUB_MAC = "AA:BB:CC:DD:EE:01"
OTHER_HUB_MAC = "AA:BB:CC:DD:EE:02"
SENSOR_MAC = "11:22:33:44:55:66"

FIXED_NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeBrokerClient:
    """Sustituto del MQTTClient: registra lo publicado."""

    def __init__(self, connected: bool = True):
        self.is_connected = connected
        self.published: List[Tuple[str, dict]] = []

    def publish(self, topic: str, payload: bytes) -> bool:
        self.published.append((topic, orjson.loads(payload)))
        return True

    def topics(self) -> List[str]:
        return [topic for topic, _ in self.published]


def make_settings(**overrides) -> Settings:
    values = dict(
        database_url="sqlite://",
        mqtt_broker_host="localhost",
        mqtt_broker_port=1883,
        mqtt_username=None,
        mqtt_password=None,
        mqtt_client_id="hub-gateway-test",
        mqtt_reconnect_seconds=5,
        mqtt_enabled=False,
        admin_api_key=None,
        admin_username="admin",
        hub_status_cache_size=16,
        viewer_queue_size=32,
        environment="development",
        log_level="DEBUG",
        host="127.0.0.1",
        port=3000,
    )
    values.update(overrides)
    return Settings(**values)


def make_engine():
    return build_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def engine():
    engine = make_engine()
    ensure_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine) -> SensorStore:
    return SensorStore(engine)


@pytest.fixture
def hub_id(store) -> int:
    """Hub registrado; devuelve su id."""
    row = store.register_device(HUB_MAC, "Cocina", "k" * 64, FIXED_NOW)
    return row["id"]


@pytest.fixture
def broker_client() -> FakeBrokerClient:
    return FakeBrokerClient()


@pytest.fixture
def publisher(broker_client) -> ReconciliationPublisher:
    return ReconciliationPublisher(broker_client)


@pytest.fixture
def gateway() -> LiveGateway:
    return LiveGateway(HubStatusCache(max_entries=16), viewer_queue_size=32)


@pytest.fixture
def handlers(store, gateway, publisher) -> IngestionHandlers:
    return IngestionHandlers(store, gateway, publisher, clock=lambda: FIXED_NOW)


@pytest.fixture
def router(handlers) -> MessageRouter:
    return MessageRouter(handlers)


@pytest.fixture
def app_client(engine, broker_client):
    app = create_app(settings=make_settings(), engine=engine, mqtt_client=broker_client)
    with TestClient(app) as client:
        yield client
