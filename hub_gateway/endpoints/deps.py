"""Dependencias comunes de los endpoints: componentes del app.state."""

from __future__ import annotations

from fastapi import Request

from common.config import Settings
from ..infrastructure.persistence import SensorStore
from ..mqtt import IngestionHandlers, MQTTReceiver, ReconciliationPublisher
from ..transports.websocket import LiveGateway


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> SensorStore:
    return request.app.state.store


def get_gateway(request: Request) -> LiveGateway:
    return request.app.state.gateway


def get_publisher(request: Request) -> ReconciliationPublisher:
    return request.app.state.publisher


def get_handlers(request: Request) -> IngestionHandlers:
    return request.app.state.handlers


def get_receiver(request: Request) -> MQTTReceiver | None:
    return request.app.state.receiver
