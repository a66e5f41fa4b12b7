"""WebSocket endpoint para dashboards en vivo.

Protocolo:
1. Client → {type: "join", hub_mac}    (se une al grupo del hub)
2. Client → {type: "leave", hub_mac}
3. Client → {type: "ping"}             → Server {type: "pong"}
4. Server → {event: "sensorData" | "hubStatus" | "pairingRequest", data: {...}}

Frames binarios, que no son JSON o de tipo desconocido se ignoran.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

import orjson
from fastapi import WebSocket, status

from .gateway import LiveGateway, ViewerSession

logger = logging.getLogger(__name__)


async def _pump(websocket: WebSocket, session: ViewerSession) -> None:
    while True:
        message = await session.next_message()
        await websocket.send_json(message)


async def websocket_viewer(websocket: WebSocket):
    """WebSocket endpoint de visores (dashboard)."""
    settings = websocket.app.state.settings
    gateway: LiveGateway = websocket.app.state.gateway

    expected_key = settings.admin_api_key
    if expected_key and websocket.query_params.get("api_key") != expected_key:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid API key")
        return

    await websocket.accept()

    session = gateway.open_session(loop=asyncio.get_running_loop())
    sender = asyncio.create_task(_pump(websocket, session))
    logger.info("[WebSocket] Viewer connected: session=%d", session.session_id)

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                break
            raw = frame.get("text")
            if raw is None:
                continue
            try:
                msg = orjson.loads(raw)
            except orjson.JSONDecodeError:
                continue
            if not isinstance(msg, dict):
                continue

            msg_type = msg.get("type")
            if msg_type == "join":
                gateway.join(session, msg.get("hub_mac"))
            elif msg_type == "leave":
                gateway.leave(session, msg.get("hub_mac"))
            elif msg_type == "ping":
                session.deliver({"type": "pong"})

    finally:
        sender.cancel()
        with contextlib.suppress(Exception, asyncio.CancelledError):
            await sender
        gateway.close_session(session)
        logger.info("[WebSocket] Viewer disconnected: session=%d", session.session_id)
