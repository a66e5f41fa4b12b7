"""Fan-out en vivo hacia los dashboards.

Un grupo de difusión por hub (clave: MAC normalizada). Las sesiones de
visor se unen/salen presentando la MAC; una MAC mal formada es un no-op.

Los broadcasts se originan en el hilo de red de paho; cada sesión tiene su
propia cola acotada y se alimenta con ``loop.call_soon_threadsafe``, de modo
que el hilo MQTT nunca espera a un websocket lento.

La membresía vive solo en memoria y dura lo que la conexión del visor.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Set

from ...core.domain import parse_mac

logger = logging.getLogger(__name__)

EVENT_SENSOR_DATA = "sensorData"
EVENT_HUB_STATUS = "hubStatus"
EVENT_PAIRING_REQUEST = "pairingRequest"


class HubStatusCache:
    """Último estado conocido por hub, acotado (LRU)."""

    def __init__(self, max_entries: int = 1024):
        self._max_entries = max(1, max_entries)
        self._entries: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        self._lock = threading.Lock()

    def put(self, hub_mac: str, status: Dict[str, Any]) -> None:
        with self._lock:
            self._entries[hub_mac] = status
            self._entries.move_to_end(hub_mac)
            while len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("[GATEWAY] Status cache evicted hub=%s", evicted)

    def get(self, hub_mac: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            status = self._entries.get(hub_mac)
            return dict(status) if status is not None else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class ViewerSession:
    """Sesión de un visor conectado (normalmente un websocket)."""

    _ids = itertools.count(1)

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None, max_queue: int = 256):
        self.session_id = next(self._ids)
        self.groups: Set[str] = set()
        self._loop = loop
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max(1, max_queue))
        self.dropped = 0

    def deliver(self, message: Dict[str, Any]) -> None:
        """Encola un mensaje. Seguro desde cualquier hilo."""
        if self._loop is None or self._in_loop_thread():
            self._offer(message)
        elif not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._offer, message)

    def _in_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    def _offer(self, message: Dict[str, Any]) -> None:
        if self._queue.full():
            # Visor lento: se descarta lo más viejo.
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(message)

    async def next_message(self) -> Dict[str, Any]:
        return await self._queue.get()

    def drain(self) -> List[Dict[str, Any]]:
        """Saca todo lo pendiente sin esperar."""
        messages = []
        while not self._queue.empty():
            messages.append(self._queue.get_nowait())
        return messages


class LiveGateway:
    """Grupos de difusión por hub + caché de último estado."""

    def __init__(self, status_cache: HubStatusCache, viewer_queue_size: int = 256):
        self._status_cache = status_cache
        self._viewer_queue_size = viewer_queue_size
        self._groups: Dict[str, Set[ViewerSession]] = {}
        self._lock = threading.Lock()
        self._broadcasts = 0

    @property
    def status_cache(self) -> HubStatusCache:
        return self._status_cache

    def open_session(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> ViewerSession:
        return ViewerSession(loop=loop, max_queue=self._viewer_queue_size)

    def close_session(self, session: ViewerSession) -> None:
        with self._lock:
            for hub_mac in list(session.groups):
                self._discard(hub_mac, session)
            session.groups.clear()

    def join(self, session: ViewerSession, hub_mac: Any) -> bool:
        """Une la sesión al grupo del hub. MAC inválida → False, sin efecto."""
        mac = parse_mac(hub_mac)
        if mac is None:
            return False

        with self._lock:
            self._groups.setdefault(mac, set()).add(session)
            session.groups.add(mac)

        # Un visor que llega tarde recibe el último estado conocido.
        status = self._status_cache.get(mac)
        if status is not None:
            session.deliver({"event": EVENT_HUB_STATUS, "data": status})

        logger.debug("[GATEWAY] session=%d joined hub=%s", session.session_id, mac)
        return True

    def leave(self, session: ViewerSession, hub_mac: Any) -> bool:
        mac = parse_mac(hub_mac)
        if mac is None:
            return False

        with self._lock:
            self._discard(mac, session)
            session.groups.discard(mac)

        logger.debug("[GATEWAY] session=%d left hub=%s", session.session_id, mac)
        return True

    def _discard(self, hub_mac: str, session: ViewerSession) -> None:
        members = self._groups.get(hub_mac)
        if members is None:
            return
        members.discard(session)
        if not members:
            del self._groups[hub_mac]

    def broadcast(self, hub_mac: str, event: str, data: Dict[str, Any]) -> int:
        """Emite un evento a las sesiones del grupo del hub.

        Returns:
            Número de sesiones a las que se entregó.
        """
        with self._lock:
            members = list(self._groups.get(hub_mac, ()))
            self._broadcasts += 1

        message = {"event": event, "data": data}
        for session in members:
            try:
                session.deliver(message)
            except Exception as e:
                logger.warning("[GATEWAY] Deliver failed session=%d: %s", session.session_id, e)
        return len(members)

    def last_status(self, hub_mac: str) -> Optional[Dict[str, Any]]:
        return self._status_cache.get(hub_mac)

    def group_size(self, hub_mac: str) -> int:
        with self._lock:
            return len(self._groups.get(hub_mac, ()))

    @property
    def stats(self) -> dict:
        with self._lock:
            return {
                "groups": len(self._groups),
                "sessions": len({s for members in self._groups.values() for s in members}),
                "broadcasts": self._broadcasts,
                "cached_statuses": len(self._status_cache),
            }
