"""Fan-out en vivo por WebSocket."""

from .gateway import HubStatusCache, LiveGateway, ViewerSession
from .handler import websocket_viewer

__all__ = ["HubStatusCache", "LiveGateway", "ViewerSession", "websocket_viewer"]
