"""
Realtime Package

This package contains the WebSocket gateway: connection management, presence,
room membership, message ingestion and internal event publishing.

Modules:
- ws: WebSocket router and RealtimeGateway (lifecycle, dispatch, broadcast)
- presence: PresenceTable (user id → connection id)
- rooms: RoomRegistry and room/key naming functions
- ingestion: MessageIngestionHandler for send-message
- events: Internal notification publishing endpoint
"""

from .events import internal_router
from .ingestion import MessageIngestionHandler
from .presence import PresenceTable
from .rooms import RoomRegistry
from .ws import RealtimeGateway, realtime_router

__all__ = [
    "internal_router",
    "realtime_router",
    "MessageIngestionHandler",
    "PresenceTable",
    "RealtimeGateway",
    "RoomRegistry",
]
