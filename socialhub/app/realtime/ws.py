"""
WebSocket Gateway for Real-time Communications
==============================================

Provides the WebSocket endpoint and the gateway that owns connection
lifecycle, presence, room membership and event dispatch.

Features:
    - Optional ``userId`` handshake parameter (auto-joins the personal room)
    - Explicit ``user-online`` announcement for presence
    - Conversation rooms with join/leave
    - Typing relay to the room minus the sender
    - Message persistence followed by a room broadcast that includes the sender
    - Error frames for rejected events; the connection stays open

Frames (both directions):
    {"type": "<event>", "data": <payload>}

Events Received (Client -> Server):
    - {"type": "user-online", "data": "alice"}
    - {"type": "join-room", "data": {"conversationId": "alice_bob"}}
    - {"type": "leave-room", "data": {"conversationId": "alice_bob"}}
    - {"type": "send-message", "data": {"conversationId": "alice_bob", "message": {"sender": "alice", "content": "hi"}}}
    - {"type": "typing", "data": {"conversationId": "alice_bob", "username": "alice"}}
    - {"type": "stop-typing", "data": {"conversationId": "alice_bob", "username": "alice"}}

Events Sent (Server -> Client):
    - {"type": "update-online-users", "data": ["alice", "bob"]}
    - {"type": "receive-message", "data": {...message...}}
    - {"type": "user-typing", "data": {"username": "alice"}}
    - {"type": "user-stop-typing", "data": {"username": "alice"}}
    - {"type": "new-notification", "data": {...notification...}}
    - {"type": "error", "data": {"event": "send-message", "message": "..."}}
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import APIRouter, Query, Request, WebSocket, WebSocketDisconnect, status

from ..errors import GatewayError, RoomAccessDenied
from ..models import (
    ERROR,
    JOIN_ROOM,
    LEAVE_ROOM,
    NEW_NOTIFICATION,
    RECEIVE_MESSAGE,
    SEND_MESSAGE,
    STOP_TYPING,
    TYPING,
    UPDATE_ONLINE_USERS,
    USER_ONLINE,
    USER_STOP_TYPING,
    USER_TYPING,
    ErrorAck,
    OutboundFrame,
    parse_inbound,
)
from .ingestion import MessageIngestionHandler
from .presence import PresenceTable
from .rooms import RoomRegistry, conversation_room, parse_conversation_key, personal_room

logger = logging.getLogger("socialhub.realtime.ws")

# Router instance
realtime_router = APIRouter()


@dataclass
class Connection:
    """One live socket and what the gateway knows about its user."""
    connection_id: str
    websocket: WebSocket
    user_id: Optional[str] = None
    announced_user_id: Optional[str] = None
    connected_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def identity(self) -> Optional[str]:
        return self.announced_user_id or self.user_id


class RealtimeGateway:
    """
    Owns every live connection and is the only writer of presence.

    Attributes:
        connections: connection id → Connection
        presence: PresenceTable shared by all connections
        rooms: RoomRegistry for personal and conversation rooms
    """

    def __init__(
        self,
        ingestion: MessageIngestionHandler,
        separator: str = "_",
        room_join_requires_participant: bool = False,
        presence: Optional[PresenceTable] = None,
        rooms: Optional[RoomRegistry] = None,
    ):
        self.connections: Dict[str, Connection] = {}
        self.presence = presence or PresenceTable()
        self.rooms = rooms or RoomRegistry()
        self.ingestion = ingestion
        self.separator = separator
        self.room_join_requires_participant = room_join_requires_participant

        # Held across a presence change and its broadcast so every socket
        # receives online lists in the order they were produced
        self._presence_broadcast_lock = asyncio.Lock()

        self._handlers: Dict[str, Callable[[Connection, Any], Awaitable[None]]] = {
            USER_ONLINE: self._on_user_online,
            JOIN_ROOM: self._on_join_room,
            LEAVE_ROOM: self._on_leave_room,
            SEND_MESSAGE: self._on_send_message,
            TYPING: self._on_typing,
            STOP_TYPING: self._on_stop_typing,
        }

        logger.info("RealtimeGateway initialized")

    # =========================================================================
    # Connection Lifecycle
    # =========================================================================

    async def connect(self, websocket: WebSocket, user_id: Optional[str] = None) -> Connection:
        """
        Accept and register a new WebSocket connection.

        A supplied ``user_id`` joins the personal room but does not mark the
        user online; that takes an explicit ``user-online`` event.
        """
        connection = Connection(
            connection_id=uuid.uuid4().hex,
            websocket=websocket,
            user_id=user_id or None,
        )

        # Registered before accept so the client never sees an unrouted socket
        self.connections[connection.connection_id] = connection
        if connection.user_id:
            self.rooms.join(connection.connection_id, personal_room(connection.user_id))

        try:
            await websocket.accept()
        except Exception:
            self.connections.pop(connection.connection_id, None)
            self.rooms.drop_connection(connection.connection_id)
            raise

        logger.info(
            "WebSocket connected",
            extra={
                "connection_id": connection.connection_id,
                "user_id": connection.user_id,
                "total_connections": len(self.connections)
            }
        )
        return connection

    async def disconnect(self, connection: Connection) -> None:
        """
        Forget a connection: leave its rooms, drop its presence entry and
        broadcast the resulting online list.
        """
        if self.connections.pop(connection.connection_id, None) is None:
            return

        rooms = self.rooms.drop_connection(connection.connection_id)

        logger.info(
            "WebSocket disconnected",
            extra={
                "connection_id": connection.connection_id,
                "user_id": connection.identity,
                "rooms": rooms,
                "total_connections": len(self.connections)
            }
        )

        async with self._presence_broadcast_lock:
            online = await self.presence.remove_by_connection(connection.connection_id)
            await self.broadcast_all(UPDATE_ONLINE_USERS, online)

    # =========================================================================
    # Outbound
    # =========================================================================

    async def send(self, connection: Connection, event: str, data: Any) -> bool:
        """Send one frame to one connection; False if the socket is gone."""
        frame = OutboundFrame(type=event, data=data).model_dump(mode="json")
        try:
            await connection.websocket.send_json(frame)
            return True
        except Exception as e:
            # The receive loop notices the closed socket and cleans up
            logger.warning(
                f"Failed to send to WebSocket: {str(e)}",
                extra={"connection_id": connection.connection_id, "event_type": event}
            )
            return False

    async def broadcast_all(self, event: str, data: Any) -> int:
        """Send a frame to every live connection."""
        sent_count = 0
        for connection in list(self.connections.values()):
            if await self.send(connection, event, data):
                sent_count += 1

        logger.debug(f"Broadcast {event}", extra={"recipients": sent_count})
        return sent_count

    async def emit_to_room(
        self,
        room: str,
        event: str,
        data: Any,
        exclude: Optional[str] = None,
    ) -> int:
        """
        Send a frame to every member of ``room`` except connection ``exclude``.

        Returns:
            Number of connections that received the frame
        """
        sent_count = 0
        for connection_id in self.rooms.members(room):
            if connection_id == exclude:
                continue
            connection = self.connections.get(connection_id)
            if connection is None:
                continue
            if await self.send(connection, event, data):
                sent_count += 1

        logger.debug(
            f"Emitted {event} to room",
            extra={"room": room, "recipients": sent_count, "excluded": exclude}
        )
        return sent_count

    async def publish_notification(self, recipient: str, notification: Dict[str, Any]) -> int:
        """Deliver ``new-notification`` to every connection of ``recipient``."""
        return await self.emit_to_room(personal_room(recipient), NEW_NOTIFICATION, notification)

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def dispatch(self, connection: Connection, raw: str) -> None:
        """
        Validate one inbound frame and run its handler.

        Any failure is logged and answered with an error frame to the sender
        only. Nothing here closes the connection.
        """
        event_type = None
        try:
            event = parse_inbound(raw)
            event_type = event.type
            await self._handlers[event_type](connection, event.data)

        except GatewayError as e:
            logger.warning(
                f"Rejected event: {e.message}",
                extra={"connection_id": connection.connection_id, "event_type": e.event or event_type}
            )
            await self.send_error(connection, e.event or event_type, e.message)

        except Exception as e:
            logger.error(
                f"Error handling WebSocket event: {str(e)}",
                extra={"connection_id": connection.connection_id, "event_type": event_type},
                exc_info=True
            )
            await self.send_error(connection, event_type, "Internal error processing event")

    async def send_error(self, connection: Connection, event: Optional[str], message: str) -> None:
        await self.send(connection, ERROR, ErrorAck(event=event, message=message).model_dump())

    # =========================================================================
    # Handlers
    # =========================================================================

    async def _on_user_online(self, connection: Connection, user_id: str) -> None:
        connection.announced_user_id = user_id
        self.rooms.join(connection.connection_id, personal_room(user_id))

        async with self._presence_broadcast_lock:
            online = await self.presence.set_online(user_id, connection.connection_id)
            logger.info(
                "User online",
                extra={"user_id": user_id, "connection_id": connection.connection_id, "online": len(online)}
            )
            await self.broadcast_all(UPDATE_ONLINE_USERS, online)

    async def _on_join_room(self, connection: Connection, payload) -> None:
        if self.room_join_requires_participant:
            participants = parse_conversation_key(payload.conversationId, self.separator)
            if connection.identity not in participants:
                raise RoomAccessDenied(
                    f"Not a participant of conversation {payload.conversationId}",
                    event=JOIN_ROOM,
                )

        self.rooms.join(connection.connection_id, conversation_room(payload.conversationId, self.separator))

    async def _on_leave_room(self, connection: Connection, payload) -> None:
        self.rooms.leave(connection.connection_id, conversation_room(payload.conversationId, self.separator))

    async def _on_send_message(self, connection: Connection, payload) -> None:
        await self.ingestion.ingest(payload.conversationId, payload.message)

        # The sender renders its own message from this broadcast
        await self.emit_to_room(
            conversation_room(payload.conversationId, self.separator),
            RECEIVE_MESSAGE,
            payload.message.model_dump(),
        )

    async def _on_typing(self, connection: Connection, payload) -> None:
        await self.emit_to_room(
            conversation_room(payload.conversationId, self.separator),
            USER_TYPING,
            {"username": payload.username},
            exclude=connection.connection_id,
        )

    async def _on_stop_typing(self, connection: Connection, payload) -> None:
        await self.emit_to_room(
            conversation_room(payload.conversationId, self.separator),
            USER_STOP_TYPING,
            {"username": payload.username},
            exclude=connection.connection_id,
        )

    # =========================================================================
    # Shutdown / Stats
    # =========================================================================

    async def close_all(self) -> None:
        """
        Close all active WebSocket connections gracefully.

        Used during application shutdown.
        """
        for connection in list(self.connections.values()):
            try:
                await connection.websocket.close(code=status.WS_1001_GOING_AWAY, reason="Server shutdown")
            except Exception as e:
                logger.warning(f"Error closing WebSocket: {str(e)}")

            # The endpoint's own disconnect is a no-op once the connection is gone
            self.connections.pop(connection.connection_id, None)
            self.rooms.drop_connection(connection.connection_id)
            await self.presence.remove_by_connection(connection.connection_id)

        logger.info("All WebSocket connections closed")

    def stats(self) -> Dict[str, int]:
        return {
            "active_connections": len(self.connections),
            "active_rooms": len(self.rooms),
            "online_users": len(self.presence),
        }


@realtime_router.websocket("/ws")
async def websocket_endpoint(
        websocket: WebSocket,
        user_id: Optional[str] = Query(None, alias="userId"),
):
    """
    WebSocket endpoint for the realtime channel.

    Handshake:
        - Optional ``userId`` query parameter: /realtime/ws?userId=alice
    """
    gateway: RealtimeGateway = websocket.app.state.gateway
    connection = await gateway.connect(websocket, user_id)

    try:
        # One event at a time per connection
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(
                    code=message.get("code", status.WS_1000_NORMAL_CLOSURE),
                    reason=message.get("reason"),
                )

            # Binary frames carry the same JSON envelope as text frames
            text = message.get("text")
            if text is None:
                try:
                    text = (message.get("bytes") or b"").decode("utf-8")
                except UnicodeDecodeError:
                    await gateway.send_error(connection, None, "Binary frames must be UTF-8 encoded JSON")
                    continue

            await gateway.dispatch(connection, text)

    except WebSocketDisconnect:
        logger.info("WebSocket disconnected by client", extra={"connection_id": connection.connection_id})

    except Exception as e:
        logger.error(f"WebSocket error: {str(e)}", exc_info=True)

    finally:
        await gateway.disconnect(connection)


@realtime_router.get("/status")
async def realtime_status(request: Request):
    """
    Get real-time service status and statistics.

    Returns:
        dict: Connection statistics
    """
    gateway: RealtimeGateway = request.app.state.gateway
    return {
        "status": "ok",
        **gateway.stats(),
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


__all__ = ["realtime_router", "RealtimeGateway", "Connection"]
