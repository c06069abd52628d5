"""
Data Models Module

This module defines Pydantic models for request/response validation
and data serialization throughout the gateway.

Models are organized by functional area:
- Realtime inbound events (one model per event name, discriminated on ``type``)
- Realtime outbound frames
- Conversation/message/notification response models
- HTTP request bodies
"""

import json
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .errors import EventValidationError


# ============================================================================
# Realtime Event Names
# ============================================================================

USER_ONLINE = "user-online"
JOIN_ROOM = "join-room"
LEAVE_ROOM = "leave-room"
SEND_MESSAGE = "send-message"
TYPING = "typing"
STOP_TYPING = "stop-typing"

UPDATE_ONLINE_USERS = "update-online-users"
RECEIVE_MESSAGE = "receive-message"
USER_TYPING = "user-typing"
USER_STOP_TYPING = "user-stop-typing"
NEW_NOTIFICATION = "new-notification"
ERROR = "error"

INBOUND_EVENTS = (USER_ONLINE, JOIN_ROOM, LEAVE_ROOM, SEND_MESSAGE, TYPING, STOP_TYPING)


# ============================================================================
# Realtime Inbound Payloads
# ============================================================================

NonEmptyStr = Annotated[str, Field(min_length=1)]


class RoomPayload(BaseModel):
    """Payload of join-room / leave-room."""
    conversationId: NonEmptyStr


class TypingPayload(RoomPayload):
    """Payload of typing / stop-typing."""
    username: NonEmptyStr


class ChatMessage(BaseModel):
    """
    Message object carried by send-message.

    Only ``sender`` and ``content`` are interpreted; any other fields are
    kept and relayed unchanged in the receive-message broadcast.
    """
    model_config = ConfigDict(extra="allow")

    sender: NonEmptyStr
    content: NonEmptyStr


class SendMessagePayload(BaseModel):
    conversationId: NonEmptyStr
    message: ChatMessage


class UserOnlineEvent(BaseModel):
    type: Literal["user-online"]
    data: NonEmptyStr


class JoinRoomEvent(BaseModel):
    type: Literal["join-room"]
    data: RoomPayload


class LeaveRoomEvent(BaseModel):
    type: Literal["leave-room"]
    data: RoomPayload


class SendMessageEvent(BaseModel):
    type: Literal["send-message"]
    data: SendMessagePayload


class TypingEvent(BaseModel):
    type: Literal["typing"]
    data: TypingPayload


class StopTypingEvent(BaseModel):
    type: Literal["stop-typing"]
    data: TypingPayload


InboundEvent = Annotated[
    Union[
        UserOnlineEvent,
        JoinRoomEvent,
        LeaveRoomEvent,
        SendMessageEvent,
        TypingEvent,
        StopTypingEvent,
    ],
    Field(discriminator="type"),
]

_inbound_adapter = TypeAdapter(InboundEvent)


def parse_inbound(raw: str) -> BaseModel:
    """
    Decode one inbound text frame into its event model.

    Raises:
        EventValidationError: Invalid JSON, unknown event type, or a payload
            missing required fields.
    """
    try:
        frame = json.loads(raw)
    except json.JSONDecodeError:
        raise EventValidationError("Invalid JSON")

    if not isinstance(frame, dict) or not isinstance(frame.get("type"), str):
        raise EventValidationError("Frame must be an object with a string 'type'")

    event_type = frame["type"]
    if event_type not in INBOUND_EVENTS:
        raise EventValidationError(f"Unknown event type: {event_type}", event=event_type)

    try:
        return _inbound_adapter.validate_python(frame)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"] if part != event_type)
        raise EventValidationError(f"{location}: {first['msg']}", event=event_type) from exc


# ============================================================================
# Realtime Outbound Frames
# ============================================================================

class OutboundFrame(BaseModel):
    """Server → client envelope."""
    type: str
    data: Any = None


class ErrorAck(BaseModel):
    """Payload of the error frame sent back to the originating connection."""
    event: Optional[str] = Field(None, description="Inbound event that failed, if known")
    message: str


# ============================================================================
# Conversation / Message Models
# ============================================================================

class MessageOut(BaseModel):
    id: int
    conversation: str
    sender: str
    content: str
    read: bool
    createdAt: datetime

    @classmethod
    def from_entity(cls, message) -> "MessageOut":
        return cls(
            id=message.id,
            conversation=message.conversation_id,
            sender=message.sender,
            content=message.content,
            read=message.read,
            createdAt=message.created_at,
        )


class ConversationOut(BaseModel):
    id: str
    participants: List[str]
    isGroup: bool
    groupName: Optional[str] = None
    groupAdmin: Optional[str] = None
    lastMessage: Optional[MessageOut] = None
    messages: Optional[List[MessageOut]] = None
    createdAt: datetime
    updatedAt: datetime

    @classmethod
    def from_entity(cls, conversation, last_message=None, messages=None) -> "ConversationOut":
        return cls(
            id=conversation.id,
            participants=conversation.participant_ids,
            isGroup=conversation.is_group,
            groupName=conversation.group_name,
            groupAdmin=conversation.group_admin,
            lastMessage=MessageOut.from_entity(last_message) if last_message is not None else None,
            messages=[MessageOut.from_entity(m) for m in messages] if messages is not None else None,
            createdAt=conversation.created_at,
            updatedAt=conversation.updated_at,
        )


class NotificationOut(BaseModel):
    id: int
    recipient: str
    sender: str
    type: str
    post: Optional[str] = None
    isRead: bool
    createdAt: datetime

    @classmethod
    def from_entity(cls, notification) -> "NotificationOut":
        return cls(
            id=notification.id,
            recipient=notification.recipient,
            sender=notification.sender,
            type=notification.type,
            post=notification.post_id,
            isRead=notification.is_read,
            createdAt=notification.created_at,
        )


# ============================================================================
# HTTP Request Models
# ============================================================================

class CreateConversationRequest(BaseModel):
    participantId: NonEmptyStr


class CreateGroupRequest(BaseModel):
    name: NonEmptyStr
    participants: List[NonEmptyStr] = Field(..., min_length=1)


class SendMessageRequest(BaseModel):
    conversationId: NonEmptyStr
    content: NonEmptyStr


class NotificationCreate(BaseModel):
    """Internal notification payload published by the post/friend services."""
    recipient: NonEmptyStr
    sender: NonEmptyStr
    type: Literal["like", "comment", "friend_request"]
    post: Optional[str] = None


# ============================================================================
# Health Check / Error Models
# ============================================================================

class HealthResponse(BaseModel):
    status: str
    service: str
    version: str


class ErrorResponse(BaseModel):
    """Standardized error response model."""
    error: str = Field(..., description="Error type or code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
