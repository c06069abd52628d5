"""
Conversation Routes
===================

Request-driven conversation management. Direct conversations are resolved by
the exact unordered participant pair, the same rule the realtime
``send-message`` path uses, so both paths land in one record per pair.

Endpoints:
----------
- POST /create-conversation: Find or create the direct conversation with a user
- GET  /get-all:             Caller's conversations, most recent first
- POST /create-group:        Create a group conversation
- GET  /get/{friend_id}:     Direct conversation with a user, including messages
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from ..auth.session import get_current_user
from ..dependencies import get_conversation_store
from ..models import ConversationOut, CreateConversationRequest, CreateGroupRequest
from ..storage.repository import ConversationStore

logger = logging.getLogger("socialhub.api.conversations")

conversation_router = APIRouter(prefix="/api/v1/conversation", tags=["conversations"])


@conversation_router.post("/create-conversation", response_model=ConversationOut)
async def create_conversation(
    body: CreateConversationRequest,
    response: Response,
    user_id: str = Depends(get_current_user),
    store: ConversationStore = Depends(get_conversation_store),
) -> ConversationOut:
    """
    Return the existing direct conversation with ``participantId`` (200), or
    create it (201).
    """
    if body.participantId == user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot start a conversation with yourself"
        )

    conversation, created = await store.get_or_create([user_id, body.participantId])
    if created:
        response.status_code = status.HTTP_201_CREATED

    return ConversationOut.from_entity(conversation)


@conversation_router.get("/get-all", response_model=List[ConversationOut])
async def get_all_conversations(
    user_id: str = Depends(get_current_user),
    store: ConversationStore = Depends(get_conversation_store),
) -> List[ConversationOut]:
    rows = await store.list_for_user(user_id)
    return [ConversationOut.from_entity(conversation, last_message) for conversation, last_message in rows]


@conversation_router.post(
    "/create-group",
    response_model=ConversationOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_group(
    body: CreateGroupRequest,
    user_id: str = Depends(get_current_user),
    store: ConversationStore = Depends(get_conversation_store),
) -> ConversationOut:
    """Create a group; the caller is added if missing and becomes admin."""
    conversation = await store.create_group(body.name, admin=user_id, participants=body.participants)

    logger.info(
        "Created group conversation",
        extra={"conversation_id": conversation.id, "admin": user_id}
    )
    return ConversationOut.from_entity(conversation)


@conversation_router.get("/get/{friend_id}", response_model=ConversationOut)
async def get_conversation(
    friend_id: str,
    user_id: str = Depends(get_current_user),
    store: ConversationStore = Depends(get_conversation_store),
) -> ConversationOut:
    conversation = await store.find_direct(user_id, friend_id)
    if conversation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found"
        )

    messages = await store.messages(conversation.id)
    last_message = messages[-1] if messages else None
    return ConversationOut.from_entity(conversation, last_message=last_message, messages=messages)
