"""
Message Routes

- POST /api/v1/message:                         Send a message to a conversation
- POST /api/v1/message/{conversation_id}/read:  Mark incoming messages read
"""

import logging
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, status

from ..auth.session import get_current_user
from ..dependencies import get_conversation_store
from ..models import MessageOut, SendMessageRequest
from ..storage.repository import ConversationStore

logger = logging.getLogger("socialhub.api.messages")

message_router = APIRouter(prefix="/api/v1/message", tags=["messages"])


async def _require_participant(store: ConversationStore, conversation_id: str, user_id: str) -> None:
    # Unknown conversations and foreign ones look the same to the caller
    if not await store.is_participant(conversation_id, user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found"
        )


@message_router.post("", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
async def send_message(
    body: SendMessageRequest,
    user_id: str = Depends(get_current_user),
    store: ConversationStore = Depends(get_conversation_store),
) -> MessageOut:
    await _require_participant(store, body.conversationId, user_id)

    message = await store.append_message(body.conversationId, sender=user_id, content=body.content)

    logger.info(
        "Stored message via HTTP",
        extra={"conversation_id": body.conversationId, "message_id": message.id}
    )
    return MessageOut.from_entity(message)


@message_router.post("/{conversation_id}/read")
async def mark_messages_read(
    conversation_id: str,
    user_id: str = Depends(get_current_user),
    store: ConversationStore = Depends(get_conversation_store),
) -> Dict[str, object]:
    await _require_participant(store, conversation_id, user_id)

    updated = await store.mark_read(conversation_id, reader=user_id)
    return {"message": "Messages marked as read", "updated": updated}
