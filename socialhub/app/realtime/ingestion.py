"""
Message Ingestion

Turns a ``send-message`` event into durable records:

1. Split the composite conversation key into participant ids.
2. Find the conversation with exactly that participant set, or create it.
3. Store the message and link it to the conversation in one transaction.

Find-or-create runs under a per-participant-set lock, and the storage layer
enforces uniqueness of direct conversations, so two first messages racing for
the same pair end up in one conversation.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Dict

from sqlalchemy.exc import SQLAlchemyError

from ..errors import EventValidationError, PersistenceError
from ..models import SEND_MESSAGE, ChatMessage
from ..storage.entities import canonical_participant_key
from ..storage.repository import ConversationStore
from .rooms import parse_conversation_key

logger = logging.getLogger("socialhub.realtime.ingestion")


class KeyedLocks:
    """
    One asyncio.Lock per key, created on demand and discarded once nobody
    holds or waits for it.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._holders: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._holders[key] = self._holders.get(key, 0) + 1

        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if not self._holders[key]:
                del self._holders[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


@dataclass
class IngestResult:
    conversation_id: str
    message_id: int
    created_conversation: bool


class MessageIngestionHandler:
    """
    Persists realtime messages through the conversation store.

    Args:
        store: Conversation persistence gateway
        separator: Separator used in composite conversation keys
    """

    def __init__(self, store: ConversationStore, separator: str = "_"):
        self._store = store
        self._separator = separator
        self._locks = KeyedLocks()

    async def ingest(self, conversation_key: str, message: ChatMessage) -> IngestResult:
        """
        Store ``message`` in the conversation named by ``conversation_key``.

        Raises:
            EventValidationError: The key names fewer than two participants.
            PersistenceError: A storage call failed; nothing is retried.
        """
        participants = parse_conversation_key(conversation_key, self._separator)
        if len(participants) < 2:
            raise EventValidationError(
                f"conversationId must name at least two participants: {conversation_key!r}",
                event=SEND_MESSAGE,
            )

        if message.sender not in participants:
            logger.warning(
                "Message sender is not a participant of the conversation key",
                extra={"sender": message.sender, "conversation_key": conversation_key}
            )

        try:
            async with self._locks.hold(canonical_participant_key(participants)):
                conversation, created = await self._store.get_or_create(participants)

            stored = await self._store.append_message(
                conversation.id,
                sender=message.sender,
                content=message.content,
            )
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to persist message: {str(e)}",
                extra={"conversation_key": conversation_key, "sender": message.sender},
                exc_info=True
            )
            raise PersistenceError("Failed to store message", event=SEND_MESSAGE) from e

        logger.info(
            "Stored message",
            extra={
                "conversation_id": conversation.id,
                "message_id": stored.id,
                "created_conversation": created,
            }
        )

        return IngestResult(
            conversation_id=conversation.id,
            message_id=stored.id,
            created_conversation=created,
        )
