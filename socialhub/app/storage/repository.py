"""
Conversation and notification stores.

Provides the data-access layer the realtime gateway and HTTP routes call.
Each public method opens its own ``AsyncSession`` and commits before
returning, so a caller never holds a session across an await on the socket.

Error Handling
--------------
- SQLAlchemy errors propagate to the caller unchanged; callers decide whether
  to log-and-drop (realtime) or map to an HTTP status.
- ``get_or_create`` absorbs the ``IntegrityError`` raised when a concurrent
  writer created the same direct conversation first and returns the winner.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from ..errors import ConversationNotFound, NotAuthorized, NotificationNotFound
from .database import Database
from .entities import (
    Conversation,
    ConversationParticipant,
    Message,
    Notification,
    canonical_participant_key,
    utcnow,
)

logger = logging.getLogger("socialhub.storage.repository")


def unique_participants(participants: Sequence[str]) -> List[str]:
    """Drop duplicates while keeping first-seen order."""
    seen = set()
    result = []
    for user_id in participants:
        if user_id not in seen:
            seen.add(user_id)
            result.append(user_id)
    return result


class ConversationStore:
    """
    Persistence gateway for conversations and messages.

    Direct conversations are matched on the exact unordered participant pair
    both here and in the realtime ingestion path.
    """

    def __init__(self, database: Database):
        self._db = database

    # =========================================================================
    # Lookups
    # =========================================================================

    async def get(self, conversation_id: str) -> Optional[Conversation]:
        async with self._db.sessionmaker() as session:
            return await session.get(Conversation, conversation_id)

    async def find_direct(self, user_a: str, user_b: str) -> Optional[Conversation]:
        """Return the direct conversation for the unordered pair, if any."""
        key = canonical_participant_key([user_a, user_b])
        async with self._db.sessionmaker() as session:
            stmt = select(Conversation).where(Conversation.direct_key == key)
            result = await session.execute(stmt)
            return result.scalars().first()

    async def find_by_participants(self, participants: Sequence[str]) -> Optional[Conversation]:
        """
        Find the conversation whose participant set equals ``participants``.

        Two participants resolve to the direct conversation for that pair.
        Larger sets resolve to the earliest conversation with exactly that
        participant set.
        """
        members = unique_participants(participants)
        if len(members) == 2:
            return await self.find_direct(*members)

        key = canonical_participant_key(members)
        async with self._db.sessionmaker() as session:
            stmt = (
                select(Conversation)
                .where(Conversation.participant_key == key)
                .order_by(Conversation.created_at, Conversation.id)
                .limit(1)
            )
            result = await session.execute(stmt)
            return result.scalars().first()

    async def list_for_user(self, user_id: str) -> List[Tuple[Conversation, Optional[Message]]]:
        """
        List a user's conversations, most recently updated first, each paired
        with its last message.
        """
        async with self._db.sessionmaker() as session:
            stmt = (
                select(Conversation)
                .join(ConversationParticipant)
                .where(ConversationParticipant.user_id == user_id)
                .order_by(Conversation.updated_at.desc(), Conversation.id)
            )
            conversations = list((await session.execute(stmt)).scalars().all())

            last_ids = [c.last_message_id for c in conversations if c.last_message_id is not None]
            last_messages: Dict[int, Message] = {}
            if last_ids:
                rows = await session.execute(select(Message).where(Message.id.in_(last_ids)))
                last_messages = {m.id: m for m in rows.scalars().all()}

        return [(c, last_messages.get(c.last_message_id)) for c in conversations]

    async def messages(self, conversation_id: str) -> List[Message]:
        async with self._db.sessionmaker() as session:
            stmt = (
                select(Message)
                .where(Message.conversation_id == conversation_id)
                .order_by(Message.id)
            )
            return list((await session.execute(stmt)).scalars().all())

    async def is_participant(self, conversation_id: str, user_id: str) -> bool:
        async with self._db.sessionmaker() as session:
            row = await session.get(ConversationParticipant, (conversation_id, user_id))
            return row is not None

    # =========================================================================
    # Writes
    # =========================================================================

    async def get_or_create(self, participants: Sequence[str]) -> Tuple[Conversation, bool]:
        """
        Idempotent find-or-create keyed on the participant set.

        Returns:
            (conversation, created)
        """
        members = unique_participants(participants)
        existing = await self.find_by_participants(members)
        if existing is not None:
            return existing, False

        try:
            conversation = await self._create(members, is_group=len(members) > 2)
        except IntegrityError:
            # Lost a creation race for the same pair
            existing = await self.find_by_participants(members)
            if existing is None:
                raise
            logger.info(
                "Conversation created concurrently, reusing existing record",
                extra={"conversation_id": existing.id}
            )
            return existing, False

        return conversation, True

    async def create_group(self, name: str, admin: str, participants: Sequence[str]) -> Conversation:
        members = unique_participants(participants)
        if admin not in members:
            members.append(admin)
        return await self._create(members, is_group=True, group_name=name, group_admin=admin)

    async def _create(
        self,
        participants: List[str],
        is_group: bool,
        group_name: Optional[str] = None,
        group_admin: Optional[str] = None,
    ) -> Conversation:
        key = canonical_participant_key(participants)
        conversation = Conversation(
            participant_key=key,
            direct_key=None if is_group else key,
            is_group=is_group,
            group_name=group_name.strip() if group_name else None,
            group_admin=group_admin,
            participants=[
                ConversationParticipant(user_id=user_id, position=position)
                for position, user_id in enumerate(participants)
            ],
        )

        async with self._db.sessionmaker() as session:
            async with session.begin():
                session.add(conversation)

        logger.info(
            "Created conversation",
            extra={
                "conversation_id": conversation.id,
                "participants": participants,
                "is_group": is_group,
            }
        )
        return conversation

    async def append_message(self, conversation_id: str, sender: str, content: str) -> Message:
        """
        Store a message and link it to its conversation in one transaction.

        The message row, the conversation's ``last_message_id`` and its
        ``updated_at`` are committed together.

        Raises:
            ConversationNotFound: If the conversation does not exist.
        """
        async with self._db.sessionmaker() as session:
            async with session.begin():
                conversation = await session.get(Conversation, conversation_id)
                if conversation is None:
                    raise ConversationNotFound(f"Conversation {conversation_id} not found")

                message = Message(
                    conversation_id=conversation_id,
                    sender=sender,
                    content=content,
                )
                session.add(message)
                await session.flush()

                conversation.last_message_id = message.id
                conversation.updated_at = utcnow()

        return message

    async def mark_read(self, conversation_id: str, reader: str) -> int:
        """Mark every unread message not sent by ``reader`` as read."""
        async with self._db.sessionmaker() as session:
            async with session.begin():
                result = await session.execute(
                    update(Message)
                    .where(
                        Message.conversation_id == conversation_id,
                        Message.sender != reader,
                        Message.read.is_(False),
                    )
                    .values(read=True)
                )
        return result.rowcount or 0


class NotificationStore:
    """Persistence for notifications produced by the post and friend services."""

    def __init__(self, database: Database):
        self._db = database

    async def create(
        self,
        recipient: str,
        sender: str,
        type: str,
        post_id: Optional[str] = None,
    ) -> Notification:
        notification = Notification(
            recipient=recipient,
            sender=sender,
            type=type,
            post_id=post_id,
        )
        async with self._db.sessionmaker() as session:
            async with session.begin():
                session.add(notification)
        return notification

    async def list_for_user(self, user_id: str) -> List[Notification]:
        async with self._db.sessionmaker() as session:
            stmt = (
                select(Notification)
                .where(Notification.recipient == user_id)
                .order_by(Notification.created_at.desc(), Notification.id.desc())
            )
            return list((await session.execute(stmt)).scalars().all())

    async def mark_read(self, notification_id: int, user_id: str) -> Notification:
        """
        Raises:
            NotificationNotFound: Unknown id.
            NotAuthorized: The notification belongs to someone else.
        """
        async with self._db.sessionmaker() as session:
            async with session.begin():
                notification = await session.get(Notification, notification_id)
                if notification is None:
                    raise NotificationNotFound(f"Notification {notification_id} not found")
                if notification.recipient != user_id:
                    raise NotAuthorized("Not authorized.")
                notification.is_read = True
        return notification

    async def mark_all_read(self, user_id: str) -> int:
        async with self._db.sessionmaker() as session:
            async with session.begin():
                result = await session.execute(
                    update(Notification)
                    .where(Notification.recipient == user_id, Notification.is_read.is_(False))
                    .values(is_read=True)
                )
        return result.rowcount or 0
