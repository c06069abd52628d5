"""
ORM Entities
============

Durable records owned by the persistence gateway.

Key features
~~~~~~~~~~~~
- ``Conversation`` stores a canonical ``participant_key`` (sorted participant
  ids) for exact-set lookups. Direct conversations also set ``direct_key``,
  which is unique, so one unordered pair can never own two direct
  conversations. Group conversations leave it NULL.
- ``ConversationParticipant`` keeps participant order as supplied.
- A conversation's message list is the set of ``Message`` rows pointing at it,
  ordered by id. Storing a message and linking it to its conversation is
  therefore one insert.
- ``Notification`` rows are produced by the post/friend services and read by
  their recipient.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base

PARTICIPANT_KEY_DELIMITER = "|"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def canonical_participant_key(participants: List[str]) -> str:
    """Order-independent key for a participant set."""
    return PARTICIPANT_KEY_DELIMITER.join(sorted(set(participants)))


class Conversation(Base):
    """
    ORM model for the ``conversation`` table.

    Attributes
    ----------
    id : str
        Primary key (uuid4 hex).
    participant_key : str
        Sorted participant ids joined by ``|``; indexed for exact-set lookup.
    direct_key : str | None
        Same value as ``participant_key`` for direct conversations, NULL for
        groups. Unique.
    is_group : bool
    group_name, group_admin : str | None
    last_message_id : int | None
        Pointer to the most recent message.
    """

    __tablename__ = "conversation"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    participant_key: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    direct_key: Mapped[Optional[str]] = mapped_column(Text, nullable=True, unique=True)
    is_group: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    group_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    group_admin: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    last_message_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    participants: Mapped[List["ConversationParticipant"]] = relationship(
        back_populates="conversation",
        order_by="ConversationParticipant.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def participant_ids(self) -> List[str]:
        return [p.user_id for p in self.participants]

    def __str__(self) -> str:
        return f"Conversation: id:{self.id}, participants:{self.participant_ids}, group:{self.is_group}"


class ConversationParticipant(Base):
    __tablename__ = "conversation_participant"

    conversation_id: Mapped[str] = mapped_column(
        ForeignKey("conversation.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(String(128), primary_key=True, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    conversation: Mapped[Conversation] = relationship(back_populates="participants")


class Message(Base):
    """
    ORM model for the ``message`` table.

    Immutable once created except for ``read``.
    """

    __tablename__ = "message"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    conversation_id: Mapped[str] = mapped_column(
        ForeignKey("conversation.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sender: Mapped[str] = mapped_column(String(128), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Notification(Base):
    __tablename__ = "notification"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    recipient: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    sender: Mapped[str] = mapped_column(String(128), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    post_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
