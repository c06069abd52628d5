"""
Room Membership

Named broadcast groups and the pure functions that name them.

Two kinds of room exist:
- personal rooms, addressing every connection of one user
- conversation rooms, addressing every connection that joined a conversation

Conversation keys are composite participant keys (``alice_bob``). Parsing a
key and naming its room are kept separate from the storage lookup that maps
the same participants to a persisted conversation.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Set

from ..errors import EventValidationError

logger = logging.getLogger("socialhub.realtime.rooms")

PERSONAL_ROOM_PREFIX = "user:"
CONVERSATION_ROOM_PREFIX = "conversation:"


def parse_conversation_key(conversation_key: str, separator: str = "_") -> List[str]:
    """
    Split a composite conversation key into participant ids.

    Blank parts are dropped and duplicates removed, keeping first-seen order.

    Raises:
        EventValidationError: If no participant id remains.
    """
    participants: List[str] = []
    for part in conversation_key.split(separator):
        part = part.strip()
        if part and part not in participants:
            participants.append(part)

    if not participants:
        raise EventValidationError(f"Invalid conversation key: {conversation_key!r}")

    return participants


def personal_room(user_id: str) -> str:
    return f"{PERSONAL_ROOM_PREFIX}{user_id}"


def conversation_room(conversation_key: str, separator: str = "_") -> str:
    """
    Room name for a conversation key.

    Participant order does not matter: ``alice_bob`` and ``bob_alice`` name
    the same room.
    """
    participants = sorted(parse_conversation_key(conversation_key, separator))
    return f"{CONVERSATION_ROOM_PREFIX}{separator.join(participants)}"


class RoomRegistry:
    """
    Connection ↔ room membership for the lifetime of each connection.

    Join and leave are idempotent; empty rooms are removed. No method awaits,
    so each call is atomic on the event loop.
    """

    def __init__(self):
        self._members: Dict[str, Set[str]] = defaultdict(set)
        self._rooms_by_connection: Dict[str, Set[str]] = defaultdict(set)

    def join(self, connection_id: str, room: str) -> None:
        if not room:
            raise EventValidationError("Room name must not be empty")

        self._members[room].add(connection_id)
        self._rooms_by_connection[connection_id].add(room)

        logger.debug(
            "Connection joined room",
            extra={"connection_id": connection_id, "room": room, "room_size": len(self._members[room])}
        )

    def leave(self, connection_id: str, room: str) -> None:
        if not room:
            raise EventValidationError("Room name must not be empty")

        members = self._members.get(room)
        if members is not None:
            members.discard(connection_id)
            if not members:
                del self._members[room]

        rooms = self._rooms_by_connection.get(connection_id)
        if rooms is not None:
            rooms.discard(room)
            if not rooms:
                del self._rooms_by_connection[connection_id]

    def drop_connection(self, connection_id: str) -> List[str]:
        """Remove a connection from every room it joined; returns those rooms."""
        rooms = list(self._rooms_by_connection.get(connection_id, ()))
        for room in rooms:
            self.leave(connection_id, room)
        return rooms

    def members(self, room: str) -> Set[str]:
        # Copy so callers can iterate while membership changes
        return set(self._members.get(room, ()))

    def rooms_of(self, connection_id: str) -> Set[str]:
        return set(self._rooms_by_connection.get(connection_id, ()))

    def __len__(self) -> int:
        return len(self._members)
