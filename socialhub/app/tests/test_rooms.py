"""
Unit Tests for Room Membership
==============================

Tests for socialhub/app/realtime/rooms.py

Test Coverage:
--------------
1. Conversation key parsing (order kept, blanks and duplicates dropped)
2. Room naming is independent of participant order
3. join/leave are idempotent and empty rooms disappear
4. drop_connection removes a connection from every room

Run tests:
----------
    pytest socialhub/app/tests/test_rooms.py -v
"""

import pytest

from socialhub.app.errors import EventValidationError
from socialhub.app.realtime.rooms import (
    RoomRegistry,
    conversation_room,
    parse_conversation_key,
    personal_room,
)


# ============================================================================
# Key Parsing / Room Names
# ============================================================================

def test_parse_conversation_key_keeps_order():
    assert parse_conversation_key("bob_alice") == ["bob", "alice"]


def test_parse_conversation_key_drops_blanks_and_duplicates():
    assert parse_conversation_key("alice__bob_alice_") == ["alice", "bob"]


def test_parse_conversation_key_custom_separator():
    assert parse_conversation_key("alice:bob:carol", separator=":") == ["alice", "bob", "carol"]


@pytest.mark.parametrize("key", ["", "_", "__ _"])
def test_parse_conversation_key_rejects_empty(key):
    with pytest.raises(EventValidationError):
        parse_conversation_key(key)


def test_conversation_room_is_order_independent():
    assert conversation_room("alice_bob") == conversation_room("bob_alice")
    assert conversation_room("alice_bob") == "conversation:alice_bob"


def test_personal_room_name():
    assert personal_room("alice") == "user:alice"


# ============================================================================
# RoomRegistry
# ============================================================================

def test_join_is_idempotent():
    rooms = RoomRegistry()
    rooms.join("c1", "conversation:alice_bob")
    rooms.join("c1", "conversation:alice_bob")

    assert rooms.members("conversation:alice_bob") == {"c1"}
    assert len(rooms) == 1


def test_leave_is_idempotent_and_removes_empty_room():
    rooms = RoomRegistry()
    rooms.join("c1", "conversation:alice_bob")

    rooms.leave("c1", "conversation:alice_bob")
    rooms.leave("c1", "conversation:alice_bob")
    rooms.leave("c2", "conversation:unknown")

    assert rooms.members("conversation:alice_bob") == set()
    assert len(rooms) == 0


def test_empty_room_name_rejected():
    rooms = RoomRegistry()
    with pytest.raises(EventValidationError):
        rooms.join("c1", "")


def test_drop_connection_leaves_all_rooms():
    rooms = RoomRegistry()
    rooms.join("c1", "user:alice")
    rooms.join("c1", "conversation:alice_bob")
    rooms.join("c2", "conversation:alice_bob")

    left = rooms.drop_connection("c1")

    assert sorted(left) == ["conversation:alice_bob", "user:alice"]
    assert rooms.rooms_of("c1") == set()
    assert rooms.members("conversation:alice_bob") == {"c2"}
    assert rooms.members("user:alice") == set()


def test_members_returns_copy():
    rooms = RoomRegistry()
    rooms.join("c1", "user:alice")

    members = rooms.members("user:alice")
    rooms.leave("c1", "user:alice")

    assert members == {"c1"}
