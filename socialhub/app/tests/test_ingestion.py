"""
Unit Tests for Message Ingestion
================================

Tests for socialhub/app/realtime/ingestion.py

Test Coverage:
--------------
1. First message creates the conversation, later ones reuse it
2. Key order does not matter (alice_bob == bob_alice)
3. Concurrent first messages for a new pair create one conversation
4. Keys naming more than two participants resolve to a group
5. Keys naming fewer than two participants are rejected
6. Storage failures surface as PersistenceError
7. KeyedLocks releases its per-key locks

Run tests:
----------
    pytest socialhub/app/tests/test_ingestion.py -v
"""

import asyncio

import pytest
from sqlalchemy.exc import OperationalError

from socialhub.app.errors import EventValidationError, PersistenceError
from socialhub.app.models import ChatMessage
from socialhub.app.realtime.ingestion import KeyedLocks, MessageIngestionHandler


@pytest.fixture
def handler(conversation_store):
    return MessageIngestionHandler(conversation_store)


def chat(sender: str, content: str) -> ChatMessage:
    return ChatMessage(sender=sender, content=content)


# ============================================================================
# Find-or-create
# ============================================================================

async def test_first_message_creates_conversation(handler, conversation_store):
    result = await handler.ingest("alice_bob", chat("alice", "hi"))

    assert result.created_conversation is True

    conversation = await conversation_store.find_direct("alice", "bob")
    assert conversation.id == result.conversation_id
    assert conversation.last_message_id == result.message_id


async def test_second_message_reuses_conversation(handler, conversation_store):
    first = await handler.ingest("alice_bob", chat("alice", "hi"))
    second = await handler.ingest("bob_alice", chat("bob", "hello"))

    assert second.created_conversation is False
    assert second.conversation_id == first.conversation_id

    messages = await conversation_store.messages(first.conversation_id)
    assert [(m.sender, m.content) for m in messages] == [("alice", "hi"), ("bob", "hello")]


async def test_concurrent_first_messages_create_one_conversation(handler, conversation_store):
    results = await asyncio.gather(
        handler.ingest("alice_bob", chat("alice", "one")),
        handler.ingest("bob_alice", chat("bob", "two")),
        handler.ingest("alice_bob", chat("alice", "three")),
    )

    assert len({r.conversation_id for r in results}) == 1
    assert sum(r.created_conversation for r in results) == 1

    messages = await conversation_store.messages(results[0].conversation_id)
    assert sorted(m.content for m in messages) == ["one", "three", "two"]
    assert len(await conversation_store.list_for_user("alice")) == 1


async def test_group_key_resolves_to_group(handler, conversation_store):
    first = await handler.ingest("alice_bob_carol", chat("alice", "hi all"))
    second = await handler.ingest("carol_alice_bob", chat("carol", "hey"))

    assert second.conversation_id == first.conversation_id

    conversation = await conversation_store.get(first.conversation_id)
    assert conversation.is_group is True
    assert await conversation_store.find_direct("alice", "bob") is None


async def test_sender_outside_key_is_still_stored(handler, conversation_store):
    result = await handler.ingest("alice_bob", chat("mallory", "hi"))

    messages = await conversation_store.messages(result.conversation_id)
    assert messages[0].sender == "mallory"


# ============================================================================
# Rejections
# ============================================================================

@pytest.mark.parametrize("key", ["alice", "alice_alice", "_alice_"])
async def test_single_participant_key_rejected(handler, conversation_store, key):
    with pytest.raises(EventValidationError) as exc_info:
        await handler.ingest(key, chat("alice", "hi"))

    assert exc_info.value.event == "send-message"
    assert await conversation_store.list_for_user("alice") == []


async def test_storage_failure_raises_persistence_error(handler, conversation_store, monkeypatch):
    async def broken_append(*args, **kwargs):
        raise OperationalError("INSERT INTO message", {}, Exception("disk I/O error"))

    monkeypatch.setattr(conversation_store, "append_message", broken_append)

    with pytest.raises(PersistenceError) as exc_info:
        await handler.ingest("alice_bob", chat("alice", "hi"))

    assert exc_info.value.event == "send-message"
    assert exc_info.value.message == "Failed to store message"


# ============================================================================
# KeyedLocks
# ============================================================================

async def test_keyed_locks_serialize_same_key():
    locks = KeyedLocks()
    order = []

    async def worker(name):
        async with locks.hold("alice|bob"):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    await asyncio.gather(worker("a"), worker("b"))

    assert order == ["a-in", "a-out", "b-in", "b-out"]
    assert len(locks) == 0
