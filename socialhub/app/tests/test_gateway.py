"""
Unit Tests for the Realtime Gateway
===================================

Tests for socialhub/app/realtime/ws.py, driven through in-process sockets
so send timing can be controlled.

Test Coverage:
--------------
1. Concurrent presence changes reach every socket in order, even when one
   socket is slow to accept frames
2. Concurrent disconnects leave every socket with the final online list
3. close_all closes sockets with 1001 and clears rooms and presence

Run tests:
----------
    pytest socialhub/app/tests/test_gateway.py -v
"""

import asyncio
import json

import pytest
from fastapi import status

from socialhub.app.realtime.ws import RealtimeGateway


class FakeWebSocket:
    """Records outbound frames; the next send can be held back."""

    def __init__(self, first_send_delay: float = 0.0):
        self.frames = []
        self.close_code = None
        self.next_send_delay = first_send_delay

    async def accept(self):
        pass

    async def send_json(self, frame):
        if self.next_send_delay:
            delay, self.next_send_delay = self.next_send_delay, 0.0
            await asyncio.sleep(delay)
        self.frames.append(frame)

    async def close(self, code=1000, reason=None):
        self.close_code = code


@pytest.fixture
def gateway():
    # Presence and rooms only; nothing here sends messages
    return RealtimeGateway(ingestion=None)


def user_online(user_id):
    return json.dumps({"type": "user-online", "data": user_id})


def online_lists(ws):
    return [f["data"] for f in ws.frames if f["type"] == "update-online-users"]


# ============================================================================
# Presence broadcast ordering
# ============================================================================

async def test_concurrent_announcements_arrive_in_order(gateway):
    slow_ws, fast_ws = FakeWebSocket(first_send_delay=0.05), FakeWebSocket()
    alice = await gateway.connect(slow_ws)
    bob = await gateway.connect(fast_ws)

    await asyncio.gather(
        gateway.dispatch(alice, user_online("alice")),
        gateway.dispatch(bob, user_online("bob")),
    )

    assert online_lists(slow_ws) == [["alice"], ["alice", "bob"]]
    assert online_lists(fast_ws) == [["alice"], ["alice", "bob"]]


async def test_concurrent_disconnects_leave_final_list(gateway):
    watcher_ws = FakeWebSocket()
    watcher = await gateway.connect(watcher_ws)
    alice = await gateway.connect(FakeWebSocket())
    bob = await gateway.connect(FakeWebSocket())

    for connection, user_id in ((watcher, "carol"), (alice, "alice"), (bob, "bob")):
        await gateway.dispatch(connection, user_online(user_id))

    watcher_ws.next_send_delay = 0.05
    await asyncio.gather(gateway.disconnect(alice), gateway.disconnect(bob))

    assert online_lists(watcher_ws)[-1] == ["carol"]
    assert online_lists(watcher_ws)[-2] in (["carol", "bob"], ["carol", "alice"])


# ============================================================================
# Shutdown
# ============================================================================

async def test_close_all_clears_rooms_and_presence(gateway):
    sockets = [FakeWebSocket(), FakeWebSocket()]
    alice = await gateway.connect(sockets[0], "alice")
    bob = await gateway.connect(sockets[1], "bob")
    await gateway.dispatch(alice, user_online("alice"))
    await gateway.dispatch(bob, user_online("bob"))
    await gateway.dispatch(alice, json.dumps({"type": "join-room", "data": {"conversationId": "alice_bob"}}))

    await gateway.close_all()

    assert [ws.close_code for ws in sockets] == [status.WS_1001_GOING_AWAY] * 2
    assert gateway.stats() == {"active_connections": 0, "active_rooms": 0, "online_users": 0}

    # The endpoint's own cleanup afterwards changes nothing
    await gateway.disconnect(alice)
    assert gateway.stats()["online_users"] == 0
