"""
Unit Tests for the Presence Table
=================================

Tests for socialhub/app/realtime/presence.py

Test Coverage:
--------------
1. set_online returns the online list including the new user
2. A second announcement for the same user replaces the owning connection
3. Removing a superseded connection leaves the user online
4. Removing an unknown connection is a no-op
5. Concurrent announcements and removals do not lose entries

Run tests:
----------
    pytest socialhub/app/tests/test_presence.py -v
"""

import asyncio

import pytest

from socialhub.app.realtime.presence import PresenceTable


@pytest.fixture
def presence():
    return PresenceTable()


# ============================================================================
# Announce / Remove
# ============================================================================

async def test_set_online_returns_online_users(presence):
    assert await presence.set_online("alice", "c1") == ["alice"]
    assert await presence.set_online("bob", "c2") == ["alice", "bob"]
    assert presence.connection_for("alice") == "c1"
    assert len(presence) == 2


async def test_set_online_twice_keeps_one_entry(presence):
    await presence.set_online("alice", "c1")
    online = await presence.set_online("alice", "c1")

    assert online == ["alice"]
    assert len(presence) == 1


async def test_newer_connection_supersedes_older(presence):
    await presence.set_online("alice", "c1")
    await presence.set_online("alice", "c2")

    assert presence.connection_for("alice") == "c2"

    # c1 no longer owns the entry, so its disconnect changes nothing
    assert await presence.remove_by_connection("c1") == ["alice"]
    assert await presence.remove_by_connection("c2") == []


async def test_remove_by_connection_removes_only_owner(presence):
    await presence.set_online("alice", "c1")
    await presence.set_online("bob", "c2")

    assert await presence.remove_by_connection("c1") == ["bob"]
    assert presence.connection_for("alice") is None


async def test_remove_unknown_connection_is_noop(presence):
    await presence.set_online("alice", "c1")

    assert await presence.remove_by_connection("never-announced") == ["alice"]
    assert presence.online_users() == ["alice"]


# ============================================================================
# Concurrency
# ============================================================================

async def test_concurrent_updates_are_not_lost(presence):
    users = [f"user{i}" for i in range(50)]

    await asyncio.gather(*(presence.set_online(u, f"conn-{u}") for u in users))
    assert sorted(presence.online_users()) == sorted(users)

    await asyncio.gather(*(presence.remove_by_connection(f"conn-{u}") for u in users[:25]))
    assert sorted(presence.online_users()) == sorted(users[25:])
