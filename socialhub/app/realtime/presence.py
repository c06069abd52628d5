"""
Presence Table

Process-wide mapping from user id to the connection that most recently
announced that user online. The gateway is its only writer.
"""

import asyncio
import logging
from typing import Dict, List, Optional

logger = logging.getLogger("socialhub.realtime.presence")


class PresenceTable:
    """
    User id → connection id, at most one connection per user.

    Both mutations run under one asyncio.Lock so concurrent connect and
    disconnect handlers cannot lose updates.
    """

    def __init__(self):
        self._entries: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def set_online(self, user_id: str, connection_id: str) -> List[str]:
        """
        Record or overwrite the user's connection.

        Returns:
            The current list of online user ids.
        """
        async with self._lock:
            previous = self._entries.get(user_id)
            self._entries[user_id] = connection_id

            if previous and previous != connection_id:
                logger.debug(
                    f"User {user_id} moved to a new connection",
                    extra={"previous_connection": previous, "connection_id": connection_id}
                )

            return list(self._entries.keys())

    async def remove_by_connection(self, connection_id: str) -> List[str]:
        """
        Remove the entry owned by ``connection_id``, if any.

        A connection whose user was superseded by a newer connection owns no
        entry, so disconnecting it leaves presence untouched.

        Returns:
            The current list of online user ids.
        """
        async with self._lock:
            for user_id, owner in self._entries.items():
                if owner == connection_id:
                    del self._entries[user_id]
                    logger.debug(f"User {user_id} went offline", extra={"connection_id": connection_id})
                    break

            return list(self._entries.keys())

    def online_users(self) -> List[str]:
        return list(self._entries.keys())

    def connection_for(self, user_id: str) -> Optional[str]:
        return self._entries.get(user_id)

    def __len__(self) -> int:
        return len(self._entries)
