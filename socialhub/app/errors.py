"""
Gateway exception hierarchy.

Realtime handlers raise these and the socket loop turns them into ``error``
frames for the sending connection; HTTP routes map them to status codes.
"""

from typing import Optional


class GatewayError(Exception):
    """Base exception for gateway errors"""

    def __init__(self, message: str, event: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.event = event


class EventValidationError(GatewayError):
    """Inbound frame or payload failed validation."""
    pass


class RoomAccessDenied(GatewayError):
    """Connection is not allowed to join the requested room."""
    pass


class ConversationNotFound(GatewayError):
    pass


class NotificationNotFound(GatewayError):
    pass


class NotAuthorized(GatewayError):
    """Caller does not own the record it is trying to change."""
    pass


class PersistenceError(GatewayError):
    """Wraps a storage-layer failure."""
    pass
