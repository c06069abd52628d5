"""
API Package

HTTP routes for conversations, messages and notifications.

Usage:
------
    from socialhub.app.api import conversation_router
    app.include_router(conversation_router)
"""

from .conversations import conversation_router
from .messages import message_router
from .notifications import notification_router

__all__ = ["conversation_router", "message_router", "notification_router"]
