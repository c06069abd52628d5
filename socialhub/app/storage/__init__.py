"""
Storage Package

Persistence gateway for conversations, messages and notifications.

Modules:
- database: async engine, session factory and declarative base
- entities: ORM entities
- repository: ConversationStore and NotificationStore
"""

from .database import Base, Database
from .repository import ConversationStore, NotificationStore

__all__ = [
    "Base",
    "Database",
    "ConversationStore",
    "NotificationStore",
]
