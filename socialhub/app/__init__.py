"""
SocialHub Realtime Gateway
==========================

FastAPI service providing the realtime channel of the SocialHub social
network: presence, conversation rooms, typing indicators, realtime message
persistence and notification delivery.

Packages:
    - realtime: WebSocket gateway, presence table, rooms, message ingestion
    - storage:  SQLAlchemy persistence gateway for conversations, messages
                and notifications
    - api:      HTTP routes for conversations, messages and notifications
    - auth:     Session JWT verification
"""
