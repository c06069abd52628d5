from typing import TYPE_CHECKING, Optional

from fastapi import Header, HTTPException, Request, status

from .storage.repository import ConversationStore, NotificationStore

if TYPE_CHECKING:
    from .realtime.ws import RealtimeGateway


def get_gateway(request: Request) -> "RealtimeGateway":
    return request.app.state.gateway


def get_conversation_store(request: Request) -> ConversationStore:
    return request.app.state.conversation_store


def get_notification_store(request: Request) -> NotificationStore:
    return request.app.state.notification_store


def verify_internal_secret(
    request: Request,
    x_internal_secret: Optional[str] = Header(None),
) -> str:
    """
    Dependency that ensures requests include the expected internal secret.
    """
    expected = request.app.state.settings.INTERNAL_SHARED_SECRET
    if not expected:
        # fail fast and log configuration problem
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server misconfiguration: INTERNAL_SHARED_SECRET not set"
        )
    if not x_internal_secret or x_internal_secret != expected:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: Invalid or missing X-Internal-Secret header"
        )
    return x_internal_secret
