"""
Realtime Events Module

Internal publishing endpoint for events produced outside the socket channel.

The post and friend-request services create notifications (likes, comments,
friend requests). They hand them to this endpoint, which stores them and
pushes ``new-notification`` to the recipient's personal room so every open
connection of that user sees it immediately.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, status

from ..dependencies import get_gateway, get_notification_store, verify_internal_secret
from ..models import NotificationCreate, NotificationOut
from ..storage.repository import NotificationStore
from .ws import RealtimeGateway

logger = logging.getLogger("socialhub.realtime.events")

# Router for internal event endpoints (post/friend services -> gateway)
internal_router = APIRouter(
    prefix="/internal",
    tags=["internal"],
    dependencies=[Depends(verify_internal_secret)],
)


@internal_router.post("/notifications", status_code=status.HTTP_201_CREATED)
async def publish_notification(
    payload: NotificationCreate,
    gateway: RealtimeGateway = Depends(get_gateway),
    store: NotificationStore = Depends(get_notification_store),
) -> Dict[str, Any]:
    """
    Store a notification and deliver it over the realtime channel.

    Returns:
        The stored notification and the number of connections reached
    """
    notification = await store.create(
        recipient=payload.recipient,
        sender=payload.sender,
        type=payload.type,
        post_id=payload.post,
    )
    body = NotificationOut.from_entity(notification).model_dump(mode="json")

    recipients = await gateway.publish_notification(payload.recipient, body)

    logger.info(
        "Published notification",
        extra={
            "notification_id": notification.id,
            "recipient": payload.recipient,
            "notification_type": payload.type,
            "recipients": recipients
        }
    )

    return {
        "status": "received",
        "notification": body,
        "recipients": recipients,
    }


__all__ = ["internal_router"]
