"""
Notification Routes

Read side of notifications. Creation happens through the internal publishing
endpoint in ``realtime.events``.
"""

from typing import Dict, List

from fastapi import APIRouter, Depends

from ..auth.session import get_current_user
from ..dependencies import get_notification_store
from ..models import NotificationOut
from ..storage.repository import NotificationStore

notification_router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


@notification_router.get("")
async def list_notifications(
    user_id: str = Depends(get_current_user),
    store: NotificationStore = Depends(get_notification_store),
) -> Dict[str, List[dict]]:
    notifications = await store.list_for_user(user_id)
    return {
        "notifications": [
            NotificationOut.from_entity(n).model_dump(mode="json")
            for n in notifications
        ]
    }


# Declared before /{notification_id}/read so "readAll" is not taken as an id
@notification_router.put("/readAll")
async def mark_all_read(
    user_id: str = Depends(get_current_user),
    store: NotificationStore = Depends(get_notification_store),
) -> Dict[str, object]:
    updated = await store.mark_all_read(user_id)
    return {"message": "Marked as read.", "updated": updated}


@notification_router.put("/{notification_id}/read")
async def mark_read(
    notification_id: int,
    user_id: str = Depends(get_current_user),
    store: NotificationStore = Depends(get_notification_store),
) -> Dict[str, str]:
    await store.mark_read(notification_id, user_id)
    return {"message": "Marked as read."}
