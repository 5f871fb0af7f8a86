"""Notification API — the caller's own notifications only.

GET /api/v1/notifications — latest notifications, newest first
GET /api/v1/notifications/unread-count — {count}
PATCH /api/v1/notifications/{id} — mark read
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from labtrack.api.deps import get_current_user, get_dispatcher
from labtrack.models.user import User
from labtrack.models.views import NotificationView
from labtrack.notifications.dispatcher import NotificationDispatcher

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


@router.get("")
async def list_notifications(
    limit: int | None = Query(default=None, ge=1, le=200),
    user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict:
    notifications = dispatcher.list_for(user.id, limit)
    return {"data": [NotificationView.model_validate(n).to_wire() for n in notifications]}


@router.get("/unread-count")
async def unread_count(
    user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict:
    return {"count": dispatcher.unread_count(user.id)}


@router.patch("/{notification_id}")
async def mark_notification_read(
    notification_id: str,
    user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict:
    notification = dispatcher.mark_read(notification_id, user.id)
    return {"data": NotificationView.model_validate(notification).to_wire()}
