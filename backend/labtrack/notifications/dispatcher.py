"""NotificationDispatcher — persist first, then push.

The durable record is committed in its own short transaction before the
``notification:new`` event is scheduled, so a client that reacts to the
event by refetching always finds the row. A real-time failure never
affects the stored notification.
"""

from __future__ import annotations

import logging

from labtrack.db.unit_of_work import UnitOfWork, UnitOfWorkFactory
from labtrack.errors import NotFoundError
from labtrack.models.notification import Notification, NotificationPayload
from labtrack.models.views import NotificationView
from labtrack.realtime.bus import RealtimeBus

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory = UnitOfWork,
        bus: RealtimeBus | None = None,
        list_limit: int = 50,
    ) -> None:
        self._uow_factory = uow_factory
        self._bus = bus
        self._list_limit = list_limit

    async def create_and_dispatch(self, recipient_id: str, payload: NotificationPayload) -> Notification:
        """Store a notification for ``recipient_id`` and push it in real time.

        Raises:
            DatabaseError: The notification could not be stored. Nothing is pushed.
        """
        with self._uow_factory() as uow:
            notification = uow.notifications.add(
                Notification(user_id=recipient_id, **payload.model_dump())
            )

        logger.debug("Notification %s stored for %s", notification.id, recipient_id)
        if self._bus is not None:
            self._bus.dispatch(
                "notification:new",
                payload=NotificationView.model_validate(notification).to_wire(),
                target_user_ids=[recipient_id],
            )
        return notification

    def list_for(self, user_id: str, limit: int | None = None) -> list[Notification]:
        """Newest first, capped at ``limit`` (default from settings)."""
        with self._uow_factory() as uow:
            return uow.notifications.list_for_user(user_id, limit or self._list_limit)

    def unread_count(self, user_id: str) -> int:
        with self._uow_factory() as uow:
            return uow.notifications.count_unread(user_id)

    def mark_read(self, notification_id: str, user_id: str) -> Notification:
        """Mark one of the caller's notifications read. Idempotent."""
        with self._uow_factory() as uow:
            notification = uow.notifications.get_for_user(notification_id, user_id)
            if notification is None:
                raise NotFoundError(f"Notification {notification_id} not found")
            if not notification.read:
                uow.notifications.mark_read(notification)
            return notification
