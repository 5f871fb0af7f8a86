"""Shared FastAPI dependencies.

Collaborators are injected at startup by main.py (``set_dependencies``) and
handed to endpoints through ``Depends``; tests replace them with
``app.dependency_overrides``.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from labtrack.config import settings
from labtrack.db.unit_of_work import UnitOfWork, UnitOfWorkFactory
from labtrack.errors import AuthenticationError
from labtrack.models.user import User
from labtrack.notifications.dispatcher import NotificationDispatcher
from labtrack.notifications.publisher import EventPublisher
from labtrack.realtime.bus import RealtimeBus, get_bus as _get_module_bus
from labtrack.realtime.hub import RealtimeHub

# Module-level references, set by main.py at startup
_uow_factory: UnitOfWorkFactory = UnitOfWork
_hub: RealtimeHub | None = None


def set_dependencies(uow_factory: UnitOfWorkFactory | None = None, hub: RealtimeHub | None = None) -> None:
    """Wire up dependencies (called from main.py lifespan)."""
    global _uow_factory, _hub
    if uow_factory is not None:
        _uow_factory = uow_factory
    _hub = hub


def get_uow_factory() -> UnitOfWorkFactory:
    return _uow_factory


def get_bus() -> RealtimeBus | None:
    return _get_module_bus()


def current_hub() -> RealtimeHub | None:
    return _hub


def get_hub() -> RealtimeHub:
    if _hub is None:
        raise HTTPException(status_code=503, detail="Real-time hub not running in this process")
    return _hub


def get_dispatcher(
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
    bus: RealtimeBus | None = Depends(get_bus),
) -> NotificationDispatcher:
    return NotificationDispatcher(uow_factory, bus, list_limit=settings.notification_list_limit)


def get_publisher(
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    bus: RealtimeBus | None = Depends(get_bus),
) -> EventPublisher:
    return EventPublisher(dispatcher, bus)


def get_current_user(
    request: Request,
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
) -> User:
    """Load the authenticated caller; the auth middleware set ``state.user_id``."""
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise AuthenticationError("Not authenticated")
    with uow_factory() as uow:
        user = uow.users.get(user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("Unknown or inactive user")
    return user
