"""Real-time API — SSE stream, rooms, typing indicators, internal ingress.

GET /api/v1/realtime/stream — open an SSE stream; first event is ``connected``
POST /api/v1/realtime/sessions/{sid}/rooms/join — {roomType, roomId}
POST /api/v1/realtime/sessions/{sid}/rooms/leave — {roomType, roomId}
POST /api/v1/realtime/sessions/{sid}/typing/start — {roomType, roomId}
POST /api/v1/realtime/sessions/{sid}/typing/stop — {roomType, roomId}
POST /api/v1/realtime/emit — events from other processes (X-Internal-Key)

Connect via EventSource:
    new EventSource('/api/v1/realtime/stream?token=...')
"""

from __future__ import annotations

import logging
import secrets

from fastapi import APIRouter, Depends, Header

from labtrack.api.deps import get_current_user, get_hub
from labtrack.config import settings
from labtrack.errors import AuthenticationError, NotFoundError
from labtrack.models.events import RealtimeEvent, room_key
from labtrack.models.notification import RoomType
from labtrack.models.user import User
from labtrack.models.views import WireModel
from labtrack.realtime.hub import RealtimeHub
from labtrack.realtime.session import ConnectionSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/realtime", tags=["realtime"])


class RoomBody(WireModel):
    room_type: RoomType
    room_id: str


def _own_session(hub: RealtimeHub, session_id: str, user: User) -> ConnectionSession:
    session = hub.get_session(session_id)
    if session is None or session.user_id != user.id:
        raise NotFoundError(f"Session {session_id} not found")
    return session


@router.get("/stream")
async def realtime_stream(
    user: User = Depends(get_current_user),
    hub: RealtimeHub = Depends(get_hub),
):
    """SSE endpoint for task, request, notification and typing events."""
    session = hub.connect(user.id, user.display_name)
    logger.info("Realtime session %s opened for %s", session.id, user.id)
    return hub.create_response(session, heartbeat_interval=settings.sse_heartbeat_seconds)


@router.post("/sessions/{session_id}/rooms/join")
async def join_room(
    session_id: str,
    body: RoomBody,
    user: User = Depends(get_current_user),
    hub: RealtimeHub = Depends(get_hub),
) -> dict:
    session = _own_session(hub, session_id, user)
    return {"room": session.join(body.room_type, body.room_id)}


@router.post("/sessions/{session_id}/rooms/leave")
async def leave_room(
    session_id: str,
    body: RoomBody,
    user: User = Depends(get_current_user),
    hub: RealtimeHub = Depends(get_hub),
) -> dict:
    session = _own_session(hub, session_id, user)
    return {"room": await session.leave(body.room_type, body.room_id)}


@router.post("/sessions/{session_id}/typing/start")
async def typing_start(
    session_id: str,
    body: RoomBody,
    user: User = Depends(get_current_user),
    hub: RealtimeHub = Depends(get_hub),
) -> dict:
    session = _own_session(hub, session_id, user)
    await session.mark_typing(body.room_type, body.room_id)
    return {"room": room_key(body.room_type, body.room_id), "typing": True}


@router.post("/sessions/{session_id}/typing/stop")
async def typing_stop(
    session_id: str,
    body: RoomBody,
    user: User = Depends(get_current_user),
    hub: RealtimeHub = Depends(get_hub),
) -> dict:
    session = _own_session(hub, session_id, user)
    room = room_key(body.room_type, body.room_id)
    await session.clear_typing(room)
    return {"room": room, "typing": False}


@router.post("/emit")
async def emit_event(
    event: RealtimeEvent,
    x_internal_key: str = Header(default=""),
    hub: RealtimeHub = Depends(get_hub),
) -> dict:
    """Ingress for RealtimeBus instances running in other processes."""
    expected = settings.realtime_internal_key
    if not expected or not secrets.compare_digest(x_internal_key, expected):
        logger.warning("Rejected realtime emit with invalid internal key")
        raise AuthenticationError("Invalid internal key")
    return {"delivered": await hub.broadcast(event)}
