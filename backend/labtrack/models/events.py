"""Real-time event schema.

Events are best-effort: never persisted, never replayed, never acknowledged.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

EventName = Literal[
    "connected",
    "task-request:created",
    "task-request:approved",
    "task-request:rejected",
    "task:assigned",
    "task:completed",
    "typing:started",
    "typing:stopped",
    "notification:new",
]


class RealtimeEvent(BaseModel):
    """Schema for all events pushed to connected clients.

    ``target_user_ids`` of None means broadcast. ``room`` restricts delivery
    to sessions that joined the room; ``exclude_session_id`` skips the sender.
    """

    event_type: EventName
    payload: dict = Field(default_factory=dict)
    target_user_ids: list[str] | None = None
    room: str | None = None
    exclude_session_id: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def room_key(room_type: str, room_id: str) -> str:
    """Canonical room key, e.g. ``study:42``."""
    return f"{room_type}:{room_id}"
