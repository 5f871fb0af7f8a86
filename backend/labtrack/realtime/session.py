"""Per-connection real-time session.

One ConnectionSession exists per open SSE stream. It owns everything that
is scoped to that connection: the outbound queue, room membership and the
typing-indicator timers. ``close()`` runs on the stream's teardown path and
cancels every timer, so nothing outlives the connection.

Typing state is process-local and never persisted; a restart simply forgets
who was typing.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING
from uuid import uuid4

from labtrack.models.events import RealtimeEvent, room_key

if TYPE_CHECKING:
    from labtrack.realtime.hub import RealtimeHub

logger = logging.getLogger(__name__)

DEFAULT_TYPING_EXPIRY = 3.0


def split_room(room: str) -> tuple[str, str]:
    room_type, _, room_id = room.partition(":")
    return room_type, room_id


class ConnectionSession:
    """Outbound queue + rooms + typing timers of a single connection."""

    def __init__(
        self,
        hub: RealtimeHub,
        user_id: str,
        display_name: str = "",
        typing_expiry: float = DEFAULT_TYPING_EXPIRY,
        queue_size: int = 100,
    ) -> None:
        self.id = str(uuid4())
        self.user_id = user_id
        self.display_name = display_name
        self.queue: asyncio.Queue[RealtimeEvent | None] = asyncio.Queue(maxsize=queue_size)
        self.rooms: set[str] = set()
        self._hub = hub
        self._typing_expiry = typing_expiry
        self._typing_timers: dict[str, asyncio.Task] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def typing_rooms(self) -> set[str]:
        return set(self._typing_timers)

    # === Delivery ===

    def accepts(self, event: RealtimeEvent) -> bool:
        """Whether this session should receive ``event``."""
        if self._closed or event.exclude_session_id == self.id:
            return False
        if event.room is not None and event.room not in self.rooms:
            return False
        if event.target_user_ids is not None and self.user_id not in event.target_user_ids:
            return False
        return True

    def deliver(self, event: RealtimeEvent | None) -> bool:
        """Enqueue without blocking. Returns False when the queue is full."""
        try:
            self.queue.put_nowait(event)
            return True
        except asyncio.QueueFull:
            return False

    # === Rooms ===

    def join(self, room_type: str, room_id: str) -> str:
        room = room_key(room_type, room_id)
        self.rooms.add(room)
        return room

    async def leave(self, room_type: str, room_id: str) -> str:
        room = room_key(room_type, room_id)
        await self.clear_typing(room)
        self.rooms.discard(room)
        return room

    # === Typing indicators ===

    async def mark_typing(self, room_type: str, room_id: str) -> None:
        """Announce typing in a room and (re)arm the auto-expiry timer."""
        if self._closed:
            return
        room = self.join(room_type, room_id)

        existing = self._typing_timers.pop(room, None)
        if existing is not None:
            existing.cancel()
        self._typing_timers[room] = asyncio.create_task(self._expire(room))

        await self._hub.broadcast(RealtimeEvent(
            event_type="typing:started",
            room=room,
            exclude_session_id=self.id,
            payload={
                "roomType": room_type,
                "roomId": room_id,
                "user": {"id": self.user_id, "name": self.display_name},
            },
        ))

    async def clear_typing(self, room: str) -> bool:
        """Stop typing in ``room``. Returns False if the user was not typing there."""
        timer = self._typing_timers.pop(room, None)
        if timer is None:
            return False
        if timer is not asyncio.current_task():
            timer.cancel()

        room_type, room_id = split_room(room)
        await self._hub.broadcast(RealtimeEvent(
            event_type="typing:stopped",
            room=room,
            exclude_session_id=self.id,
            payload={"roomType": room_type, "roomId": room_id, "userId": self.user_id},
        ))
        return True

    async def _expire(self, room: str) -> None:
        await asyncio.sleep(self._typing_expiry)
        logger.debug("Typing expired for %s in %s", self.user_id, room)
        await self.clear_typing(room)

    # === Teardown ===

    async def close(self) -> None:
        """Clear all typing state and leave every room. Idempotent."""
        if self._closed:
            return
        for room in list(self._typing_timers):
            try:
                await self.clear_typing(room)
            except Exception as e:
                logger.warning("Typing cleanup failed for %s in %s: %s", self.user_id, room, e)
        self._closed = True
        self.rooms.clear()
