"""Real-time hub — fans events out to connected SSE sessions.

Usage:
    hub = RealtimeHub()

    # In the stream endpoint:
    session = hub.connect(user_id="u1", display_name="Ada Lovelace")
    return hub.create_response(session)

    # Anywhere in-process (usually through RealtimeBus):
    await hub.broadcast_dict("task:completed", payload={"task": {...}})
    await hub.broadcast_dict("task:assigned", payload=..., target_user_ids=["u2"])

Delivery is best-effort and at-most-once: a session whose queue is full is
evicted rather than allowed to block the sender.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import AsyncGenerator

from fastapi.responses import StreamingResponse

from labtrack.config import settings
from labtrack.models.events import EventName, RealtimeEvent
from labtrack.realtime.session import DEFAULT_TYPING_EXPIRY, ConnectionSession

logger = logging.getLogger(__name__)

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


class RealtimeHub:
    """Central registry of live sessions for one process."""

    MAX_SUBSCRIBERS = 500  # Safety cap to prevent unbounded growth

    def __init__(self, typing_expiry: float = DEFAULT_TYPING_EXPIRY) -> None:
        self._sessions: dict[str, ConnectionSession] = {}
        self._typing_expiry = typing_expiry
        self._teardowns: set[asyncio.Task] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._sessions)

    def get_session(self, session_id: str) -> ConnectionSession | None:
        return self._sessions.get(session_id)

    def connect(self, user_id: str, display_name: str = "") -> ConnectionSession:
        """Register a new session. Its first queued event is ``connected``."""
        if len(self._sessions) >= self.MAX_SUBSCRIBERS:
            # Evict oldest subscriber before adding new one
            oldest_id = next(iter(self._sessions))
            logger.warning(
                "Realtime hub at capacity (%d/%d), evicting session %s",
                len(self._sessions), self.MAX_SUBSCRIBERS, oldest_id,
            )
            self._evict(oldest_id)

        session = ConnectionSession(
            hub=self,
            user_id=user_id,
            display_name=display_name,
            typing_expiry=self._typing_expiry,
        )
        self._sessions[session.id] = session
        session.deliver(RealtimeEvent(
            event_type="connected",
            payload={"sessionId": session.id, "userId": user_id},
        ))
        return session

    async def disconnect(self, session: ConnectionSession) -> None:
        """Remove a session and run its teardown (typing timers, rooms)."""
        self._sessions.pop(session.id, None)
        await session.close()

    def _evict(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return
        session.deliver(None)
        # Teardown broadcasts typing:stopped, so it cannot run inline here.
        task = asyncio.get_running_loop().create_task(session.close())
        self._teardowns.add(task)
        task.add_done_callback(self._teardown_done)

    def _teardown_done(self, task: asyncio.Task) -> None:
        self._teardowns.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Evicted session teardown failed: %s", exc, exc_info=exc)

    @property
    def pending_teardowns(self) -> int:
        return len(self._teardowns)

    async def broadcast(self, event: RealtimeEvent) -> int:
        """Deliver an event to every session that accepts it.

        Returns:
            Number of sessions that received the event.
        """
        sent = 0
        dead: list[str] = []
        for session in list(self._sessions.values()):
            if not session.accepts(event):
                continue
            if session.deliver(event):
                sent += 1
            else:
                dead.append(session.id)

        for session_id in dead:
            logger.warning("Realtime session %s queue full, evicting", session_id)
            self._evict(session_id)

        return sent

    async def broadcast_dict(
        self,
        event_type: EventName,
        payload: dict | None = None,
        target_user_ids: list[str] | None = None,
        room: str | None = None,
    ) -> int:
        """Convenience method to broadcast from plain values."""
        event = RealtimeEvent(
            event_type=event_type,
            payload=payload or {},
            target_user_ids=target_user_ids,
            room=room,
        )
        return await self.broadcast(event)

    def typing_users(self, room: str) -> set[str]:
        """User ids currently typing in ``room`` on this process."""
        return {s.user_id for s in self._sessions.values() if room in s.typing_rooms}

    async def event_generator(
        self,
        session: ConnectionSession,
        heartbeat_interval: float = 30.0,
    ) -> AsyncGenerator[str, None]:
        """Generate SSE-formatted strings from a session queue.

        Sends periodic heartbeat comments to detect disconnected clients.
        The session is torn down when the generator exits for any reason.
        """
        try:
            while True:
                try:
                    event = await asyncio.wait_for(session.queue.get(), timeout=heartbeat_interval)
                    if event is None:
                        break
                    yield format_sse(event)
                except asyncio.TimeoutError:
                    yield ": heartbeat\n\n"
        finally:
            await self.disconnect(session)

    def create_response(self, session: ConnectionSession, heartbeat_interval: float = 30.0) -> StreamingResponse:
        return StreamingResponse(
            self.event_generator(session, heartbeat_interval),
            media_type="text/event-stream",
            headers=_SSE_HEADERS,
        )

    async def disconnect_all(self) -> None:
        """Disconnect all sessions (used during shutdown)."""
        sessions = list(self._sessions.values())
        self._sessions.clear()
        for session in sessions:
            session.deliver(None)
            await session.close()
        if self._teardowns:
            await asyncio.wait(list(self._teardowns))


def format_sse(event: RealtimeEvent) -> str:
    """Format an event as a standard SSE frame.

    Format:
        event: <event_type>
        data: <json>

    """
    data = {
        "eventType": event.event_type,
        "payload": event.payload,
        "timestamp": event.timestamp.isoformat() if event.timestamp else None,
    }
    return f"event: {event.event_type}\ndata: {json.dumps(data, default=str)}\n\n"


# === Singleton hub instance ===

realtime_hub = RealtimeHub(typing_expiry=settings.typing_expiry_seconds)
