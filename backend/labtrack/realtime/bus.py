"""RealtimeBus — fire-and-forget emission of real-time events.

Two transports:
- embedded: the RealtimeHub lives in this process; events go straight to it.
- remote: events are POSTed to a separate real-time process at
  ``{fallback_url}/api/v1/realtime/emit`` with the shared internal key.

``dispatch`` never blocks the caller and never raises. Each emission runs as
a tracked background task bounded by ``timeout``; failures and timeouts are
logged and dropped. There is no retry and no replay.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from labtrack.models.events import EventName, RealtimeEvent
from labtrack.realtime.hub import RealtimeHub

logger = logging.getLogger(__name__)

EMIT_PATH = "/api/v1/realtime/emit"
INTERNAL_KEY_HEADER = "X-Internal-Key"


class RealtimeBus:
    """Emits events through the in-process hub, or over HTTP when there is none."""

    def __init__(
        self,
        hub: RealtimeHub | None = None,
        fallback_url: str = "",
        timeout: float = 10.0,
        internal_key: str = "",
        max_pending: int = 200,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._hub = hub
        self._fallback_url = fallback_url.rstrip("/")
        self._timeout = timeout
        self._internal_key = internal_key
        self._max_pending = max_pending
        self._transport = transport
        self._pending: set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def mode(self) -> str:
        return "embedded" if self._hub is not None else "remote"

    async def emit(self, event: RealtimeEvent) -> int:
        """Deliver one event now. Raises on transport failure.

        Returns:
            Sessions reached (embedded), or the count reported by the remote process.
        """
        if self._hub is not None:
            return await self._hub.broadcast(event)

        if not self._fallback_url:
            raise RuntimeError("No real-time hub and no fallback URL configured")

        headers = {INTERNAL_KEY_HEADER: self._internal_key} if self._internal_key else {}
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            resp = await client.post(
                f"{self._fallback_url}{EMIT_PATH}",
                json=event.model_dump(mode="json"),
                headers=headers,
            )
            resp.raise_for_status()
            return int(resp.json().get("delivered", 0))

    def dispatch(
        self,
        event_type: EventName,
        payload: dict | None = None,
        target_user_ids: list[str] | None = None,
        room: str | None = None,
    ) -> asyncio.Task | None:
        """Schedule an emission and return immediately.

        Returns the background task, or None when the event was dropped
        (no running event loop, or too many emissions in flight).
        """
        event = RealtimeEvent(
            event_type=event_type,
            payload=payload or {},
            target_user_ids=target_user_ids,
            room=room,
        )
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; dropping %s event", event_type)
            return None

        if len(self._pending) >= self._max_pending:
            logger.warning(
                "Real-time backlog full (%d in flight); dropping %s event",
                len(self._pending), event_type,
            )
            return None

        task = loop.create_task(self._emit_safely(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _emit_safely(self, event: RealtimeEvent) -> None:
        try:
            await asyncio.wait_for(self.emit(event), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("Real-time emit timed out after %.1fs: %s", self._timeout, event.event_type)
        except Exception as e:
            logger.warning("Real-time emit failed (%s): %s", event.event_type, e)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight emissions (used in shutdown and tests)."""
        if not self._pending:
            return
        await asyncio.wait(list(self._pending), timeout=timeout)


# Module-level bus, set by main.py at startup
_bus: RealtimeBus | None = None


def set_bus(bus: RealtimeBus | None) -> None:
    global _bus
    _bus = bus


def get_bus() -> RealtimeBus | None:
    return _bus


def build_bus(settings, hub: RealtimeHub | None = None) -> RealtimeBus:
    """Create a bus for the configured mode. Embedded mode requires ``hub``."""
    if settings.realtime_mode == "embedded" and hub is None:
        raise ValueError("Embedded real-time mode needs a hub")
    return RealtimeBus(
        hub=hub if settings.realtime_mode == "embedded" else None,
        fallback_url=settings.realtime_fallback_url,
        timeout=settings.realtime_timeout_seconds,
        internal_key=settings.realtime_internal_key,
        max_pending=settings.realtime_max_pending,
    )
