"""Tests for RealtimeBus — embedded delivery, HTTP fallback, fire-and-forget."""

import asyncio
import json
import logging
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
os.environ.setdefault("DATABASE_URL", "sqlite:///test.db")

from types import SimpleNamespace

import httpx
import pytest

from labtrack.models.events import RealtimeEvent
from labtrack.realtime.bus import EMIT_PATH, RealtimeBus, build_bus
from labtrack.realtime.hub import RealtimeHub


class _SlowHub:
    """Hub stand-in whose broadcast never finishes in time."""

    async def broadcast(self, event):
        await asyncio.sleep(10)
        return 0


def _settings(**overrides):
    fields = {
        "realtime_mode": "embedded",
        "realtime_fallback_url": "http://realtime.internal:3001",
        "realtime_timeout_seconds": 2.0,
        "realtime_internal_key": "k",
        "realtime_max_pending": 10,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


# === Embedded ===


@pytest.mark.asyncio
async def test_embedded_dispatch_reaches_hub():
    hub = RealtimeHub()
    session = hub.connect("u1")
    session.queue.get_nowait()  # connected
    bus = RealtimeBus(hub=hub)

    task = bus.dispatch("task:assigned", payload={"task": {"id": "t1"}}, target_user_ids=["u1"])
    assert task is not None
    await task

    event = session.queue.get_nowait()
    assert event.event_type == "task:assigned"
    assert event.payload == {"task": {"id": "t1"}}
    assert bus.pending_count == 0
    assert bus.mode == "embedded"


# === Remote fallback ===


@pytest.mark.asyncio
async def test_remote_emit_posts_to_fallback():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"delivered": 3})

    bus = RealtimeBus(
        fallback_url="http://realtime.internal:3001/",
        internal_key="secret-key",
        transport=httpx.MockTransport(handler),
    )
    delivered = await bus.emit(RealtimeEvent(event_type="task:completed", payload={"task": {"id": "t1"}}))

    assert delivered == 3
    assert bus.mode == "remote"
    request = seen[0]
    assert str(request.url) == f"http://realtime.internal:3001{EMIT_PATH}"
    assert request.headers["X-Internal-Key"] == "secret-key"
    body = json.loads(request.content)
    assert body["event_type"] == "task:completed"
    assert body["payload"] == {"task": {"id": "t1"}}
    assert body["target_user_ids"] is None


@pytest.mark.asyncio
async def test_remote_emit_raises_on_error_status():
    bus = RealtimeBus(
        fallback_url="http://realtime.internal:3001",
        transport=httpx.MockTransport(lambda request: httpx.Response(503)),
    )
    with pytest.raises(httpx.HTTPStatusError):
        await bus.emit(RealtimeEvent(event_type="task:completed"))


@pytest.mark.asyncio
async def test_dispatch_swallows_and_logs_failures(caplog):
    bus = RealtimeBus(
        fallback_url="http://realtime.internal:3001",
        transport=httpx.MockTransport(lambda request: httpx.Response(500)),
    )
    with caplog.at_level(logging.WARNING, logger="labtrack.realtime.bus"):
        task = bus.dispatch("task:completed")
        await task

    assert task.exception() is None
    assert "Real-time emit failed" in caplog.text


@pytest.mark.asyncio
async def test_emit_without_hub_or_url_fails():
    bus = RealtimeBus()
    with pytest.raises(RuntimeError):
        await bus.emit(RealtimeEvent(event_type="task:completed"))


# === Bounds ===


@pytest.mark.asyncio
async def test_dispatch_times_out(caplog):
    bus = RealtimeBus(hub=_SlowHub(), timeout=0.05)
    with caplog.at_level(logging.WARNING, logger="labtrack.realtime.bus"):
        task = bus.dispatch("task:completed")
        await asyncio.wait_for(task, timeout=1)

    assert "timed out" in caplog.text
    assert bus.pending_count == 0


@pytest.mark.asyncio
async def test_backlog_limit_drops_events():
    bus = RealtimeBus(hub=_SlowHub(), timeout=5, max_pending=1)

    first = bus.dispatch("task:completed")
    second = bus.dispatch("task:completed")

    assert first is not None
    assert second is None
    assert bus.pending_count == 1
    first.cancel()
    await bus.drain(timeout=1)


def test_dispatch_without_event_loop_is_dropped():
    bus = RealtimeBus(hub=RealtimeHub())
    assert bus.dispatch("task:completed") is None


@pytest.mark.asyncio
async def test_drain_waits_for_in_flight():
    hub = RealtimeHub()
    session = hub.connect("u1")
    bus = RealtimeBus(hub=hub)
    for _ in range(3):
        bus.dispatch("task:completed")

    await bus.drain()

    assert bus.pending_count == 0
    assert session.queue.qsize() == 4  # connected + 3


# === Factory ===


def test_build_bus_modes():
    hub = RealtimeHub()
    assert build_bus(_settings(), hub).mode == "embedded"
    assert build_bus(_settings(realtime_mode="remote"), hub).mode == "remote"
    with pytest.raises(ValueError):
        build_bus(_settings(), None)
