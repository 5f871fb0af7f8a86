"""Tests for RealtimeHub — session registry, targeted fan-out, SSE framing."""

import asyncio
import json
import logging
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
os.environ.setdefault("DATABASE_URL", "sqlite:///test.db")

from unittest.mock import AsyncMock

import pytest

from labtrack.models.events import RealtimeEvent
from labtrack.realtime.hub import RealtimeHub, format_sse


def _drain(session) -> list[RealtimeEvent]:
    events = []
    while not session.queue.empty():
        event = session.queue.get_nowait()
        if event is not None:
            events.append(event)
    return events


def _types(session) -> list[str]:
    return [e.event_type for e in _drain(session) if e.event_type != "connected"]


def test_connect_enqueues_connected_event():
    hub = RealtimeHub()
    session = hub.connect("u1", "Ada Lovelace")

    first = session.queue.get_nowait()
    assert first.event_type == "connected"
    assert first.payload == {"sessionId": session.id, "userId": "u1"}
    assert hub.subscriber_count == 1
    assert hub.get_session(session.id) is session


@pytest.mark.asyncio
async def test_untargeted_event_reaches_everyone():
    hub = RealtimeHub()
    a, b = hub.connect("u1"), hub.connect("u2")

    sent = await hub.broadcast_dict("task:completed", payload={"task": {"id": "t1"}})

    assert sent == 2
    assert _types(a) == ["task:completed"]
    assert _types(b) == ["task:completed"]


@pytest.mark.asyncio
async def test_targeted_event_reaches_only_listed_users():
    hub = RealtimeHub()
    a, b, c = hub.connect("u1"), hub.connect("u2"), hub.connect("u1")

    sent = await hub.broadcast_dict("task:assigned", payload={}, target_user_ids=["u1"])

    assert sent == 2
    assert _types(a) == ["task:assigned"]
    assert _types(b) == []
    assert _types(c) == ["task:assigned"]


@pytest.mark.asyncio
async def test_room_event_reaches_only_members():
    hub = RealtimeHub()
    a, b = hub.connect("u1"), hub.connect("u2")
    a.join("study", "s1")

    await hub.broadcast_dict("typing:started", payload={}, room="study:s1")

    assert _types(a) == ["typing:started"]
    assert _types(b) == []


@pytest.mark.asyncio
async def test_full_queue_is_evicted():
    hub = RealtimeHub()
    slow = hub.connect("u1")
    fast = hub.connect("u2")
    while not slow.queue.full():
        slow.queue.put_nowait(RealtimeEvent(event_type="task:completed"))

    sent = await hub.broadcast_dict("task:completed")
    await asyncio.sleep(0)

    assert sent == 1
    assert hub.subscriber_count == 1
    assert hub.get_session(slow.id) is None
    assert hub.get_session(fast.id) is fast


@pytest.mark.asyncio
async def test_capacity_evicts_oldest_session():
    hub = RealtimeHub()
    hub.MAX_SUBSCRIBERS = 2
    oldest = hub.connect("u1")
    hub.connect("u2")
    hub.connect("u3")
    await asyncio.sleep(0)

    assert hub.subscriber_count == 2
    assert hub.get_session(oldest.id) is None
    assert oldest.closed


@pytest.mark.asyncio
async def test_evicted_typing_session_is_torn_down():
    hub = RealtimeHub(typing_expiry=30)
    hub.MAX_SUBSCRIBERS = 2
    typist = hub.connect("u1", "Ada Lovelace")
    watcher = hub.connect("u2")
    watcher.join("task", "t1")
    await typist.mark_typing("task", "t1")
    timer = typist._typing_timers["task:t1"]

    hub.connect("u3")
    assert hub.pending_teardowns == 1
    await asyncio.sleep(0.01)

    assert timer.cancelled()
    assert typist.closed
    assert typist.typing_rooms == set()
    assert hub.typing_users("task:t1") == set()
    assert hub.pending_teardowns == 0
    assert _types(watcher) == ["typing:started", "typing:stopped"]


@pytest.mark.asyncio
async def test_failed_eviction_teardown_is_logged(caplog):
    hub = RealtimeHub()
    hub.MAX_SUBSCRIBERS = 1
    doomed = hub.connect("u1")
    doomed.close = AsyncMock(side_effect=RuntimeError("boom"))

    with caplog.at_level(logging.ERROR, logger="labtrack.realtime.hub"):
        hub.connect("u2")
        await asyncio.sleep(0.01)

    doomed.close.assert_awaited_once()
    assert "Evicted session teardown failed: boom" in caplog.text
    assert hub.pending_teardowns == 0


@pytest.mark.asyncio
async def test_disconnect_all_waits_for_eviction_teardowns():
    hub = RealtimeHub(typing_expiry=30)
    hub.MAX_SUBSCRIBERS = 1
    typist = hub.connect("u1")
    await typist.mark_typing("study", "s1")
    hub.connect("u2")

    await hub.disconnect_all()

    assert hub.pending_teardowns == 0
    assert typist.closed
    assert hub.typing_users("study:s1") == set()


@pytest.mark.asyncio
async def test_event_generator_heartbeat_and_teardown():
    hub = RealtimeHub()
    session = hub.connect("u1")
    gen = hub.event_generator(session, heartbeat_interval=0.01)

    first = await gen.__anext__()
    assert first.startswith("event: connected\n")
    assert await gen.__anext__() == ": heartbeat\n\n"

    await gen.aclose()
    assert hub.subscriber_count == 0
    assert session.closed


@pytest.mark.asyncio
async def test_disconnect_all_signals_every_stream():
    hub = RealtimeHub()
    session = hub.connect("u1")
    gen = hub.event_generator(session, heartbeat_interval=5)
    await gen.__anext__()  # connected

    await hub.disconnect_all()

    with pytest.raises(StopAsyncIteration):
        await gen.__anext__()
    assert hub.subscriber_count == 0


def test_format_sse():
    event = RealtimeEvent(event_type="task:completed", payload={"task": {"id": "t1"}})
    frame = format_sse(event)

    assert frame.startswith("event: task:completed\ndata: ")
    assert frame.endswith("\n\n")
    data = json.loads(frame.split("data: ", 1)[1])
    assert data["eventType"] == "task:completed"
    assert data["payload"] == {"task": {"id": "t1"}}
    assert data["timestamp"]
