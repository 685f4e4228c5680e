"""Tests for the in-process event bus and the SSE frame generator."""

import asyncio
import json
import threading

import pytest

from support_inbox.events import CONNECTED, EventBus
from support_inbox.sse_utils import KEEPALIVE_FRAME, format_sse, stream_events


def _decode(frame: str):
    assert frame.startswith("data: ") and frame.endswith("\n\n")
    return json.loads(frame[len("data: ") : -2])


def test_format_sse():
    assert format_sse({"type": "X"}) == 'data: {"type": "X"}\n\n'
    assert format_sse({"a": 1}, event="update") == 'event: update\ndata: {"a": 1}\n\n'


def test_publish_reaches_every_subscriber():
    bus = EventBus()

    async def scenario():
        first = bus.subscribe()
        second = bus.subscribe()
        delivered = bus.publish({"type": "NEW_MESSAGE"})
        got = await asyncio.wait_for(
            asyncio.gather(first.get(), second.get()), timeout=1
        )
        bus.unsubscribe(first)
        bus.unsubscribe(second)
        return delivered, got

    delivered, got = asyncio.run(scenario())

    assert delivered == 2
    assert got == [{"type": "NEW_MESSAGE"}, {"type": "NEW_MESSAGE"}]
    assert bus.subscriber_count == 0


def test_publish_without_subscribers():
    assert EventBus().publish({"type": "NEW_MESSAGE"}) == 0


def test_publish_from_another_thread():
    bus = EventBus()

    async def scenario():
        subscription = bus.subscribe()
        thread = threading.Thread(target=bus.publish, args=({"n": 1},))
        thread.start()
        payload = await asyncio.wait_for(subscription.get(), timeout=1)
        thread.join()
        return payload

    assert asyncio.run(scenario()) == {"n": 1}


def test_slow_subscriber_drops_oldest_events():
    bus = EventBus(queue_size=2)

    async def scenario():
        subscription = bus.subscribe()
        for n in range(3):
            bus.publish({"n": n})
        await asyncio.sleep(0)
        return [subscription.queue.get_nowait() for _ in range(2)], subscription.dropped

    received, dropped = asyncio.run(scenario())

    assert received == [{"n": 1}, {"n": 2}]
    assert dropped == 1


def test_subscribe_requires_running_loop():
    with pytest.raises(RuntimeError):
        EventBus().subscribe()


def test_stream_events_yields_connected_then_events():
    bus = EventBus()

    async def never_disconnected():
        return False

    async def scenario():
        stream = stream_events(bus, never_disconnected, keepalive_seconds=5)
        frames = [await stream.__anext__()]
        assert bus.subscriber_count == 1
        bus.publish({"type": "NEW_MESSAGE", "conversation_id": "c1"})
        frames.append(await asyncio.wait_for(stream.__anext__(), timeout=1))
        await stream.aclose()
        return frames

    frames = asyncio.run(scenario())

    assert _decode(frames[0]) == {"type": CONNECTED}
    assert _decode(frames[1]) == {"type": "NEW_MESSAGE", "conversation_id": "c1"}
    assert bus.subscriber_count == 0


def test_stream_events_keepalive_and_disconnect():
    bus = EventBus()
    disconnected = False

    async def is_disconnected():
        return disconnected

    async def scenario():
        nonlocal disconnected
        stream = stream_events(bus, is_disconnected, keepalive_seconds=0.01)
        await stream.__anext__()
        keepalive = await asyncio.wait_for(stream.__anext__(), timeout=1)
        disconnected = True
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()
        return keepalive

    assert asyncio.run(scenario()) == KEEPALIVE_FRAME
    assert bus.subscriber_count == 0
