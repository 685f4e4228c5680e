"""SSE helpers for the live update stream.

Frames produced:
- ``data: <json>`` for every published event (the first one is always
  ``{"type": "CONNECTED"}``);
- ``: keep-alive`` comments while idle so proxies keep the connection open.
"""

import asyncio
import json
from typing import Any, AsyncIterator, Awaitable, Callable

from .events import CONNECTED, EventBus

KEEPALIVE_FRAME = ": keep-alive\n\n"


def format_sse(payload: Any, event: str | None = None) -> str:
    """Serialise ``payload`` as one SSE frame."""
    data = json.dumps(payload, default=str, ensure_ascii=False)
    if event:
        return f"event: {event}\ndata: {data}\n\n"
    return f"data: {data}\n\n"


async def stream_events(
    bus: EventBus,
    is_disconnected: Callable[[], Awaitable[bool]],
    keepalive_seconds: float = 15.0,
) -> AsyncIterator[str]:
    """Yield SSE frames for events published on ``bus``.

    Parameters
    ----------
    bus:
        Event bus to subscribe to. The subscription is created on the first
        iteration and removed when the generator closes.
    is_disconnected:
        Coroutine function polled between frames, typically
        ``request.is_disconnected``.
    keepalive_seconds:
        Idle time after which a comment frame is emitted.
    """
    subscription = bus.subscribe()
    try:
        yield format_sse({"type": CONNECTED})
        while True:
            if await is_disconnected():
                break
            try:
                payload = await asyncio.wait_for(subscription.get(), timeout=keepalive_seconds)
            except asyncio.TimeoutError:
                yield KEEPALIVE_FRAME
                continue
            yield format_sse(payload)
    finally:
        bus.unsubscribe(subscription)
