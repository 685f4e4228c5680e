"""In-process publish/subscribe for live inbox updates.

Each connected viewer owns a :class:`Subscription` whose queue lives on the
viewer's event loop. Publishers may run anywhere (sync routes execute in the
threadpool) and hand payloads over with ``call_soon_threadsafe``.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any

logger = logging.getLogger(__name__)

CONNECTED = "CONNECTED"
NEW_MESSAGE = "NEW_MESSAGE"
CONVERSATION_UPDATE = "CONVERSATION_UPDATE"

DEFAULT_QUEUE_SIZE = 100


class Subscription:
    """A single viewer's inbound event queue."""

    def __init__(self, loop: asyncio.AbstractEventLoop, maxsize: int) -> None:
        self.loop = loop
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def deliver(self, payload: dict[str, Any]) -> None:
        # Runs on self.loop. A viewer that stops reading loses its oldest
        # events rather than blocking publishers.
        if self.queue.full():
            self.queue.get_nowait()
            self.dropped += 1
        self.queue.put_nowait(payload)

    async def get(self) -> dict[str, Any]:
        return await self.queue.get()


class EventBus:
    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._subscribers: set[Subscription] = set()
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self) -> Subscription:
        """Register a subscriber bound to the running event loop."""

        subscription = Subscription(asyncio.get_running_loop(), self._queue_size)
        with self._lock:
            self._subscribers.add(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscribers.discard(subscription)

    def publish(self, payload: dict[str, Any]) -> int:
        """Fan ``payload`` out to every subscriber; returns how many were reached."""

        with self._lock:
            subscribers = list(self._subscribers)
        delivered = 0
        for subscription in subscribers:
            try:
                subscription.loop.call_soon_threadsafe(subscription.deliver, payload)
            except RuntimeError:
                logger.warning("Dropping subscriber whose event loop is closed")
                self.unsubscribe(subscription)
                continue
            delivered += 1
        return delivered


events = EventBus()


__all__ = [
    "CONNECTED",
    "CONVERSATION_UPDATE",
    "EventBus",
    "NEW_MESSAGE",
    "Subscription",
    "events",
]
