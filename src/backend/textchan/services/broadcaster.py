from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass

from textchan.storage.types import ThreadRecord

logger = logging.getLogger(__name__)

THREAD_ADDED = "thread-added"
THREAD_MODIFIED = "thread-modified"
THREAD_REMOVED = "thread-removed"


@dataclass(frozen=True)
class ThreadEvent:
    name: str
    thread: ThreadRecord


class Subscription:
    """One connected stream client; events queue up until the client reads them."""

    def __init__(self, broadcaster: "ThreadBroadcaster", loop: asyncio.AbstractEventLoop) -> None:
        self._broadcaster = broadcaster
        self._loop = loop
        self.queue: asyncio.Queue[ThreadEvent] = asyncio.Queue()

    def deliver(self, event: ThreadEvent) -> None:
        try:
            self._loop.call_soon_threadsafe(self.queue.put_nowait, event)
        except RuntimeError:
            # Loop already closed; the client is gone.
            self._broadcaster.unsubscribe(self)

    async def next_event(self, timeout: float) -> ThreadEvent | None:
        try:
            return await asyncio.wait_for(self.queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    def close(self) -> None:
        self._broadcaster.unsubscribe(self)


class ThreadBroadcaster:
    """Fan out thread mutations to connected stream clients.

    `publish` may be called from worker threads (sync request handlers);
    delivery hops onto each subscriber's event loop.
    """

    def __init__(self) -> None:
        self._subscribers: set[Subscription] = set()
        self._lock = threading.Lock()

    def subscribe(self) -> Subscription:
        subscription = Subscription(self, asyncio.get_running_loop())
        with self._lock:
            self._subscribers.add(subscription)
        logger.debug("Stream client connected (%d active)", self.subscriber_count)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscribers.discard(subscription)
        logger.debug("Stream client disconnected (%d active)", self.subscriber_count)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, name: str, thread: ThreadRecord) -> None:
        event = ThreadEvent(name=name, thread=thread)
        with self._lock:
            subscribers = list(self._subscribers)
        for subscription in subscribers:
            subscription.deliver(event)
