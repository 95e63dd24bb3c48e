"""In-process publish/subscribe broker for scan lifecycle events."""

import asyncio
import logging
from collections import defaultdict
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from typing import Any

logger = logging.getLogger(__name__)

SCAN_STARTED = "scan:started"
SCAN_PROGRESS = "scan:progress"
SCAN_COMPLETED = "scan:completed"
SCAN_FAILED = "scan:failed"

DEFAULT_QUEUE_SIZE = 256


def user_channel(user_id: int) -> str:
    return f"user:{user_id}"


def repository_channel(repository_id: int) -> str:
    return f"repository:{repository_id}"


class EventBroker:
    """
    Channel-scoped fan-out to subscriber queues.

    publish() never blocks and never waits for delivery: a subscriber whose
    queue is full misses the message (at-most-once). A subscriber listening
    on several channels that all receive the same publish gets it once.
    """

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self.queue_size = queue_size
        self._subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)

    def publish(self, channels: str | Iterable[str], event: str, payload: dict[str, Any]) -> int:
        """Deliver {"type": event, "data": payload} to every subscriber of the channels; return deliveries."""
        if isinstance(channels, str):
            channels = [channels]
        message = {"type": event, "data": payload}
        delivered = 0
        seen: set[int] = set()
        for channel in channels:
            for queue in list(self._subscribers.get(channel, ())):
                if id(queue) in seen:
                    continue
                seen.add(id(queue))
                try:
                    queue.put_nowait(message)
                    delivered += 1
                except asyncio.QueueFull:
                    logger.warning("Dropping %s event for slow subscriber on %s", event, channel)
        return delivered

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscribers.get(channel, ()))

    @asynccontextmanager
    async def subscribe(self, channels: Iterable[str]) -> AsyncIterator[asyncio.Queue]:
        """Register a queue on the channels for the duration of the block."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        names = list(dict.fromkeys(channels))
        for name in names:
            self._subscribers[name].add(queue)
        try:
            yield queue
        finally:
            for name in names:
                subscribers = self._subscribers.get(name)
                if subscribers is None:
                    continue
                subscribers.discard(queue)
                if not subscribers:
                    del self._subscribers[name]


broker = EventBroker()
