"""Progress channel - fans scan events out to subscribers."""

import asyncio
import logging
from collections import deque

from hologram.config import settings
from hologram.schemas.photo import ScanEvent

logger = logging.getLogger(__name__)

_CLOSED = object()

# Scans run one at a time, so only the most recent ids can still emit late events
FINISHED_SCAN_HISTORY = 16


class Subscription:
    """One subscriber's view of the progress stream.

    Iterate with ``async for``; iteration ends after the first terminal event
    (complete, cancelled or failed) or when the subscription is closed. Use as
    an async context manager, or call ``close()``, to release it.
    """

    def __init__(self, channel: "ProgressChannel", max_size: int):
        self._channel = channel
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_size)
        self._closed = False
        self._finished = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def _force_put(self, item) -> None:
        """Enqueue even when full by evicting the oldest queued item."""
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(item)

    def deliver(self, event: ScanEvent) -> None:
        if self._closed:
            return
        if event.is_terminal:
            self._force_put(event)
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            # Slow consumer: skip intermediate progress rather than block the scan
            self.dropped += 1

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._channel.unsubscribe(self)
        self._force_put(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ScanEvent:
        if self._finished:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self._finished = True
            raise StopAsyncIteration
        if item.is_terminal:
            self._finished = True
            self.close()
        return item

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


class ProgressChannel:
    """Single-producer, multi-subscriber event stream for scans."""

    def __init__(self, max_queue_size: int | None = None):
        self._max_queue_size = max_queue_size or settings.progress_queue_size
        self._subscribers: list[Subscription] = []
        self._finished_scans: deque[str] = deque(maxlen=FINISHED_SCAN_HISTORY)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        subscription = Subscription(self, self._max_queue_size)
        self._subscribers.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)

    def publish(self, event: ScanEvent) -> None:
        scan_id = event.progress.scan_id
        if scan_id in self._finished_scans:
            logger.debug("Dropping %s for finished scan %s", event.event.value, scan_id)
            return
        if event.is_terminal:
            self._finished_scans.append(scan_id)
        for subscription in list(self._subscribers):
            subscription.deliver(event)
