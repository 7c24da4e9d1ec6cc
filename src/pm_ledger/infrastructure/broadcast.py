"""In-process fan-out BroadcastSink.

Each subscriber owns a bounded asyncio.Queue. ``publish`` uses put_nowait
and never awaits: a subscriber whose queue is full is dropped (its queue is
drained and a ``None`` sentinel tells the reader to stop). Slow or
disconnected listeners therefore cannot stall the ledger.
"""

import asyncio
import logging

from src.pm_ledger.domain.events import MarketEvent

logger = logging.getLogger(__name__)


class Subscription:
    def __init__(self, maxsize: int) -> None:
        # +1 slot reserved for the close sentinel
        self._queue: asyncio.Queue[MarketEvent | None] = asyncio.Queue(maxsize=maxsize + 1)
        self._capacity = maxsize
        self.closed = False

    def offer(self, event: MarketEvent) -> bool:
        if self.closed or self._queue.qsize() >= self._capacity:
            return False
        self._queue.put_nowait(event)
        return True

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    async def get(self) -> MarketEvent | None:
        """Next event, or None once the subscription is closed."""
        return await self._queue.get()


class InProcessBroadcaster:
    def __init__(self, queue_size: int = 100) -> None:
        self._queue_size = queue_size
        self._subscribers: set[Subscription] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        sub = Subscription(self._queue_size)
        self._subscribers.add(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        self._subscribers.discard(sub)
        sub.close()

    def publish(self, event: MarketEvent) -> None:
        for sub in list(self._subscribers):
            if not sub.offer(event):
                logger.warning("Dropping slow subscriber (queue full)")
                self.unsubscribe(sub)

    def close(self) -> None:
        for sub in list(self._subscribers):
            self.unsubscribe(sub)
