"""
In-process change feed backed by asyncio queues.
Only reaches subscribers living in the same process.
"""

import asyncio
from collections import defaultdict
from typing import AsyncIterator, Optional

from maddi.services.interfaces.change_feed import ChangeFeed, Subscription

# Queued by close() to wake a consumer blocked on get()
_CLOSED = None


class InProcessSubscription(Subscription):
    def __init__(self, feed: "InProcessChangeFeed", billboard_id: int):
        self._feed = feed
        self.billboard_id = billboard_id
        self.queue: asyncio.Queue[Optional[int]] = asyncio.Queue()
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[int]:
        while not self.closed:
            billboard_id = await self.queue.get()
            if billboard_id is _CLOSED:
                break
            yield billboard_id

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._feed._remove(self)
            self.queue.put_nowait(_CLOSED)


class InProcessChangeFeed(ChangeFeed):
    """
    Use when:
    - Single worker (development, tests)
    - Redis is not available
    """

    def __init__(self):
        self._subscribers: dict[int, set[InProcessSubscription]] = defaultdict(set)

    async def publish(self, billboard_id: int) -> None:
        for subscription in list(self._subscribers.get(billboard_id, ())):
            subscription.queue.put_nowait(billboard_id)

    async def subscribe(self, billboard_id: int) -> Subscription:
        subscription = InProcessSubscription(self, billboard_id)
        self._subscribers[billboard_id].add(subscription)
        return subscription

    def subscriber_count(self, billboard_id: int) -> int:
        return len(self._subscribers.get(billboard_id, ()))

    def _remove(self, subscription: InProcessSubscription) -> None:
        subscribers = self._subscribers.get(subscription.billboard_id)
        if subscribers is None:
            return
        subscribers.discard(subscription)
        if not subscribers:
            del self._subscribers[subscription.billboard_id]
