"""
Change feed interface.
Pushes "bookings or blocked dates changed" events per billboard so callers can
re-run the availability evaluator on a fresh snapshot.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator


class Subscription(ABC):
    """
    Handle returned by `ChangeFeed.subscribe`.

    Iterate it to receive the billboard id every time that billboard's
    availability inputs change; `close()` cancels the subscription.
    """

    @abstractmethod
    def __aiter__(self) -> AsyncIterator[int]:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


class ChangeFeed(ABC):
    """
    Implementations:
    - InProcessChangeFeed: asyncio queues, single process only
    - RedisChangeFeed: Redis pub/sub, shared across workers
    """

    @abstractmethod
    async def publish(self, billboard_id: int) -> None:
        """Announce that a billboard's bookings or blocked dates changed."""
        pass

    @abstractmethod
    async def subscribe(self, billboard_id: int) -> Subscription:
        """Start receiving change events for one billboard."""
        pass
