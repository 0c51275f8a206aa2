"""
Change feed over Redis pub/sub.
Implements ChangeFeed so every API worker sees every availability change.

Channel per billboard: "availability:{billboard_id}". Publishing is best
effort; the database stays authoritative and subscribers simply refetch.
"""

from typing import AsyncIterator

from maddi.core import errors
from maddi.core.logging import get_logger
from maddi.infrastructure.redis_client import get_redis
from maddi.services.interfaces.change_feed import ChangeFeed, Subscription

logger = get_logger(__name__)


def channel_for(billboard_id: int) -> str:
    return f"availability:{billboard_id}"


class RedisSubscription(Subscription):
    def __init__(self, pubsub, billboard_id: int):
        self._pubsub = pubsub
        self.billboard_id = billboard_id
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[int]:
        async for message in self._pubsub.listen():
            if self.closed:
                break
            if message.get("type") == "message":
                yield self.billboard_id

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self._pubsub.unsubscribe(channel_for(self.billboard_id))
        await self._pubsub.aclose()


class RedisChangeFeed(ChangeFeed):
    """
    Use when:
    - More than one API worker serves availability streams
    """

    async def publish(self, billboard_id: int) -> None:
        client = await get_redis()
        if not client:
            logger.warning("change_feed_unavailable", billboard_id=billboard_id)
            return
        await client.publish(channel_for(billboard_id), "changed")

    async def subscribe(self, billboard_id: int) -> Subscription:
        client = await get_redis()
        if not client:
            logger.warning("change_feed_subscribe_unavailable", billboard_id=billboard_id)
            raise errors.ServiceUnavailable("Live availability is temporarily unavailable")
        pubsub = client.pubsub()
        await pubsub.subscribe(channel_for(billboard_id))
        return RedisSubscription(pubsub, billboard_id)
