"""
Change feed factory.
Configures which change feed implementation to use.
"""

from typing import Optional

from maddi.core.config import get_settings
from maddi.services.interfaces.change_feed import ChangeFeed
from maddi.services.interfaces.memory_change_feed import InProcessChangeFeed
from maddi.services.redis_change_feed import RedisChangeFeed


def build_change_feed() -> ChangeFeed:
    """
    Build the configured feed.

    - memory: InProcessChangeFeed (single process)
    - redis: RedisChangeFeed (multiple workers)
    """
    backend = get_settings().CHANGE_FEED_BACKEND
    if backend == "redis":
        return RedisChangeFeed()
    return InProcessChangeFeed()


# Singleton instance
_feed: Optional[ChangeFeed] = None


def get_change_feed() -> ChangeFeed:
    """Get change feed singleton."""
    global _feed
    if _feed is None:
        _feed = build_change_feed()
    return _feed
