"""
Connections to external systems (Redis) shared by the calendar cache and the
Redis change feed.
"""

from .redis_client import get_redis, close_redis

__all__ = ['get_redis', 'close_redis']
