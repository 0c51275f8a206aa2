"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .change_feed import ChangeFeed, Subscription
from .memory_change_feed import InProcessChangeFeed

__all__ = ['ChangeFeed', 'Subscription', 'InProcessChangeFeed']
