"""
Subscription Status Cache

Small in-process TTL cache keyed by user ID. It only saves database
round-trips; the subscriptions table stays the source of truth.
"""

import logging
import time
from typing import Callable, Dict, Generic, Optional, Tuple, TypeVar


logger = logging.getLogger(__name__)

V = TypeVar("V")


class SubscriptionStatusCache(Generic[V]):
    """
    TTL cache with explicit invalidation.

    Args:
        ttl_seconds: Freshness window for each entry
        clock: Monotonic clock, replaceable in tests
    """

    def __init__(
        self,
        ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, V]] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, user_id: str) -> Optional[V]:
        entry = self._entries.get(user_id)
        if entry is None:
            return None

        stored_at, value = entry
        if self._clock() - stored_at >= self._ttl:
            del self._entries[user_id]
            return None
        return value

    def set(self, user_id: str, value: V) -> None:
        now = self._clock()
        self._prune(now)
        self._entries[user_id] = (now, value)

    def _prune(self, now: float) -> None:
        """Drop every expired entry, including users never read again."""
        expired = [key for key, (stored_at, _) in self._entries.items() if now - stored_at >= self._ttl]
        for key in expired:
            del self._entries[key]

    def invalidate(self, user_id: Optional[str] = None) -> None:
        """Drop one user's entry, or everything when no user is given."""
        if user_id is None:
            self._entries.clear()
            logger.debug("Subscription status cache cleared")
        else:
            self._entries.pop(user_id, None)

    def __len__(self) -> int:
        return len(self._entries)
