"""
Subscription Status Service

Derives the effective subscription status of a user with a bounded
database wait and a short-lived cache.
"""

import asyncio
import logging
from typing import Optional

from app.domain.subscription import SubscriptionStatusView
from app.infrastructure.cache import SubscriptionStatusCache
from app.infrastructure.db.repositories import SubscriptionRepository


logger = logging.getLogger(__name__)


class SubscriptionStatusService:
    """
    Args:
        subscription_repo: Local subscription rows
        cache: Status cache shared across requests
        timeout_seconds: Longest wait for the database query
    """

    def __init__(
        self,
        subscription_repo: SubscriptionRepository,
        cache: Optional[SubscriptionStatusCache] = None,
        timeout_seconds: float = 8.0,
    ):
        self._subscriptions = subscription_repo
        self._cache = cache
        self._timeout = timeout_seconds

    async def get_status(self, user_id: str, force_refresh: bool = False) -> SubscriptionStatusView:
        """
        Get the user's effective subscription status.

        Never raises for lookup failures: a timeout or database error
        yields the free default with ``error`` set, and is not cached.
        """
        if not user_id:
            return SubscriptionStatusView(error="No user ID provided")

        if self._cache is not None and not force_refresh:
            cached = self._cache.get(user_id)
            if cached is not None:
                return cached

        try:
            subscription = await asyncio.wait_for(
                self._subscriptions.get_current(user_id),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Subscription status query timed out for user {user_id}")
            return SubscriptionStatusView(error="Subscription query timeout")
        except Exception as e:
            logger.error(f"Subscription status query failed for user {user_id}: {e}")
            return SubscriptionStatusView(error=f"Database error: {e}")

        view = SubscriptionStatusView.from_subscription(subscription)
        if self._cache is not None:
            self._cache.set(user_id, view)
        return view
