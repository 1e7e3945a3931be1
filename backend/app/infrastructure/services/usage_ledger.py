"""
Usage Ledger

Per-user, per-month generation counter and its ceiling. Decides whether
an authenticated user may run another generation.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from app.domain.models import UsageRecord, UsageSnapshot
from app.domain.subscription import PlanType, get_plan_limit
from app.infrastructure.db.repositories import (
    SubscriptionRepository,
    UsageRepository,
    UserProfileRepository,
)


logger = logging.getLogger(__name__)


def month_year_of(now: datetime) -> str:
    """Calendar month key in UTC, ``YYYY-MM``."""
    return now.astimezone(timezone.utc).strftime("%Y-%m")


class UsageLedger:
    """
    Usage ledger service.

    Args:
        usage_repo: Monthly usage rows
        profile_repo: Profiles (for the ``has_pro_access`` override)
        subscription_repo: Subscriptions (for the implied plan)
        clock: Returns the current aware datetime, replaceable in tests
    """

    def __init__(
        self,
        usage_repo: UsageRepository,
        profile_repo: UserProfileRepository,
        subscription_repo: SubscriptionRepository,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._usage = usage_repo
        self._profiles = profile_repo
        self._subscriptions = subscription_repo
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def current_month_year(self) -> str:
        return month_year_of(self._clock())

    async def implied_plan(self, user_id: str) -> PlanType:
        """Plan of the effective subscription when it is entitled, else free."""
        subscription = await self._subscriptions.get_current(user_id)
        if subscription is not None and subscription.is_entitled:
            return subscription.plan_type
        return PlanType.FREE

    async def _current_record(self, user_id: str) -> UsageRecord:
        """Current month row, or an unsaved zero-usage row at the implied limit."""
        month_year = self.current_month_year()
        record = await self._usage.get(user_id, month_year)
        if record is None:
            plan = await self.implied_plan(user_id)
            record = UsageRecord(
                user_id=user_id,
                month_year=month_year,
                generations_used=0,
                plan_limit=get_plan_limit(plan),
            )
        return record

    async def can_generate(self, user_id: str) -> bool:
        """
        Check whether the user may run one more generation this month.

        The ``has_pro_access`` profile flag is an unlimited override.
        """
        profile = await self._profiles.get_by_user_id(user_id)
        if profile is not None and profile.has_pro_access:
            return True

        record = await self._current_record(user_id)
        return record.generations_used < record.plan_limit

    async def record_generation(self, user_id: str) -> int:
        """
        Count one generation against the current month.

        Returns:
            The new usage count
        """
        month_year = self.current_month_year()
        plan = await self.implied_plan(user_id)
        count = await self._usage.increment(user_id, month_year, get_plan_limit(plan))
        logger.info(f"User {user_id} used {count} generation(s) in {month_year}")
        return count

    async def sync_plan_limit(
        self,
        user_id: str,
        plan_type: PlanType,
        reset_usage: bool = False,
    ) -> UsageRecord:
        """Set this month's limit to the plan's contractual ceiling."""
        limit = get_plan_limit(plan_type)
        record = await self._usage.set_limit(
            user_id,
            self.current_month_year(),
            plan_limit=limit,
            reset_usage=reset_usage,
        )
        logger.info(
            f"Synced usage limit for user {user_id}: plan={plan_type.value}, "
            f"limit={limit}, reset={reset_usage}"
        )
        return record

    async def reset_to_free(self, user_id: str) -> UsageRecord:
        return await self.sync_plan_limit(user_id, PlanType.FREE, reset_usage=True)

    async def usage_snapshot(self, user_id: str) -> UsageSnapshot:
        profile = await self._profiles.get_by_user_id(user_id)
        record = await self._current_record(user_id)
        return UsageSnapshot(
            month_year=record.month_year,
            generations_used=record.generations_used,
            plan_limit=record.plan_limit,
            remaining=record.remaining,
            has_pro_access=bool(profile and profile.has_pro_access),
        )
