"""
Subscription Repository

Data access layer for subscription persistence.
Maps SubscriptionModel rows to the Subscription domain entity.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.db.models.base import utcnow
from app.infrastructure.db.models.subscription import SubscriptionModel
from app.infrastructure.db.repositories.base_repository import BaseRepository, to_uuid
from app.infrastructure.exceptions import NotFoundError
from app.domain.subscription import (
    PlanType,
    Subscription,
    status_from_stripe,
)


logger = logging.getLogger(__name__)


class SubscriptionRepository(BaseRepository[SubscriptionModel]):
    """
    Repository for subscription data access.

    A user may own several rows; every query resolves the effective one
    as the most recent by ``updated_at`` then ``created_at``.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(SubscriptionModel, session)

    # =========================================================================
    # Query Methods
    # =========================================================================

    def _latest(self):
        return (
            select(SubscriptionModel)
            .order_by(
                SubscriptionModel.updated_at.desc(),
                SubscriptionModel.created_at.desc(),
            )
            .limit(1)
        )

    async def get_current(self, user_id: str) -> Optional[Subscription]:
        """Get the effective subscription of a user."""
        stmt = self._latest().where(SubscriptionModel.user_id == to_uuid(user_id))
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def get_current_by_customer_id(
        self,
        stripe_customer_id: str,
    ) -> Optional[Subscription]:
        """Get the most recent subscription row carrying a Stripe customer ID."""
        stmt = self._latest().where(
            SubscriptionModel.stripe_customer_id == stripe_customer_id
        )
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    # =========================================================================
    # Command Methods
    # =========================================================================

    async def create(self, subscription: Subscription) -> Subscription:
        """Insert a new subscription row."""
        now = utcnow()
        model = SubscriptionModel(
            user_id=to_uuid(subscription.user_id),
            stripe_customer_id=subscription.stripe_customer_id,
            stripe_subscription_id=subscription.stripe_subscription_id,
            status=subscription.status.value,
            plan_type=subscription.plan_type.value,
            current_period_start=subscription.current_period_start,
            current_period_end=subscription.current_period_end,
            created_at=now,
            updated_at=now,
        )
        model = await self._add(model)

        logger.info(f"Created subscription {model.id} for user {model.user_id}")
        return self._to_domain(model)

    async def update(self, subscription: Subscription) -> Subscription:
        """
        Overwrite an existing row with the entity's values.

        Raises:
            NotFoundError: The row no longer exists
        """
        model = await self.get_by_id(subscription.id) if subscription.id else None
        if model is None:
            raise NotFoundError(
                f"Subscription {subscription.id} not found",
                operation="update",
                table="subscriptions",
            )

        model.stripe_customer_id = subscription.stripe_customer_id
        model.stripe_subscription_id = subscription.stripe_subscription_id
        model.status = subscription.status.value
        model.plan_type = subscription.plan_type.value
        model.current_period_start = subscription.current_period_start
        model.current_period_end = subscription.current_period_end
        model.updated_at = utcnow()

        model = await self._add(model)
        logger.info(
            f"Updated subscription {model.id} for user {model.user_id}: "
            f"status={model.status}, plan={model.plan_type}"
        )
        return self._to_domain(model)

    async def save(self, subscription: Subscription) -> Subscription:
        """Create or update depending on whether the entity has an ID."""
        if subscription.id:
            return await self.update(subscription)
        return await self.create(subscription)

    # =========================================================================
    # Mapping Methods
    # =========================================================================

    def _to_domain(self, model: SubscriptionModel) -> Subscription:
        """Convert database model to domain entity."""
        try:
            plan_type = PlanType(model.plan_type)
        except ValueError:
            plan_type = PlanType.FREE

        return Subscription(
            id=str(model.id),
            user_id=str(model.user_id),
            stripe_customer_id=model.stripe_customer_id,
            stripe_subscription_id=model.stripe_subscription_id,
            status=status_from_stripe(model.status),
            plan_type=plan_type,
            current_period_start=model.current_period_start,
            current_period_end=model.current_period_end,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
