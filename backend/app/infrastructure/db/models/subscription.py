"""
Subscription Database Model

SQLModel table for subscription data persistence.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import DateTime, Index
from sqlmodel import Field

from app.infrastructure.db.models.base import TimestampMixin, UUIDMixin


class SubscriptionModel(UUIDMixin, TimestampMixin, table=True):
    """
    Subscription table for storing user subscription data.

    ``user_id`` is not unique: the effective subscription of a user is
    the most recently updated row.
    """

    __tablename__ = "subscriptions"
    __table_args__ = (
        Index("ix_subscriptions_user_updated", "user_id", "updated_at"),
    )

    user_id: UUID = Field(..., index=True, nullable=False)

    # Stripe IDs
    stripe_customer_id: Optional[str] = Field(default=None, index=True, max_length=255)
    stripe_subscription_id: Optional[str] = Field(default=None, index=True, max_length=255)

    # Subscription details
    status: str = Field(default="none", max_length=20)
    plan_type: str = Field(default="free", max_length=20)

    # Billing period dates
    current_period_start: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    current_period_end: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
