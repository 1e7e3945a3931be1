"""
Subscription Domain Models

Enums, entities and DTOs for the subscription bounded context,
plus the plan limit table shared by the usage ledger and reconciler.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class PlanType(str, Enum):
    """Entitlement tier a user is inferred to hold."""
    FREE = "free"
    PRO = "pro"
    PREMIUM = "premium"


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status."""
    ACTIVE = "active"
    CANCELED = "canceled"
    PAST_DUE = "past_due"
    INCOMPLETE = "incomplete"
    TRIALING = "trialing"
    NONE = "none"


PAID_PLANS = frozenset({PlanType.PRO, PlanType.PREMIUM})

# Statuses under which an ambiguous plan inference must not revoke a paid plan
ACTIVE_ISH_STATUSES = frozenset({
    SubscriptionStatus.ACTIVE,
    SubscriptionStatus.TRIALING,
    SubscriptionStatus.PAST_DUE,
    SubscriptionStatus.INCOMPLETE,
})

# Statuses that currently entitle the holder to their plan's quota
ENTITLED_STATUSES = frozenset({
    SubscriptionStatus.ACTIVE,
    SubscriptionStatus.TRIALING,
})

# Stripe statuses outside our local set
_STRIPE_STATUS_ALIASES = {
    "unpaid": SubscriptionStatus.PAST_DUE,
    "incomplete_expired": SubscriptionStatus.CANCELED,
    "paused": SubscriptionStatus.CANCELED,
}


def status_from_stripe(value: Optional[str]) -> SubscriptionStatus:
    """Map a Stripe subscription status onto the local status set."""
    if not value:
        return SubscriptionStatus.NONE
    try:
        return SubscriptionStatus(value)
    except ValueError:
        return _STRIPE_STATUS_ALIASES.get(value, SubscriptionStatus.NONE)


# =============================================================================
# Domain Entities
# =============================================================================

class Subscription(BaseModel):
    """Core subscription domain entity (one row of the subscriptions table)."""
    id: Optional[str] = None
    user_id: str
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    status: SubscriptionStatus = SubscriptionStatus.NONE
    plan_type: PlanType = PlanType.FREE
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_paid(self) -> bool:
        return self.plan_type in PAID_PLANS

    @property
    def is_entitled(self) -> bool:
        """Whether this subscription currently grants its paid quota."""
        return self.is_paid and self.status in ENTITLED_STATUSES


class SubscriptionStatusView(BaseModel):
    """
    Derived view of a user's effective subscription.

    ``error`` is set when the status could not be determined; in that
    case the remaining fields hold the free-plan defaults.
    """
    is_active: bool = False
    plan_type: PlanType = PlanType.FREE
    status: SubscriptionStatus = SubscriptionStatus.NONE
    subscription: Optional[Subscription] = None
    has_valid_subscription: bool = False
    is_expired: bool = False
    days_until_expiry: Optional[int] = None
    error: Optional[str] = None

    @classmethod
    def from_subscription(
        cls,
        subscription: Optional[Subscription],
        now: Optional[datetime] = None,
    ) -> "SubscriptionStatusView":
        """Validate a stored row the way the status checker always has."""
        if subscription is None:
            return cls()

        now = now or datetime.now(timezone.utc)
        is_status_active = subscription.status == SubscriptionStatus.ACTIVE

        is_expired = False
        days_until_expiry = None
        end = subscription.current_period_end
        if end is not None:
            if end.tzinfo is None:
                end = end.replace(tzinfo=timezone.utc)
            is_expired = end < now
            if not is_expired:
                remaining = (end - now).total_seconds()
                days_until_expiry = int(-(-remaining // 86400))

        has_stripe_data = bool(
            subscription.stripe_customer_id and subscription.stripe_subscription_id
        )
        is_test = any(
            (value or "").startswith("test_")
            for value in (subscription.stripe_customer_id, subscription.stripe_subscription_id)
        )
        is_valid = is_status_active and not is_expired and (has_stripe_data or is_test)

        return cls(
            is_active=is_valid,
            plan_type=subscription.plan_type,
            status=subscription.status,
            subscription=subscription,
            has_valid_subscription=is_valid,
            is_expired=is_expired,
            days_until_expiry=days_until_expiry,
        )


# =============================================================================
# Request/Response DTOs
# =============================================================================

class CreateCheckoutRequest(BaseModel):
    """Request DTO for creating a checkout session."""
    plan_type: PlanType = Field(..., alias="planType", description="Plan to purchase")

    model_config = ConfigDict(populate_by_name=True)


class CheckoutResponse(BaseModel):
    """Response DTO for checkout session creation."""
    session_id: str = Field(..., serialization_alias="sessionId")
    url: Optional[str] = None


class PortalResponse(BaseModel):
    """Response DTO for portal session creation."""
    url: str


class RefreshSubscriptionRequest(BaseModel):
    """Request DTO for a manual refresh from Stripe."""
    user_id: str = Field(..., alias="userId")

    model_config = ConfigDict(populate_by_name=True)


class RefreshSubscriptionResponse(BaseModel):
    """Response DTO for a manual refresh from Stripe."""
    success: bool = True
    subscription: Optional[Subscription] = None
    message: str


# =============================================================================
# Plan Configuration (Business Logic)
# =============================================================================

PLAN_LIMITS = {
    PlanType.FREE: 1,
    PlanType.PRO: 25,
    PlanType.PREMIUM: 75,
}


def get_plan_limit(plan_type: PlanType) -> int:
    """Monthly generation ceiling for a plan."""
    return PLAN_LIMITS[plan_type]
