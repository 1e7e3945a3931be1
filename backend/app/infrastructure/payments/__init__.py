"""
Payments Infrastructure Module

Stripe payment processing and subscription lookups.
"""

from app.infrastructure.payments.stripe_service import (
    StripeService,
    StripeServiceError,
    SubscriptionNotFoundError,
    PriceNotConfiguredError,
)

__all__ = [
    "StripeService",
    "StripeServiceError",
    "SubscriptionNotFoundError",
    "PriceNotConfiguredError",
]
