"""
Checkout Service

Orchestrates checkout sessions, billing portal sessions and the legacy
one-time unlock payment. Combines identity, local subscription state and
the Stripe adapter.
"""

import logging
from typing import Any, Dict

from app.domain.models import AuthenticatedUser, Payment, PaymentStatus
from app.domain.subscription import (
    ACTIVE_ISH_STATUSES,
    PlanType,
    Subscription,
    SubscriptionStatus,
)
from app.infrastructure.db.repositories import (
    PaymentRepository,
    SubscriptionRepository,
    UserProfileRepository,
)
from app.infrastructure.exceptions import (
    CheckoutError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.infrastructure.payments.stripe_service import (
    PriceNotConfiguredError,
    StripeService,
    StripeServiceError,
)


logger = logging.getLogger(__name__)


class CheckoutService:
    """
    Args:
        stripe_service: Stripe adapter
        subscription_repo: Local subscription rows
        profile_repo: Profiles (pro-access flag)
        payment_repo: Ledger of one-time unlock payments
    """

    def __init__(
        self,
        stripe_service: StripeService,
        subscription_repo: SubscriptionRepository,
        profile_repo: UserProfileRepository,
        payment_repo: PaymentRepository,
    ):
        self._stripe = stripe_service
        self._subscriptions = subscription_repo
        self._profiles = profile_repo
        self._payments = payment_repo

    async def _ensure_not_pro(self, user_id: str) -> None:
        profile = await self._profiles.get_by_user_id(user_id)
        if profile is not None and profile.has_pro_access:
            raise ConflictError("User already has pro access")

    async def _resolve_customer_id(self, user: AuthenticatedUser) -> str:
        """
        Reuse the stored Stripe customer or create one.

        A new customer ID is persisted right away, on a placeholder row
        when the user has no subscription yet.
        """
        existing = await self._subscriptions.get_current(user.id)
        if existing is not None and existing.stripe_customer_id:
            return existing.stripe_customer_id

        if not user.email:
            raise ValidationError("User email not found")

        customer = await self._stripe.create_customer(
            user_id=user.id,
            email=user.email,
            name=user.full_name,
        )
        customer_id = customer["id"]

        if existing is not None:
            await self._subscriptions.update(
                existing.model_copy(update={"stripe_customer_id": customer_id})
            )
        else:
            await self._subscriptions.create(Subscription(
                user_id=user.id,
                stripe_customer_id=customer_id,
                status=SubscriptionStatus.NONE,
                plan_type=PlanType.FREE,
            ))
        return customer_id

    async def _validate_price(self, plan_type: PlanType) -> str:
        try:
            price_id = self._stripe.price_id_for(plan_type)
        except PriceNotConfiguredError as e:
            raise CheckoutError(e.message, details=e.details, original_error=e)

        try:
            price = await self._stripe.retrieve_price(price_id)
        except StripeServiceError as e:
            raise CheckoutError(
                f"Price {price_id} is not available in the current Stripe mode. "
                "Check that the price ID matches the secret key (test vs live).",
                details={"price_id": price_id},
                original_error=e,
            )

        if price.get("active") is False:
            raise CheckoutError(f"Price {price_id} is archived", details={"price_id": price_id})
        return price_id

    async def create_checkout_session(
        self,
        user: AuthenticatedUser,
        plan_type: PlanType,
        success_url: str,
        cancel_url: str,
    ) -> Dict[str, Any]:
        """
        Create a subscription-mode checkout session for a paid plan.

        Raises:
            ValidationError: Plan is not purchasable or email is missing
            ConflictError: User already holds pro access
            CheckoutError: Price lookup or Stripe call failed
        """
        if plan_type == PlanType.FREE:
            raise ValidationError("Invalid plan type")

        await self._ensure_not_pro(user.id)
        await self._validate_price(plan_type)
        customer_id = await self._resolve_customer_id(user)

        try:
            return await self._stripe.create_checkout_session(
                customer_id=customer_id,
                plan_type=plan_type,
                user_id=user.id,
                success_url=success_url,
                cancel_url=cancel_url,
            )
        except StripeServiceError as e:
            raise CheckoutError(e.message, original_error=e)

    async def create_portal_session(self, user: AuthenticatedUser, return_url: str) -> Dict[str, Any]:
        """
        Open the billing portal for a paying customer.

        Raises:
            NotFoundError: No active paid subscription with a customer ID
        """
        subscription = await self._subscriptions.get_current(user.id)
        if (
            subscription is None
            or not subscription.is_paid
            or subscription.status not in ACTIVE_ISH_STATUSES
            or not subscription.stripe_customer_id
        ):
            raise NotFoundError("No active subscription found", operation="portal", table="subscriptions")

        try:
            return await self._stripe.create_portal_session(
                customer_id=subscription.stripe_customer_id,
                return_url=return_url,
            )
        except StripeServiceError as e:
            raise CheckoutError(e.message, original_error=e)

    # =========================================================================
    # Legacy One-time Unlock
    # =========================================================================

    async def create_unlock_payment(self, user: AuthenticatedUser) -> Dict[str, Any]:
        await self._ensure_not_pro(user.id)
        try:
            intent = await self._stripe.create_payment_intent(user.id, user.email)
        except StripeServiceError as e:
            raise CheckoutError(e.message, original_error=e)
        return {
            "client_secret": intent.get("client_secret"),
            "payment_intent_id": intent.get("id"),
        }

    async def confirm_unlock_payment(self, user: AuthenticatedUser, payment_intent_id: str) -> None:
        """
        Grant pro access once the user's unlock payment has succeeded.

        The payment is recorded in the ledger; a webhook for the same
        intent updates that row instead of adding one.

        Raises:
            ValidationError: Payment not completed
            PermissionDeniedError: Payment belongs to another user
        """
        try:
            intent = await self._stripe.retrieve_payment_intent(payment_intent_id)
        except StripeServiceError as e:
            raise CheckoutError(e.message, original_error=e)

        if intent.get("status") != "succeeded":
            raise ValidationError("Payment not completed")

        if (intent.get("metadata") or {}).get("user_id") != user.id:
            logger.warning(f"Payment {payment_intent_id} does not belong to user {user.id}")
            raise PermissionDeniedError("Payment verification failed")

        await self._payments.record(Payment.from_intent(user.id, intent, PaymentStatus.SUCCEEDED))
        await self._profiles.set_pro_access(user.id, True)
        logger.info(f"Granted pro access to user {user.id} via payment {payment_intent_id}")
