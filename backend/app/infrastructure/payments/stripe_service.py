"""
Stripe Payment Service

Infrastructure adapter for Stripe. Handles customers, hosted checkout,
the billing portal, subscription lookups and webhook verification.

Every method returns plain dictionaries so callers never depend on
Stripe SDK object types.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import stripe
from stripe import StripeError, StripeObject

from app.domain.subscription import PlanType
from app.infrastructure.exceptions import HaircutFunError


logger = logging.getLogger(__name__)

# One-time "unlock pro" payment (legacy flow), in cents
LEGACY_UNLOCK_AMOUNT = 499
LEGACY_UNLOCK_CURRENCY = "usd"


class StripeServiceError(HaircutFunError):
    """Base exception for Stripe service errors."""
    pass


class SubscriptionNotFoundError(StripeServiceError):
    """Raised when Stripe reports no such subscription."""
    pass


class PriceNotConfiguredError(StripeServiceError):
    """Raised when a plan has no purchasable price."""
    pass


def _to_dict(obj: Any) -> Dict[str, Any]:
    """Convert a Stripe object into plain nested dicts."""
    if obj is None:
        return {}
    if isinstance(obj, StripeObject):
        return obj.to_dict()
    return dict(obj)


def _is_missing_resource(error: StripeError) -> bool:
    code = getattr(error, "code", None)
    return code == "resource_missing" or "No such subscription" in str(error)


def timestamp_to_datetime(value: Optional[int]) -> Optional[datetime]:
    """Convert a Stripe unix timestamp to an aware UTC datetime."""
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def subscription_period(subscription: Dict[str, Any]) -> Dict[str, Optional[datetime]]:
    """
    Read the billing period bounds of a subscription.

    Newer API versions moved the bounds onto the subscription items, so
    fall back to the first item when the top-level fields are absent.
    """
    start = subscription.get("current_period_start")
    end = subscription.get("current_period_end")

    if start is None or end is None:
        items = (subscription.get("items") or {}).get("data") or []
        if items:
            start = start if start is not None else items[0].get("current_period_start")
            end = end if end is not None else items[0].get("current_period_end")

    return {
        "current_period_start": timestamp_to_datetime(start),
        "current_period_end": timestamp_to_datetime(end),
    }


class StripeService:
    """
    Stripe payment processing service.

    Constructed explicitly with its credentials; the request-scoped
    provider in ``app.api.dependencies`` caches one instance.

    Args:
        api_key: Stripe secret key
        webhook_secret: Signing secret of the webhook endpoint
        price_ids: Price ID per purchasable plan
    """

    def __init__(
        self,
        api_key: str,
        webhook_secret: str,
        price_ids: Optional[Dict[PlanType, str]] = None,
    ):
        self._api_key = api_key
        self._webhook_secret = webhook_secret
        self._price_ids = {
            plan: price_id
            for plan, price_id in (price_ids or {}).items()
            if price_id
        }

    @property
    def price_ids(self) -> Dict[PlanType, str]:
        return dict(self._price_ids)

    def price_id_for(self, plan_type: PlanType) -> str:
        """Get the Stripe Price ID for a paid plan."""
        price_id = self._price_ids.get(plan_type)
        if plan_type == PlanType.FREE or not price_id:
            raise PriceNotConfiguredError(
                f"Price ID not configured for plan: {plan_type.value}",
                details={"plan_type": plan_type.value},
            )
        return price_id

    def _fail(self, action: str, error: StripeError) -> StripeServiceError:
        logger.error(f"Stripe {action} failed: {error}")
        message = getattr(error, "user_message", None) or str(error)
        return StripeServiceError(
            f"Failed to {action}: {message}",
            details={"stripe_code": getattr(error, "code", None)},
            original_error=error,
        )

    # =========================================================================
    # Customer Management
    # =========================================================================

    async def create_customer(
        self,
        user_id: str,
        email: str,
        name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a new Stripe customer.

        Args:
            user_id: Internal user ID (stored in metadata)
            email: Customer email for receipts
            name: Optional customer name
        """
        try:
            customer = stripe.Customer.create(
                email=email,
                name=name,
                metadata={"user_id": user_id},
                api_key=self._api_key,
            )
            customer = _to_dict(customer)
            logger.info(f"Created Stripe customer {customer.get('id')} for user {user_id}")
            return customer

        except StripeError as e:
            raise self._fail("create customer", e)

    async def list_customers_by_email(self, email: str) -> List[Dict[str, Any]]:
        """Find customers registered with the given email."""
        try:
            result = stripe.Customer.list(email=email, limit=10, api_key=self._api_key)
            return _to_dict(result).get("data", [])
        except StripeError as e:
            raise self._fail("list customers", e)

    # =========================================================================
    # Checkout Session (Subscription Flow)
    # =========================================================================

    async def create_checkout_session(
        self,
        customer_id: str,
        plan_type: PlanType,
        user_id: str,
        success_url: str,
        cancel_url: str,
    ) -> Dict[str, Any]:
        """
        Create a hosted Checkout Session in subscription mode.

        ``user_id`` and ``plan_type`` go into both the session and the
        subscription metadata; webhooks rely on the latter to infer the
        plan later.
        """
        price_id = self.price_id_for(plan_type)
        metadata = {"user_id": user_id, "plan_type": plan_type.value}

        try:
            session = stripe.checkout.Session.create(
                customer=customer_id,
                payment_method_types=["card"],
                line_items=[{"price": price_id, "quantity": 1}],
                mode="subscription",
                success_url=success_url,
                cancel_url=cancel_url,
                allow_promotion_codes=True,
                metadata=metadata,
                subscription_data={"metadata": metadata},
                api_key=self._api_key,
            )
            session = _to_dict(session)
            logger.info(
                f"Created checkout session {session.get('id')} for user {user_id}, "
                f"plan={plan_type.value}"
            )
            return session

        except StripeError as e:
            raise self._fail("create checkout", e)

    # =========================================================================
    # Customer Portal
    # =========================================================================

    async def create_portal_session(
        self,
        customer_id: str,
        return_url: str,
    ) -> Dict[str, Any]:
        """Create a Billing Portal session for self-service management."""
        try:
            session = stripe.billing_portal.Session.create(
                customer=customer_id,
                return_url=return_url,
                api_key=self._api_key,
            )
            logger.info(f"Created portal session for customer {customer_id}")
            return _to_dict(session)

        except StripeError as e:
            raise self._fail("create portal", e)

    # =========================================================================
    # Subscription, Price and Product Queries
    # =========================================================================

    async def get_subscription(self, subscription_id: str) -> Dict[str, Any]:
        """
        Retrieve a subscription by ID.

        Raises:
            SubscriptionNotFoundError: Stripe has no such subscription
            StripeServiceError: Any other Stripe failure
        """
        try:
            subscription = stripe.Subscription.retrieve(subscription_id, api_key=self._api_key)
            return _to_dict(subscription)
        except StripeError as e:
            if _is_missing_resource(e):
                logger.warning(f"Stripe subscription {subscription_id} does not exist")
                raise SubscriptionNotFoundError(
                    f"No such subscription: {subscription_id}",
                    original_error=e,
                )
            raise self._fail("retrieve subscription", e)

    async def list_customer_subscriptions(
        self,
        customer_id: str,
        limit: int = 10,
    ) -> List[Dict[str, Any]]:
        """List subscriptions of a customer in any status, newest first."""
        try:
            result = stripe.Subscription.list(
                customer=customer_id,
                status="all",
                limit=limit,
                api_key=self._api_key,
            )
            return _to_dict(result).get("data", [])
        except StripeError as e:
            raise self._fail("list subscriptions", e)

    async def retrieve_price(self, price_id: str) -> Dict[str, Any]:
        """Retrieve a price with its product expanded."""
        try:
            price = stripe.Price.retrieve(price_id, expand=["product"], api_key=self._api_key)
            return _to_dict(price)
        except StripeError as e:
            raise self._fail("retrieve price", e)

    async def retrieve_product(self, product_id: str) -> Dict[str, Any]:
        try:
            return _to_dict(stripe.Product.retrieve(product_id, api_key=self._api_key))
        except StripeError as e:
            raise self._fail("retrieve product", e)

    # =========================================================================
    # One-time Unlock (Payment Intents)
    # =========================================================================

    async def create_payment_intent(self, user_id: str, email: Optional[str] = None) -> Dict[str, Any]:
        """Create the legacy $4.99 one-time unlock payment."""
        try:
            intent = stripe.PaymentIntent.create(
                amount=LEGACY_UNLOCK_AMOUNT,
                currency=LEGACY_UNLOCK_CURRENCY,
                automatic_payment_methods={"enabled": True},
                receipt_email=email,
                metadata={"user_id": user_id, "product": "pro_unlock"},
                api_key=self._api_key,
            )
            intent = _to_dict(intent)
            logger.info(f"Created payment intent {intent.get('id')} for user {user_id}")
            return intent
        except StripeError as e:
            raise self._fail("create payment intent", e)

    async def retrieve_payment_intent(self, payment_intent_id: str) -> Dict[str, Any]:
        try:
            return _to_dict(stripe.PaymentIntent.retrieve(payment_intent_id, api_key=self._api_key))
        except StripeError as e:
            raise self._fail("retrieve payment intent", e)

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    def verify_webhook_signature(
        self,
        payload: bytes,
        signature: str,
    ) -> Dict[str, Any]:
        """
        Verify webhook signature and construct the event.

        Args:
            payload: Raw request body
            signature: Stripe-Signature header

        Raises:
            StripeServiceError if the payload or signature is invalid
        """
        if not self._webhook_secret:
            raise StripeServiceError("STRIPE_WEBHOOK_SECRET is not set")

        try:
            event = stripe.Webhook.construct_event(
                payload,
                signature,
                self._webhook_secret,
            )
            return _to_dict(event)

        except ValueError as e:
            raise StripeServiceError(f"Invalid payload: {e}", original_error=e)
        except stripe.SignatureVerificationError as e:
            raise StripeServiceError(f"Invalid signature: {e}", original_error=e)
