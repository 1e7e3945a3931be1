"""
Subscription Reconciler

Keeps the local subscriptions table consistent with Stripe. Driven by
webhook events and by explicit refresh requests.

Each transition:
- infers the plan from Stripe data (see ``app.domain.plan_inference``)
- applies the downgrade guard
- upserts the effective subscription row
- re-syncs the current month's usage limit
- invalidates the user's cached status
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from app.domain.models import Payment, PaymentStatus
from app.domain.plan_inference import InferenceContext, infer_plan_type
from app.domain.subscription import (
    ACTIVE_ISH_STATUSES,
    PlanType,
    RefreshSubscriptionResponse,
    Subscription,
    SubscriptionStatus,
    status_from_stripe,
)
from app.infrastructure.cache import SubscriptionStatusCache
from app.infrastructure.db.repositories import (
    PaymentRepository,
    SubscriptionRepository,
    UserProfileRepository,
)
from app.infrastructure.exceptions import ReconciliationError
from app.infrastructure.payments.stripe_service import (
    StripeService,
    StripeServiceError,
    SubscriptionNotFoundError,
    subscription_period,
)
from app.infrastructure.services.usage_ledger import UsageLedger


logger = logging.getLogger(__name__)


EventHandler = Callable[[Dict[str, Any], str], Awaitable[None]]


def _object_id(value: Any) -> Optional[str]:
    """Stripe references are either an ID string or an expanded object."""
    if isinstance(value, dict):
        return value.get("id")
    return value


def effective_plan(plan_type: PlanType, status: SubscriptionStatus) -> PlanType:
    """Plan stored for a status: a subscription that is not active-ish is free."""
    return plan_type if status in ACTIVE_ISH_STATUSES else PlanType.FREE


def _is_superseded(existing: Optional[Subscription], stripe_subscription_id: Optional[str]) -> bool:
    return bool(
        existing is not None
        and existing.stripe_subscription_id
        and stripe_subscription_id
        and existing.stripe_subscription_id != stripe_subscription_id
    )


class SubscriptionReconciler:
    """
    Subscription reconciliation service.

    Args:
        stripe_service: Stripe adapter
        subscription_repo: Local subscription rows
        profile_repo: Profiles (one-time unlock flag)
        payment_repo: Ledger of one-time unlock payments
        usage_ledger: Ledger whose limits follow the effective plan
        status_cache: Optional cache to invalidate after transitions
        after_commit: Optional hook that runs a callback once the
            request's transaction has committed
    """

    def __init__(
        self,
        stripe_service: StripeService,
        subscription_repo: SubscriptionRepository,
        profile_repo: UserProfileRepository,
        payment_repo: PaymentRepository,
        usage_ledger: UsageLedger,
        status_cache: Optional[SubscriptionStatusCache] = None,
        after_commit: Optional[Callable[[Callable[[], None]], None]] = None,
    ):
        self._stripe = stripe_service
        self._subscriptions = subscription_repo
        self._profiles = profile_repo
        self._payments = payment_repo
        self._ledger = usage_ledger
        self._cache = status_cache
        self._after_commit = after_commit

        self._handlers: Dict[str, EventHandler] = {
            "checkout.session.completed": self._on_checkout_completed,
            "customer.subscription.created": self._on_subscription_changed,
            "customer.subscription.updated": self._on_subscription_changed,
            "customer.subscription.deleted": self._on_subscription_deleted,
            "invoice.payment_failed": self._on_invoice_payment_failed,
            "payment_intent.succeeded": self._on_payment_intent_succeeded,
            "payment_intent.payment_failed": self._on_payment_intent_failed,
        }

    @property
    def handled_event_types(self) -> List[str]:
        return sorted(self._handlers)

    # =========================================================================
    # Webhook Dispatch
    # =========================================================================

    async def handle_event(self, event: Dict[str, Any]) -> bool:
        """
        Apply one verified Stripe event.

        Returns:
            True if a handler ran, False for acknowledged unknown types

        Raises:
            ReconciliationError: Stripe or persistence failure; the
                provider should redeliver the event
        """
        event_type = event.get("type", "")
        handler = self._handlers.get(event_type)
        if handler is None:
            logger.info(f"Unhandled Stripe event type: {event_type}")
            return False

        data_object = (event.get("data") or {}).get("object") or {}
        logger.info(f"Processing Stripe event {event.get('id')} ({event_type})")
        await handler(data_object, event_type)
        return True

    async def _find_user(
        self,
        customer_id: Optional[str],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Optional[str], Optional[Subscription]]:
        """
        Locate the local user by Stripe customer ID.

        Falls back to ``user_id`` metadata when the customer ID was not
        persisted yet.

        Returns:
            (user_id, effective subscription), both None when unknown
        """
        user_id = None
        if customer_id:
            match = await self._subscriptions.get_current_by_customer_id(customer_id)
            if match is not None:
                user_id = match.user_id

        if user_id is None:
            user_id = (metadata or {}).get("user_id")

        if user_id is None:
            return None, None

        return user_id, await self._subscriptions.get_current(user_id)

    async def _on_checkout_completed(self, session: Dict[str, Any], event_type: str) -> None:
        metadata = session.get("metadata") or {}
        subscription_id = _object_id(session.get("subscription"))
        if not subscription_id:
            logger.info(f"Checkout session {session.get('id')} has no subscription; skipping")
            return

        customer_id = _object_id(session.get("customer"))
        user_id = metadata.get("user_id") or session.get("client_reference_id")
        if user_id:
            existing = await self._subscriptions.get_current(user_id)
        else:
            user_id, existing = await self._find_user(customer_id)

        if user_id is None:
            logger.warning(f"Checkout session {session.get('id')} matches no local user")
            return

        stripe_subscription = await self._fetch_subscription(subscription_id, event_type)
        await self.apply_stripe_subscription(
            user_id,
            stripe_subscription,
            existing=existing,
            override=metadata.get("plan_type"),
            event_type=event_type,
        )

    async def _on_subscription_changed(self, stripe_sub: Dict[str, Any], event_type: str) -> None:
        customer_id = _object_id(stripe_sub.get("customer"))
        user_id, existing = await self._find_user(customer_id, stripe_sub.get("metadata"))
        if user_id is None:
            logger.warning(f"No local user for Stripe customer {customer_id} ({event_type})")
            return

        status = status_from_stripe(stripe_sub.get("status"))
        if _is_superseded(existing, stripe_sub.get("id")) and status not in ACTIVE_ISH_STATUSES:
            logger.info(
                f"Ignoring {status.value} update of superseded subscription "
                f"{stripe_sub.get('id')} for user {user_id}"
            )
            return

        await self.apply_stripe_subscription(
            user_id,
            stripe_sub,
            existing=existing,
            event_type=event_type,
        )

    async def _on_subscription_deleted(self, stripe_sub: Dict[str, Any], event_type: str) -> None:
        customer_id = _object_id(stripe_sub.get("customer"))
        user_id, existing = await self._find_user(customer_id, stripe_sub.get("metadata"))
        if user_id is None or existing is None:
            logger.warning(f"No local subscription for Stripe customer {customer_id} ({event_type})")
            return

        if _is_superseded(existing, stripe_sub.get("id")):
            logger.info(
                f"Ignoring deletion of superseded subscription {stripe_sub.get('id')} "
                f"for user {user_id}"
            )
            return

        canceled = existing.model_copy(update={
            "status": SubscriptionStatus.CANCELED,
            "plan_type": PlanType.FREE,
        })
        await self._save(canceled, event_type)
        await self._ledger.reset_to_free(user_id)
        self._invalidate(user_id)
        logger.info(f"Subscription canceled for user {user_id}")

    async def _on_invoice_payment_failed(self, invoice: Dict[str, Any], event_type: str) -> None:
        customer_id = _object_id(invoice.get("customer"))
        user_id, existing = await self._find_user(customer_id)
        if user_id is None or existing is None:
            logger.warning(f"No local subscription for Stripe customer {customer_id} ({event_type})")
            return

        past_due = existing.model_copy(update={"status": SubscriptionStatus.PAST_DUE})
        saved = await self._save(past_due, event_type)
        await self._ledger.sync_plan_limit(user_id, saved.plan_type, reset_usage=False)
        self._invalidate(user_id)
        logger.warning(f"Payment failed for user {user_id}; subscription marked past_due")

    async def _on_payment_intent_succeeded(self, intent: Dict[str, Any], event_type: str) -> None:
        user_id = (intent.get("metadata") or {}).get("user_id")
        if not user_id:
            logger.info(f"Payment intent {intent.get('id')} has no user_id metadata; skipping")
            return

        await self._record_payment(user_id, intent, PaymentStatus.SUCCEEDED, event_type)
        try:
            await self._profiles.set_pro_access(user_id, True)
        except Exception as e:
            raise ReconciliationError(
                "Failed to grant pro access",
                event_type=event_type,
                original_error=e,
            )
        self._invalidate(user_id)
        logger.info(f"Granted pro access to user {user_id} (payment {intent.get('id')})")

    async def _on_payment_intent_failed(self, intent: Dict[str, Any], event_type: str) -> None:
        user_id = (intent.get("metadata") or {}).get("user_id")
        if not user_id:
            logger.info(f"Payment intent {intent.get('id')} has no user_id metadata; skipping")
            return

        await self._record_payment(user_id, intent, PaymentStatus.FAILED, event_type)
        logger.warning(f"Unlock payment {intent.get('id')} failed for user {user_id}")

    async def _record_payment(
        self,
        user_id: str,
        intent: Dict[str, Any],
        status: PaymentStatus,
        event_type: str,
    ) -> None:
        try:
            await self._payments.record(Payment.from_intent(user_id, intent, status))
        except Exception as e:
            logger.error(f"Failed to record payment {intent.get('id')} for user {user_id}: {e}")
            raise ReconciliationError(
                "Failed to record payment",
                event_type=event_type,
                original_error=e,
            )

    # =========================================================================
    # Shared Transition
    # =========================================================================

    async def apply_stripe_subscription(
        self,
        user_id: str,
        stripe_subscription: Dict[str, Any],
        existing: Optional[Subscription] = None,
        override: Optional[str] = None,
        event_type: Optional[str] = None,
    ) -> Subscription:
        """
        Upsert the local row from a Stripe subscription object.

        Usage is reset only when the plan actually changes (or the row is
        new), so replaying an event does not forgive usage twice.
        """
        status = status_from_stripe(stripe_subscription.get("status"))

        try:
            inference = await infer_plan_type(InferenceContext(
                subscription=stripe_subscription,
                override=override,
                price_ids=self._stripe.price_ids,
                get_price=self._stripe.retrieve_price,
                get_product=self._stripe.retrieve_product,
            ))
        except StripeServiceError as e:
            raise ReconciliationError(
                f"Plan inference failed: {e.message}",
                event_type=event_type,
                original_error=e,
            )

        plan = inference.plan
        if (
            plan == PlanType.FREE
            and status in ACTIVE_ISH_STATUSES
            and existing is not None
            and existing.is_paid
        ):
            logger.warning(
                f"Downgrade guard: keeping {existing.plan_type.value} for user {user_id}; "
                f"inference found no plan for {stripe_subscription.get('id')} "
                f"(status={status.value})"
            )
            plan = existing.plan_type

        plan = effective_plan(plan, status)
        values = {
            "stripe_customer_id": _object_id(stripe_subscription.get("customer"))
            or (existing.stripe_customer_id if existing else None),
            "stripe_subscription_id": stripe_subscription.get("id"),
            "status": status,
            "plan_type": plan,
            **subscription_period(stripe_subscription),
        }

        if existing is not None:
            plan_changed = existing.plan_type != plan
            saved = await self._save(existing.model_copy(update=values), event_type)
        else:
            plan_changed = True
            saved = await self._save(Subscription(user_id=user_id, **values), event_type)

        await self._ledger.sync_plan_limit(user_id, saved.plan_type, reset_usage=plan_changed)
        self._invalidate(user_id)

        logger.info(
            f"Reconciled subscription for user {user_id}: plan={plan.value} "
            f"(via {inference.source.value}), status={status.value}"
        )
        return saved

    async def _fetch_subscription(self, subscription_id: str, event_type: Optional[str]) -> Dict[str, Any]:
        try:
            return await self._stripe.get_subscription(subscription_id)
        except StripeServiceError as e:
            raise ReconciliationError(
                f"Could not retrieve subscription {subscription_id}: {e.message}",
                event_type=event_type,
                original_error=e,
            )

    async def _save(self, subscription: Subscription, event_type: Optional[str]) -> Subscription:
        try:
            return await self._subscriptions.save(subscription)
        except Exception as e:
            logger.error(f"Failed to persist subscription for user {subscription.user_id}: {e}")
            raise ReconciliationError(
                "Failed to persist subscription",
                event_type=event_type,
                original_error=e,
            )

    def _invalidate(self, user_id: str) -> None:
        """
        Drop the user's cached status now and again after commit, so a
        status read racing the transaction cannot keep the old row cached.
        """
        if self._cache is None:
            return
        self._cache.invalidate(user_id)
        if self._after_commit is not None:
            cache = self._cache
            self._after_commit(lambda: cache.invalidate(user_id))

    # =========================================================================
    # Manual Refresh
    # =========================================================================

    async def refresh(self, user_id: str, email: Optional[str] = None) -> RefreshSubscriptionResponse:
        """
        Re-read the user's subscription from Stripe.

        Without a stored subscription ID, tries to recover one through the
        stored customer ID, then through customers matching ``email``.
        """
        existing = await self._subscriptions.get_current(user_id)

        if existing is not None and existing.stripe_subscription_id:
            try:
                stripe_sub = await self._stripe.get_subscription(existing.stripe_subscription_id)
            except SubscriptionNotFoundError:
                canceled = existing.model_copy(update={
                    "status": SubscriptionStatus.CANCELED,
                    "plan_type": PlanType.FREE,
                })
                saved = await self._save(canceled, None)
                await self._ledger.sync_plan_limit(user_id, saved.plan_type, reset_usage=False)
                self._invalidate(user_id)
                return RefreshSubscriptionResponse(
                    subscription=saved,
                    message="Subscription marked as canceled (not found in Stripe)",
                )
            except StripeServiceError as e:
                raise ReconciliationError(
                    f"Failed to refresh from Stripe: {e.message}",
                    original_error=e,
                )

            saved = await self.apply_stripe_subscription(user_id, stripe_sub, existing=existing)
            return RefreshSubscriptionResponse(
                subscription=saved,
                message="Subscription refreshed from Stripe",
            )

        try:
            recovered = await self._recover_subscription(existing, email)
        except StripeServiceError as e:
            raise ReconciliationError(
                f"Subscription recovery failed: {e.message}",
                original_error=e,
            )

        if recovered is None:
            return RefreshSubscriptionResponse(
                subscription=existing,
                message="No subscription found",
            )

        saved = await self.apply_stripe_subscription(user_id, recovered, existing=existing)
        logger.info(f"Recovered Stripe subscription {recovered.get('id')} for user {user_id}")
        return RefreshSubscriptionResponse(
            subscription=saved,
            message="Subscription recovered from Stripe",
        )

    async def _recover_subscription(
        self,
        existing: Optional[Subscription],
        email: Optional[str],
    ) -> Optional[Dict[str, Any]]:
        if existing is not None and existing.stripe_customer_id:
            found = self._pick_subscription(
                await self._stripe.list_customer_subscriptions(existing.stripe_customer_id)
            )
            if found is not None:
                return found

        if email:
            for customer in await self._stripe.list_customers_by_email(email):
                found = self._pick_subscription(
                    await self._stripe.list_customer_subscriptions(customer["id"])
                )
                if found is not None:
                    return found

        return None

    @staticmethod
    def _pick_subscription(subscriptions: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """Prefer an active-ish subscription, else the newest one."""
        for sub in subscriptions:
            if status_from_stripe(sub.get("status")) in ACTIVE_ISH_STATUSES:
                return sub
        return subscriptions[0] if subscriptions else None
