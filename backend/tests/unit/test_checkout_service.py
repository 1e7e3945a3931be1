"""
Unit tests for the checkout service.

Covers plan validation, customer reuse, price checks, the billing portal
guard and the legacy one-time unlock.
"""

import pytest

from app.domain.models import AuthenticatedUser, PaymentStatus
from app.domain.subscription import PlanType, Subscription, SubscriptionStatus
from app.infrastructure.exceptions import (
    CheckoutError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.infrastructure.payments.stripe_service import (
    PriceNotConfiguredError,
    StripeServiceError,
)
from app.infrastructure.services.checkout_service import CheckoutService

from fakes import OTHER_USER_ID, USER_ID


USER = AuthenticatedUser(id=USER_ID, email="user@example.com", full_name="Test User")


@pytest.fixture
def checkout(mock_stripe_service, subscription_repo, profile_repo, payment_repo):
    mock_stripe_service.price_id_for.side_effect = lambda plan: {
        PlanType.PRO: "price_pro_test",
        PlanType.PREMIUM: "price_premium_test",
    }[plan]
    mock_stripe_service.create_customer.return_value = {"id": "cus_new"}
    mock_stripe_service.create_checkout_session.return_value = {
        "id": "cs_test_1",
        "url": "https://checkout.stripe.com/c/pay/cs_test_1",
    }
    return CheckoutService(mock_stripe_service, subscription_repo, profile_repo, payment_repo)


class TestCreateCheckoutSession:

    @pytest.mark.asyncio
    async def test_new_customer_is_created_and_persisted(
        self, checkout, mock_stripe_service, subscription_repo
    ):
        session = await checkout.create_checkout_session(
            USER, PlanType.PRO, "https://app/success", "https://app/cancel"
        )

        assert session["id"] == "cs_test_1"
        mock_stripe_service.create_customer.assert_awaited_once_with(
            user_id=USER_ID, email="user@example.com", name="Test User"
        )
        row = await subscription_repo.get_current(USER_ID)
        assert row.stripe_customer_id == "cus_new"
        assert row.status == SubscriptionStatus.NONE
        assert row.plan_type == PlanType.FREE

        kwargs = mock_stripe_service.create_checkout_session.call_args.kwargs
        assert kwargs["customer_id"] == "cus_new"
        assert kwargs["plan_type"] == PlanType.PRO
        assert kwargs["user_id"] == USER_ID

    @pytest.mark.asyncio
    async def test_existing_customer_is_reused(self, checkout, mock_stripe_service, subscription_repo):
        await subscription_repo.create(Subscription(user_id=USER_ID, stripe_customer_id="cus_existing"))

        await checkout.create_checkout_session(USER, PlanType.PREMIUM, "s", "c")

        mock_stripe_service.create_customer.assert_not_awaited()
        assert mock_stripe_service.create_checkout_session.call_args.kwargs["customer_id"] == "cus_existing"

    @pytest.mark.asyncio
    async def test_free_plan_is_rejected(self, checkout):
        with pytest.raises(ValidationError, match="Invalid plan type"):
            await checkout.create_checkout_session(USER, PlanType.FREE, "s", "c")

    @pytest.mark.asyncio
    async def test_pro_access_holder_gets_conflict(self, checkout, profile_repo):
        await profile_repo.set_pro_access(USER_ID, True)
        with pytest.raises(ConflictError):
            await checkout.create_checkout_session(USER, PlanType.PRO, "s", "c")

    @pytest.mark.asyncio
    async def test_unconfigured_price(self, checkout, mock_stripe_service):
        mock_stripe_service.price_id_for.side_effect = PriceNotConfiguredError("Price ID not configured")
        with pytest.raises(CheckoutError):
            await checkout.create_checkout_session(USER, PlanType.PRO, "s", "c")

    @pytest.mark.asyncio
    async def test_price_from_other_mode_is_explained(self, checkout, mock_stripe_service):
        mock_stripe_service.retrieve_price.side_effect = StripeServiceError("No such price")
        with pytest.raises(CheckoutError, match="test vs live"):
            await checkout.create_checkout_session(USER, PlanType.PRO, "s", "c")

    @pytest.mark.asyncio
    async def test_archived_price(self, checkout, mock_stripe_service):
        mock_stripe_service.retrieve_price.return_value = {"id": "price_pro_test", "active": False}
        with pytest.raises(CheckoutError, match="archived"):
            await checkout.create_checkout_session(USER, PlanType.PRO, "s", "c")

    @pytest.mark.asyncio
    async def test_missing_email(self, checkout):
        with pytest.raises(ValidationError):
            await checkout.create_checkout_session(
                AuthenticatedUser(id=USER_ID), PlanType.PRO, "s", "c"
            )


class TestPortalSession:

    @pytest.mark.asyncio
    async def test_requires_active_paid_subscription(self, checkout, subscription_repo):
        await subscription_repo.create(Subscription(
            user_id=USER_ID,
            stripe_customer_id="cus_1",
            plan_type=PlanType.PRO,
            status=SubscriptionStatus.CANCELED,
        ))
        with pytest.raises(NotFoundError):
            await checkout.create_portal_session(USER, "https://app/dashboard")

    @pytest.mark.asyncio
    async def test_opens_portal_for_subscriber(self, checkout, mock_stripe_service, subscription_repo):
        await subscription_repo.create(Subscription(
            user_id=USER_ID,
            stripe_customer_id="cus_1",
            stripe_subscription_id="sub_1",
            plan_type=PlanType.PREMIUM,
            status=SubscriptionStatus.PAST_DUE,
        ))
        mock_stripe_service.create_portal_session.return_value = {"url": "https://billing.stripe.com/p/1"}

        session = await checkout.create_portal_session(USER, "https://app/dashboard")

        assert session["url"] == "https://billing.stripe.com/p/1"
        mock_stripe_service.create_portal_session.assert_awaited_once_with(
            customer_id="cus_1", return_url="https://app/dashboard"
        )


class TestUnlockPayment:

    @pytest.mark.asyncio
    async def test_create_intent(self, checkout, mock_stripe_service):
        mock_stripe_service.create_payment_intent.return_value = {"id": "pi_1", "client_secret": "pi_1_secret"}
        result = await checkout.create_unlock_payment(USER)
        assert result == {"client_secret": "pi_1_secret", "payment_intent_id": "pi_1"}

    @pytest.mark.asyncio
    async def test_confirm_grants_pro_access(
        self, checkout, mock_stripe_service, profile_repo, payment_repo
    ):
        mock_stripe_service.retrieve_payment_intent.return_value = {
            "id": "pi_1", "status": "succeeded", "amount": 499, "currency": "usd",
            "metadata": {"user_id": USER_ID},
        }
        await checkout.confirm_unlock_payment(USER, "pi_1")
        assert (await profile_repo.get_by_user_id(USER_ID)).has_pro_access is True

        payment = payment_repo.payments["pi_1"]
        assert payment.user_id == USER_ID
        assert payment.amount == 499
        assert payment.status == PaymentStatus.SUCCEEDED

    @pytest.mark.asyncio
    async def test_confirm_rejects_unfinished_payment(self, checkout, mock_stripe_service):
        mock_stripe_service.retrieve_payment_intent.return_value = {
            "id": "pi_1", "status": "requires_payment_method", "metadata": {"user_id": USER_ID},
        }
        with pytest.raises(ValidationError, match="Payment not completed"):
            await checkout.confirm_unlock_payment(USER, "pi_1")

    @pytest.mark.asyncio
    async def test_confirm_rejects_foreign_payment(
        self, checkout, mock_stripe_service, profile_repo, payment_repo
    ):
        mock_stripe_service.retrieve_payment_intent.return_value = {
            "id": "pi_1", "status": "succeeded", "metadata": {"user_id": OTHER_USER_ID},
        }
        with pytest.raises(PermissionDeniedError):
            await checkout.confirm_unlock_payment(USER, "pi_1")
        assert await profile_repo.get_by_user_id(USER_ID) is None
        assert payment_repo.payments == {}
