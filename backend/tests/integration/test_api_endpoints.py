"""
Integration tests for the HaircutFun API endpoints.

Tests the full request/response cycle against in-memory repositories and
mocked Stripe / Gemini adapters.
"""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from app.domain.models import GeneratedImage, UsageRecord, UserProfile
from app.domain.subscription import PlanType, Subscription, SubscriptionStatus
from app.infrastructure.exceptions import (
    AIServiceError,
    ContentBlockedError,
    UpstreamUnavailableError,
    ValidationError,
)
from app.infrastructure.payments.stripe_service import SubscriptionNotFoundError
from app.infrastructure.services.usage_ledger import month_year_of

from fakes import OTHER_USER_ID, USER_ID, auth_headers


PHOTO = "data:image/jpeg;base64,/9j/4AAQSkZJRg=="
GENERATE_BODY = {"userPhoto": PHOTO, "haircutStyle": "Buzz Cut"}


def this_month() -> str:
    return month_year_of(datetime.now(timezone.utc))


def seed_usage(usage_repo, used: int, limit: int, user_id: str = USER_ID):
    usage_repo.records[(user_id, this_month())] = UsageRecord(
        user_id=user_id,
        month_year=this_month(),
        generations_used=used,
        plan_limit=limit,
    )


def paid_subscription(**overrides) -> Subscription:
    values = {
        "id": "row-1",
        "user_id": USER_ID,
        "stripe_customer_id": "cus_1",
        "stripe_subscription_id": "sub_1",
        "status": SubscriptionStatus.ACTIVE,
        "plan_type": PlanType.PRO,
        "current_period_end": datetime.now(timezone.utc) + timedelta(days=10),
    }
    values.update(overrides)
    return Subscription(**values)


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_root_endpoint(self, client: TestClient):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["message"] == "HaircutFun API"

    def test_health_endpoint(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "haircutfun"}


class TestGenerateHaircut:

    def test_requires_style(self, client: TestClient):
        response = client.post("/api/generate-haircut", json={"userPhoto": PHOTO})
        assert response.status_code == 422

    def test_signed_in_generation_counts_usage(self, client, usage_repo, mock_generation_service):
        response = client.post("/api/generate-haircut", json=GENERATE_BODY, headers=auth_headers())

        assert response.status_code == 200
        assert response.json() == {"success": True, "imageData": "aW1hZ2U="}
        mock_generation_service.generate.assert_awaited_once_with(PHOTO, "Buzz Cut", None)
        assert usage_repo.records[(USER_ID, this_month())].generations_used == 1

    def test_limit_reached(self, client, usage_repo, mock_generation_service):
        seed_usage(usage_repo, used=1, limit=1)

        response = client.post("/api/generate-haircut", json=GENERATE_BODY, headers=auth_headers())

        assert response.status_code == 402
        assert response.json() == {"error": "Generation limit reached"}
        mock_generation_service.generate.assert_not_awaited()

    def test_pro_access_bypasses_limit(self, client, usage_repo, profile_repo):
        seed_usage(usage_repo, used=5, limit=1)
        profile_repo.profiles[USER_ID] = UserProfile(id="p-1", user_id=USER_ID, has_pro_access=True)

        response = client.post("/api/generate-haircut", json=GENERATE_BODY, headers=auth_headers())

        assert response.status_code == 200

    def test_anonymous_first_try(self, client, usage_repo):
        response = client.post("/api/generate-haircut", json={**GENERATE_BODY, "isFirstTry": True})

        assert response.status_code == 200
        assert usage_repo.records == {}

    def test_anonymous_after_first_try(self, client, mock_generation_service):
        response = client.post("/api/generate-haircut", json=GENERATE_BODY)

        assert response.status_code == 402
        assert response.json() == {"error": "Free trial used"}
        mock_generation_service.generate.assert_not_awaited()

    @pytest.mark.parametrize("error, status_code", [
        (ValidationError("Invalid image data"), 400),
        (ContentBlockedError("SAFETY"), 422),
        (UpstreamUnavailableError(attempts=3), 503),
        (AIServiceError("Model returned no image"), 500),
    ])
    def test_generation_errors(self, client, usage_repo, mock_generation_service, error, status_code):
        mock_generation_service.generate.side_effect = error

        response = client.post("/api/generate-haircut", json=GENERATE_BODY, headers=auth_headers())

        assert response.status_code == status_code
        assert response.json() == {"error": error.message}
        assert usage_repo.records == {}


class TestCheckoutEndpoints:

    @pytest.fixture(autouse=True)
    def stripe_calls(self, mock_stripe_service):
        mock_stripe_service.price_id_for.side_effect = lambda plan: f"price_{plan.value}_test"
        mock_stripe_service.create_customer.return_value = {"id": "cus_new"}
        mock_stripe_service.create_checkout_session.return_value = {
            "id": "cs_test_1",
            "url": "https://checkout.stripe.com/c/pay/cs_test_1",
        }

    def test_requires_auth(self, client):
        assert client.post("/api/checkout", json={"planType": "pro"}).status_code == 401

    def test_creates_session(self, client, mock_stripe_service, subscription_repo):
        response = client.post(
            "/api/checkout",
            json={"planType": "pro"},
            headers={**auth_headers(), "origin": "https://haircut.fun"},
        )

        assert response.status_code == 200
        assert response.json() == {
            "sessionId": "cs_test_1",
            "url": "https://checkout.stripe.com/c/pay/cs_test_1",
        }
        kwargs = mock_stripe_service.create_checkout_session.call_args.kwargs
        assert kwargs["success_url"] == "https://haircut.fun/dashboard?success=true&plan=pro"
        assert kwargs["cancel_url"] == "https://haircut.fun/pricing?canceled=true"
        assert subscription_repo.rows[-1].stripe_customer_id == "cus_new"

    def test_free_plan_is_rejected(self, client):
        response = client.post("/api/checkout", json={"planType": "free"}, headers=auth_headers())
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid plan type"

    def test_unknown_plan_is_rejected(self, client):
        response = client.post("/api/checkout", json={"planType": "gold"}, headers=auth_headers())
        assert response.status_code == 422

    def test_pro_access_holder_conflict(self, client, profile_repo):
        profile_repo.profiles[USER_ID] = UserProfile(id="p-1", user_id=USER_ID, has_pro_access=True)

        response = client.post("/api/checkout", json={"planType": "premium"}, headers=auth_headers())

        assert response.status_code == 409

    def test_archived_price(self, client, mock_stripe_service):
        mock_stripe_service.retrieve_price.return_value = {"id": "price_pro_test", "active": False}

        response = client.post("/api/checkout", json={"planType": "pro"}, headers=auth_headers())

        assert response.status_code == 500
        assert response.json()["detail"].startswith("Failed to create checkout session:")

    def test_portal_without_subscription(self, client):
        response = client.post("/api/customer-portal", headers=auth_headers())
        assert response.status_code == 404

    def test_portal_for_subscriber(self, client, mock_stripe_service, subscription_repo):
        subscription_repo.rows.append(paid_subscription())
        mock_stripe_service.create_portal_session.return_value = {"url": "https://billing.stripe.com/p/1"}

        response = client.post("/api/customer-portal", headers=auth_headers())

        assert response.status_code == 200
        assert response.json() == {"url": "https://billing.stripe.com/p/1"}


class TestUserEndpoints:

    def test_profile_is_created_from_token(self, client, profile_repo):
        response = client.get("/api/user/profile", headers=auth_headers())

        assert response.status_code == 200
        body = response.json()
        assert body["user_id"] == USER_ID
        assert body["email"] == "user@example.com"
        assert body["full_name"] == "Test User"
        assert body["free_tries_used"] == 0
        assert USER_ID in profile_repo.profiles

    def test_update_profile(self, client):
        response = client.patch(
            "/api/user/profile",
            json={"full_name": "  New Name  "},
            headers=auth_headers(),
        )

        assert response.status_code == 200
        assert response.json()["full_name"] == "New Name"

    def test_profile_reports_usage(self, client, usage_repo):
        seed_usage(usage_repo, used=1, limit=1)

        response = client.get("/api/user/profile", headers=auth_headers())

        assert response.json()["free_tries_used"] == 1

    def test_can_generate(self, client, usage_repo):
        assert client.get("/api/user/can-generate", headers=auth_headers()).json() == {
            "can_generate": True,
            "user_id": USER_ID,
        }

        seed_usage(usage_repo, used=1, limit=1)
        assert client.get("/api/user/can-generate", headers=auth_headers()).json()["can_generate"] is False

    def test_increment_usage(self, client):
        first = client.post("/api/user/increment-usage", headers=auth_headers())
        second = client.post("/api/user/increment-usage", headers=auth_headers())

        assert first.json() == {"success": True, "new_usage_count": 1}
        assert second.json()["new_usage_count"] == 2

    def test_requires_auth(self, client):
        assert client.get("/api/user/profile").status_code == 401
        assert client.post("/api/user/increment-usage").status_code == 401


class TestImageEndpoints:

    def test_save_and_list(self, client):
        response = client.post(
            "/api/save-generated-image",
            json={"imageUrl": "data:image/png;base64,aW1hZ2U=", "haircutStyle": "Bob", "gender": "female"},
            headers=auth_headers(),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Image saved successfully"
        assert body["image"]["haircut_style"] == "Bob"

        listing = client.get("/api/user-images", headers=auth_headers()).json()
        assert listing["count"] == 1
        assert listing["images"][0]["id"] == body["image"]["id"]

    def test_gallery_is_pruned_to_ten(self, client, image_repo):
        for index in range(12):
            client.post(
                "/api/save-generated-image",
                json={"imageUrl": f"https://img.example.com/{index}.png", "haircutStyle": "Bob"},
                headers=auth_headers(),
            )

        images = client.get("/api/user-images", headers=auth_headers()).json()["images"]
        assert len(images) == 10
        assert images[0]["image_url"] == "https://img.example.com/11.png"
        assert images[-1]["image_url"] == "https://img.example.com/2.png"

    def test_list_is_scoped_to_user(self, client, image_repo):
        image_repo.images.append(GeneratedImage(
            id="img-other", user_id=OTHER_USER_ID, image_url="u", haircut_style="Bob"
        ))

        assert client.get("/api/user-images", headers=auth_headers()).json() == {"images": [], "count": 0}

    def test_delete(self, client, image_repo):
        image_id = "5b6f0e84-0000-4000-8000-000000000001"
        image_repo.images.append(GeneratedImage(
            id=image_id, user_id=USER_ID, image_url="u", haircut_style="Bob"
        ))

        response = client.delete(f"/api/user-images/{image_id}", headers=auth_headers())

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert image_repo.images == []

    def test_delete_other_users_image(self, client, image_repo):
        image_id = "5b6f0e84-0000-4000-8000-000000000002"
        image_repo.images.append(GeneratedImage(
            id=image_id, user_id=OTHER_USER_ID, image_url="u", haircut_style="Bob"
        ))

        response = client.delete(f"/api/user-images/{image_id}", headers=auth_headers())

        assert response.status_code == 404
        assert response.json()["detail"] == "Image not found"
        assert len(image_repo.images) == 1

    def test_delete_invalid_id(self, client):
        assert client.delete("/api/user-images/not-a-uuid", headers=auth_headers()).status_code == 422


class TestSubscriptionEndpoints:

    def test_status_for_new_user(self, client):
        response = client.get("/api/subscription/status", headers=auth_headers())

        assert response.status_code == 200
        body = response.json()
        assert body["is_active"] is False
        assert body["plan_type"] == "free"
        assert body["subscription"] is None

    def test_status_for_subscriber(self, client, subscription_repo):
        subscription_repo.rows.append(paid_subscription())

        body = client.get("/api/subscription/status", headers=auth_headers()).json()

        assert body["is_active"] is True
        assert body["has_valid_subscription"] is True
        assert body["plan_type"] == "pro"
        assert body["days_until_expiry"] == 10

    def test_status_is_cached_until_refresh(self, client, subscription_repo):
        client.get("/api/subscription/status", headers=auth_headers())
        subscription_repo.rows.append(paid_subscription())

        cached = client.get("/api/subscription/status", headers=auth_headers()).json()
        fresh = client.get("/api/subscription/status?refresh=true", headers=auth_headers()).json()

        assert cached["plan_type"] == "free"
        assert fresh["plan_type"] == "pro"

    def test_refresh_rejects_other_user(self, client):
        response = client.post(
            "/api/subscription/refresh",
            json={"userId": OTHER_USER_ID},
            headers=auth_headers(),
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Unauthorized"

    def test_refresh_without_subscription(self, client, mock_stripe_service):
        mock_stripe_service.list_customers_by_email.return_value = []

        response = client.post(
            "/api/subscription/refresh",
            json={"userId": USER_ID},
            headers=auth_headers(),
        )

        assert response.status_code == 200
        assert response.json()["message"] == "No subscription found"
        mock_stripe_service.list_customers_by_email.assert_awaited_once_with("user@example.com")

    def test_refresh_marks_missing_subscription_canceled(
        self, client, mock_stripe_service, subscription_repo
    ):
        subscription_repo.rows.append(paid_subscription())
        mock_stripe_service.get_subscription.side_effect = SubscriptionNotFoundError("No such subscription")

        response = client.post(
            "/api/subscription/refresh",
            json={"userId": USER_ID},
            headers=auth_headers(),
        )

        assert response.status_code == 200
        assert response.json()["subscription"]["status"] == "canceled"
        assert response.json()["subscription"]["plan_type"] == "free"
        assert subscription_repo.rows[-1].status == SubscriptionStatus.CANCELED


class TestPaymentEndpoints:

    def test_create_intent(self, client, mock_stripe_service):
        mock_stripe_service.create_payment_intent.return_value = {"id": "pi_1", "client_secret": "pi_1_secret"}

        response = client.post("/api/payment/create-intent", headers=auth_headers())

        assert response.status_code == 200
        assert response.json() == {"clientSecret": "pi_1_secret", "paymentIntentId": "pi_1"}

    def test_confirm_grants_access(self, client, mock_stripe_service, profile_repo, payment_repo):
        mock_stripe_service.retrieve_payment_intent.return_value = {
            "id": "pi_1", "status": "succeeded", "metadata": {"user_id": USER_ID},
        }

        response = client.post(
            "/api/payment/confirm",
            json={"paymentIntentId": "pi_1"},
            headers=auth_headers(),
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Pro access granted"}
        assert profile_repo.profiles[USER_ID].has_pro_access is True
        assert "pi_1" in payment_repo.payments

    def test_confirm_foreign_payment(self, client, mock_stripe_service, profile_repo):
        mock_stripe_service.retrieve_payment_intent.return_value = {
            "id": "pi_1", "status": "succeeded", "metadata": {"user_id": OTHER_USER_ID},
        }

        response = client.post(
            "/api/payment/confirm",
            json={"paymentIntentId": "pi_1"},
            headers=auth_headers(),
        )

        assert response.status_code == 403
        assert profile_repo.profiles == {}
