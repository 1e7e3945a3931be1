"""
Test configuration and fixtures for HaircutFun.

Provides shared fixtures for unit and integration tests: in-memory
repositories with the same interface as the SQL ones, a mocked Stripe
adapter, and signed Supabase-style access tokens.
"""

import os

# Required settings must exist before app modules are imported
os.environ.setdefault("SUPABASE_URL", "https://testproject.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-0123456789-abcdefghijklmnop")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_123")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_123")
os.environ.setdefault("STRIPE_PRO_PRICE_ID", "price_pro_test")
os.environ.setdefault("STRIPE_PREMIUM_PRICE_ID", "price_premium_test")
os.environ.setdefault("GOOGLE_API_KEY", "test-google-key")

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from app.domain.subscription import PlanType
from app.infrastructure.cache import SubscriptionStatusCache
from app.infrastructure.payments.stripe_service import StripeService
from app.infrastructure.services.usage_ledger import UsageLedger

from fakes import (
    FIXED_NOW,
    FakeGeneratedImageRepository,
    FakePaymentRepository,
    FakeSession,
    FakeSubscriptionRepository,
    FakeUsageRepository,
    FakeUserProfileRepository,
    FakeWebhookEventRepository,
)


# =============================================================================
# Repository and Service Fixtures
# =============================================================================

@pytest.fixture
def subscription_repo():
    return FakeSubscriptionRepository()


@pytest.fixture
def usage_repo():
    return FakeUsageRepository()


@pytest.fixture
def profile_repo():
    return FakeUserProfileRepository()


@pytest.fixture
def image_repo():
    return FakeGeneratedImageRepository()


@pytest.fixture
def webhook_event_repo():
    return FakeWebhookEventRepository()


@pytest.fixture
def payment_repo():
    return FakePaymentRepository()


@pytest.fixture
def status_cache():
    return SubscriptionStatusCache(ttl_seconds=300)


@pytest.fixture
def mock_stripe_service():
    """Stripe adapter double; async methods become AsyncMocks through spec=StripeService."""
    mock = MagicMock(spec=StripeService)
    mock.price_ids = {
        PlanType.PRO: "price_pro_test",
        PlanType.PREMIUM: "price_premium_test",
    }
    mock.retrieve_price.return_value = {"id": "price_x", "active": True, "product": {"name": "", "metadata": {}}}
    return mock


@pytest.fixture
def mock_generation_service():
    mock = MagicMock()
    mock.model = "gemini-test"
    mock.generate = AsyncMock(return_value="aW1hZ2U=")
    return mock


@pytest.fixture
def ledger(usage_repo, profile_repo, subscription_repo):
    return UsageLedger(usage_repo, profile_repo, subscription_repo, clock=lambda: FIXED_NOW)


# =============================================================================
# App Fixtures
# =============================================================================

@pytest.fixture
def app(
    subscription_repo,
    usage_repo,
    profile_repo,
    image_repo,
    webhook_event_repo,
    payment_repo,
    status_cache,
    mock_stripe_service,
    mock_generation_service,
):
    """FastAPI application with repositories and providers overridden."""
    from app.main import app as fastapi_app
    from app.api import dependencies as deps
    from app.infrastructure.db import dependencies as db_deps
    from app.infrastructure.db.database import get_session

    fastapi_app.dependency_overrides = {
        db_deps.get_subscription_repository: lambda: subscription_repo,
        db_deps.get_usage_repository: lambda: usage_repo,
        db_deps.get_user_profile_repository: lambda: profile_repo,
        db_deps.get_generated_image_repository: lambda: image_repo,
        db_deps.get_webhook_event_repository: lambda: webhook_event_repo,
        db_deps.get_payment_repository: lambda: payment_repo,
        get_session: FakeSession,
        deps.get_status_cache: lambda: status_cache,
        deps.get_stripe_service: lambda: mock_stripe_service,
        deps.get_generation_service: lambda: mock_generation_service,
    }
    yield fastapi_app
    fastapi_app.dependency_overrides = {}


@pytest.fixture
def client(app):
    """Get synchronous test client."""
    return TestClient(app)
