"""
API Dependencies

FastAPI dependency injection for authentication and services.

Security: Supabase access tokens are verified cryptographically. Tokens
signed with an asymmetric key (ES256/RS256) are checked against the
project JWKS; HS256 tokens are checked with SUPABASE_JWT_SECRET.
"""

import logging
from functools import lru_cache, partial
from typing import Annotated, Optional

import jwt
from jwt import PyJWKClient
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.config.settings import get_settings
from app.domain.models import AuthenticatedUser
from app.domain.subscription import PlanType
from app.infrastructure.ai.gemini_service import HaircutGenerationService, is_server_error
from app.infrastructure.auth.supabase_auth import ACCESS_TOKEN_COOKIE, SupabaseAuthService
from app.infrastructure.cache import SubscriptionStatusCache
from app.infrastructure.db.database import after_commit
# Repository dependencies are re-exported so routers import from one place
from app.infrastructure.db.dependencies import (  # noqa: F401
    GeneratedImageRepoDep,
    PaymentRepoDep,
    SessionDep,
    SubscriptionRepoDep,
    UsageRepoDep,
    UserProfileRepoDep,
    WebhookEventRepoDep,
)
from app.infrastructure.payments.stripe_service import StripeService
from app.infrastructure.retry import RetryPolicy
from app.infrastructure.services.checkout_service import CheckoutService
from app.infrastructure.services.subscription_reconciler import SubscriptionReconciler
from app.infrastructure.services.subscription_status import SubscriptionStatusService
from app.infrastructure.services.usage_ledger import UsageLedger


logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

ASYMMETRIC_ALGORITHMS = ("ES256", "RS256")


# =============================================================================
# Authentication
# =============================================================================

@lru_cache
def _get_jwks_client() -> PyJWKClient:
    """PyJWKClient for the Supabase JWKS endpoint; caches keys internally."""
    settings = get_settings()
    jwks_url = f"{settings.supabase_url}/auth/v1/.well-known/jwks.json"
    return PyJWKClient(jwks_url, cache_keys=True)


def _decode_with_jwks(token: str, algorithm: str, issuer: str) -> dict:
    signing_key = _get_jwks_client().get_signing_key_from_jwt(token)
    return jwt.decode(
        token,
        signing_key.key,
        algorithms=[algorithm],
        issuer=issuer,
        audience="authenticated",
        options={"require": ["exp", "sub", "iss"]},
    )


def _decode_with_secret(token: str, secret: str, issuer: str) -> dict:
    return jwt.decode(
        token,
        secret,
        algorithms=["HS256"],
        issuer=issuer,
        audience="authenticated",
        options={"require": ["exp", "sub", "iss"]},
    )


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def verify_access_token(token: str) -> dict:
    """
    Verify a Supabase access token and return its claims.

    Raises:
        HTTPException 401: token expired, invalid or unverifiable
    """
    settings = get_settings()
    issuer = f"{settings.supabase_url}/auth/v1"

    try:
        algorithm = jwt.get_unverified_header(token).get("alg")
    except jwt.InvalidTokenError:
        raise _unauthorized("Invalid or unverifiable token")

    try:
        if algorithm in ASYMMETRIC_ALGORITHMS:
            return _decode_with_jwks(token, algorithm, issuer)
        if algorithm == "HS256" and settings.supabase_jwt_secret:
            return _decode_with_secret(token, settings.supabase_jwt_secret, issuer)
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except (jwt.exceptions.PyJWKClientError, jwt.InvalidTokenError) as e:
        logger.warning(f"JWT verification failed: {e}")

    raise _unauthorized("Invalid or unverifiable token")


def _extract_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
) -> Optional[str]:
    """Bearer header first, then the Supabase access-token cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(ACCESS_TOKEN_COOKIE) or None


def _user_from_claims(claims: dict) -> AuthenticatedUser:
    user_id = claims.get("sub")
    if not user_id:
        raise _unauthorized("Invalid token: missing user ID")

    metadata = claims.get("user_metadata") or {}
    return AuthenticatedUser(
        id=user_id,
        email=claims.get("email"),
        full_name=metadata.get("full_name") or metadata.get("name"),
        avatar_url=metadata.get("avatar_url") or metadata.get("picture"),
    )


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthenticatedUser:
    """
    Resolve the authenticated user from a Supabase JWT.

    Raises:
        HTTPException 401: token missing, expired, or invalid
    """
    token = _extract_token(request, credentials)
    if not token:
        raise _unauthorized("Authentication required")
    return _user_from_claims(verify_access_token(token))


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[AuthenticatedUser]:
    """Like ``get_current_user`` but returns ``None`` for anonymous callers."""
    token = _extract_token(request, credentials)
    if not token:
        return None
    try:
        return _user_from_claims(verify_access_token(token))
    except HTTPException:
        return None


CurrentUserDep = Annotated[AuthenticatedUser, Depends(get_current_user)]
OptionalUserDep = Annotated[Optional[AuthenticatedUser], Depends(get_optional_user)]


# =============================================================================
# Process-wide Services
# =============================================================================

@lru_cache
def get_stripe_service() -> StripeService:
    settings = get_settings()
    return StripeService(
        api_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
        price_ids={
            PlanType.PRO: settings.stripe_pro_price_id,
            PlanType.PREMIUM: settings.stripe_premium_price_id,
        },
    )


@lru_cache
def get_status_cache() -> SubscriptionStatusCache:
    return SubscriptionStatusCache(ttl_seconds=get_settings().subscription_cache_ttl_seconds)


@lru_cache
def get_generation_service() -> HaircutGenerationService:
    settings = get_settings()
    return HaircutGenerationService.from_api_key(
        settings.google_api_key,
        model=settings.gemini_image_model,
        retry_policy=RetryPolicy(
            max_attempts=settings.generation_max_attempts,
            base_delay=settings.generation_retry_base_delay,
            is_retryable=is_server_error,
        ),
    )


@lru_cache
def get_auth_service() -> SupabaseAuthService:
    settings = get_settings()
    return SupabaseAuthService(
        supabase_url=settings.supabase_url,
        anon_key=settings.supabase_anon_key,
        service_role_key=settings.supabase_service_role_key,
    )


StripeServiceDep = Annotated[StripeService, Depends(get_stripe_service)]
StatusCacheDep = Annotated[SubscriptionStatusCache, Depends(get_status_cache)]
GenerationServiceDep = Annotated[HaircutGenerationService, Depends(get_generation_service)]
AuthServiceDep = Annotated[SupabaseAuthService, Depends(get_auth_service)]


# =============================================================================
# Request-scoped Services
# =============================================================================

def get_usage_ledger(
    usage_repo: UsageRepoDep,
    profile_repo: UserProfileRepoDep,
    subscription_repo: SubscriptionRepoDep,
) -> UsageLedger:
    return UsageLedger(usage_repo, profile_repo, subscription_repo)


UsageLedgerDep = Annotated[UsageLedger, Depends(get_usage_ledger)]


def get_subscription_reconciler(
    stripe_service: StripeServiceDep,
    subscription_repo: SubscriptionRepoDep,
    profile_repo: UserProfileRepoDep,
    payment_repo: PaymentRepoDep,
    ledger: UsageLedgerDep,
    cache: StatusCacheDep,
    session: SessionDep,
) -> SubscriptionReconciler:
    return SubscriptionReconciler(
        stripe_service,
        subscription_repo,
        profile_repo,
        payment_repo,
        ledger,
        cache,
        after_commit=partial(after_commit, session),
    )


def get_subscription_status_service(
    subscription_repo: SubscriptionRepoDep,
    cache: StatusCacheDep,
) -> SubscriptionStatusService:
    return SubscriptionStatusService(
        subscription_repo,
        cache,
        timeout_seconds=get_settings().subscription_query_timeout_seconds,
    )


def get_checkout_service(
    stripe_service: StripeServiceDep,
    subscription_repo: SubscriptionRepoDep,
    profile_repo: UserProfileRepoDep,
    payment_repo: PaymentRepoDep,
) -> CheckoutService:
    return CheckoutService(stripe_service, subscription_repo, profile_repo, payment_repo)


ReconcilerDep = Annotated[SubscriptionReconciler, Depends(get_subscription_reconciler)]
StatusServiceDep = Annotated[SubscriptionStatusService, Depends(get_subscription_status_service)]
CheckoutServiceDep = Annotated[CheckoutService, Depends(get_checkout_service)]


