"""
Auth Routes

Server side of the Supabase OAuth flow (code exchange and sign-out) and
the combined user-data lookup used by the client after sign-in.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, RedirectResponse

from app.api.dependencies import (
    AuthServiceDep,
    CurrentUserDep,
    SubscriptionRepoDep,
    UsageRepoDep,
    UserProfileRepoDep,
    UsageLedgerDep,
)
from app.config.settings import get_settings
from app.infrastructure.auth.supabase_auth import (
    ACCESS_TOKEN_COOKIE,
    AUTH_COOKIE_NAMES,
    REFRESH_TOKEN_COOKIE,
    AuthServiceError,
    code_verifier_cookie_names,
    read_code_verifier,
)


logger = logging.getLogger(__name__)

router = APIRouter()

REFRESH_TOKEN_MAX_AGE = 60 * 60 * 24 * 30


def _safe_next(next_path: Optional[str]) -> str:
    """Only same-site relative paths are accepted as redirect targets."""
    if not next_path or not next_path.startswith("/") or next_path.startswith("//"):
        return "/"
    return next_path


@router.get("/auth/callback")
async def auth_callback(
    request: Request,
    auth_service: AuthServiceDep,
    code: Optional[str] = None,
    next: Optional[str] = None,
):
    """
    Exchange the OAuth code for a session and redirect back into the app.

    The PKCE code verifier is read from the cookie supabase-js writes,
    ``sb-<project ref>-auth-token-code-verifier``, or else from
    ``sb-code-verifier``. The session tokens are set as HTTP-only cookies.
    Failures redirect to the sign-in error page.
    """
    settings = get_settings()
    site_url = settings.site_url.rstrip("/")

    if not code:
        return RedirectResponse(f"{site_url}/auth/auth-code-error", status_code=303)

    try:
        tokens = await auth_service.exchange_code_for_session(
            code,
            code_verifier=read_code_verifier(request.cookies, settings.supabase_url),
        )
    except AuthServiceError as e:
        logger.error(f"OAuth callback failed: {e.message}")
        return RedirectResponse(f"{site_url}/auth/auth-code-error", status_code=303)

    response = RedirectResponse(f"{site_url}{_safe_next(next)}", status_code=303)
    secure = settings.is_production
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        tokens.access_token,
        max_age=tokens.expires_in,
        path="/",
        httponly=True,
        secure=secure,
        samesite="lax",
    )
    response.set_cookie(
        REFRESH_TOKEN_COOKIE,
        tokens.refresh_token,
        max_age=REFRESH_TOKEN_MAX_AGE,
        path="/",
        httponly=True,
        secure=secure,
        samesite="lax",
    )
    for name in code_verifier_cookie_names(settings.supabase_url):
        response.delete_cookie(name, path="/")
    logger.info(f"Signed in user {tokens.user_id}")
    return response


@router.post("/auth/signout")
async def sign_out(request: Request, auth_service: AuthServiceDep):
    """
    Revoke the caller's sessions and clear the auth cookies.

    The cookies are cleared even when revocation fails.
    """
    content = {"ok": True}
    token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    authorization = request.headers.get("authorization", "")
    if authorization.lower().startswith("bearer "):
        token = authorization[7:].strip() or token

    if token:
        try:
            await auth_service.sign_out(token)
        except AuthServiceError:
            content = {"ok": False, "error": "supabase_signout_failed"}

    response = JSONResponse(content=content)
    for name in AUTH_COOKIE_NAMES:
        response.delete_cookie(name, path="/")
    return response


@router.get("/auth/user-data")
async def get_user_data(
    user: CurrentUserDep,
    profiles: UserProfileRepoDep,
    subscriptions: SubscriptionRepoDep,
    usage: UsageRepoDep,
    ledger: UsageLedgerDep,
):
    """Profile, effective subscription and this month's usage row, each possibly null."""
    return {
        "profile": await profiles.get_by_user_id(user.id),
        "subscription": await subscriptions.get_current(user.id),
        "usage": await usage.get(user.id, ledger.current_month_year()),
    }
