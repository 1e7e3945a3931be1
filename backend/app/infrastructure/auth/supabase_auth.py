"""
Supabase Auth Service

Thin wrapper over the Supabase Auth client for the server-side parts of
the OAuth flow: exchanging an authorization code for a session, and
revoking sessions on sign-out.
"""

import asyncio
import base64
import json
import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple
from urllib.parse import urlparse

from supabase import create_client, Client
from supabase.lib.client_options import ClientOptions

from app.infrastructure.exceptions import HaircutFunError


logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIE = "sb-access-token"
REFRESH_TOKEN_COOKIE = "sb-refresh-token"
CODE_VERIFIER_COOKIE = "sb-code-verifier"
BASE64_COOKIE_PREFIX = "base64-"

# Cleared on every sign-out, whether or not the provider call succeeded
AUTH_COOKIE_NAMES = (
    ACCESS_TOKEN_COOKIE,
    REFRESH_TOKEN_COOKIE,
    "supabase-auth-token",
    "supabase.auth.token",
)


def code_verifier_cookie_names(supabase_url: str) -> Tuple[str, ...]:
    """
    Cookies that may hold the PKCE code verifier, in lookup order.

    supabase-js stores it as ``sb-<project ref>-auth-token-code-verifier``;
    ``sb-code-verifier`` is accepted for clients that set it themselves.
    """
    project_ref = (urlparse(supabase_url).hostname or "").split(".")[0]
    names = (f"sb-{project_ref}-auth-token-code-verifier",) if project_ref else ()
    return names + (CODE_VERIFIER_COOKIE,)


def decode_code_verifier(raw: str) -> str:
    """Undo the ``base64-`` prefix and JSON quoting supabase-js applies."""
    value = raw
    if value.startswith(BASE64_COOKIE_PREFIX):
        encoded = value[len(BASE64_COOKIE_PREFIX):]
        value = base64.urlsafe_b64decode(encoded + "=" * (-len(encoded) % 4)).decode()
    if value.startswith('"'):
        value = json.loads(value)
    return value


def read_code_verifier(cookies: Mapping[str, str], supabase_url: str) -> Optional[str]:
    for name in code_verifier_cookie_names(supabase_url):
        raw = cookies.get(name)
        if not raw:
            continue
        try:
            return decode_code_verifier(raw)
        except ValueError as e:
            logger.warning(f"Unreadable code verifier cookie {name}: {e}")
            return None
    return None


class AuthServiceError(HaircutFunError):
    """Raised when the Supabase Auth API rejects a request."""
    pass


@dataclass(frozen=True)
class SessionTokens:
    """Tokens of a freshly established session."""
    access_token: str
    refresh_token: str
    expires_in: Optional[int] = None
    user_id: Optional[str] = None


class SupabaseAuthService:
    """
    Supabase Auth operations needing server credentials.

    Args:
        supabase_url: Project URL
        anon_key: Public key used for the PKCE code exchange
        service_role_key: Elevated key used to revoke sessions
    """

    def __init__(
        self,
        supabase_url: str,
        anon_key: Optional[str],
        service_role_key: str,
    ):
        self._supabase_url = supabase_url
        self._anon_key = anon_key or service_role_key
        self._service_role_key = service_role_key
        self._admin_client: Optional[Client] = None

    def _new_client(self, key: str) -> Client:
        options = ClientOptions(
            auto_refresh_token=False,
            persist_session=False,
            flow_type="pkce",
        )
        return create_client(self._supabase_url, key, options)

    @property
    def admin_client(self) -> Client:
        if self._admin_client is None:
            self._admin_client = self._new_client(self._service_role_key)
        return self._admin_client

    async def exchange_code_for_session(
        self,
        code: str,
        code_verifier: Optional[str] = None,
        redirect_to: Optional[str] = None,
    ) -> SessionTokens:
        """
        Exchange an OAuth authorization code for a session.

        A fresh client is used per exchange since the code verifier is
        per-login state.

        Raises:
            AuthServiceError: The code was rejected or yielded no session
        """
        client = self._new_client(self._anon_key)
        params = {"auth_code": code}
        if code_verifier:
            params["code_verifier"] = code_verifier
        if redirect_to:
            params["redirect_to"] = redirect_to

        try:
            response = await asyncio.to_thread(client.auth.exchange_code_for_session, params)
        except Exception as e:
            logger.error(f"Auth code exchange failed: {e}")
            raise AuthServiceError("Could not complete sign-in", original_error=e)

        session = getattr(response, "session", None)
        if session is None:
            raise AuthServiceError("Auth code exchange returned no session")

        user = getattr(response, "user", None)
        return SessionTokens(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_in=getattr(session, "expires_in", None),
            user_id=getattr(user, "id", None),
        )

    async def sign_out(self, access_token: str) -> None:
        """
        Revoke every session of the token's user.

        Raises:
            AuthServiceError: The provider call failed
        """
        try:
            await asyncio.to_thread(self.admin_client.auth.admin.sign_out, access_token, "global")
            logger.info("Revoked Supabase sessions on sign-out")
        except Exception as e:
            logger.warning(f"Supabase sign-out failed: {e}")
            raise AuthServiceError("Sign-out failed", original_error=e)
