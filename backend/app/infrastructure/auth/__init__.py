"""
Auth Infrastructure Module

Supabase Auth session exchange and sign-out.
"""

from app.infrastructure.auth.supabase_auth import (
    AUTH_COOKIE_NAMES,
    AuthServiceError,
    SessionTokens,
    SupabaseAuthService,
)

__all__ = [
    "AUTH_COOKIE_NAMES",
    "AuthServiceError",
    "SessionTokens",
    "SupabaseAuthService",
]
