"""
Security Test Suite: JWT Authentication

Tests that the JWT verification in dependencies.py correctly:
- Rejects missing, malformed, expired and mis-signed tokens
- Rejects tokens from another issuer or audience
- Accepts HS256 tokens signed with the project secret
- Accepts ES256 tokens through the (mocked) JWKS client
- Falls back to the Supabase access-token cookie
"""

import time
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import ec
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.dependencies import CurrentUserDep, OptionalUserDep
from app.config.settings import get_settings

from fakes import USER_ID, make_token


# ---------------------------------------------------------------------------
# Minimal app that uses the real dependencies
# ---------------------------------------------------------------------------

test_app = FastAPI()


@test_app.get("/protected")
async def protected_endpoint(user: CurrentUserDep):
    return {"user_id": user.id, "email": user.email, "full_name": user.full_name}


@test_app.get("/optional")
async def optional_endpoint(user: OptionalUserDep):
    return {"user_id": user.id if user else None}


client = TestClient(test_app, raise_server_exceptions=False)


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Tests: rejection scenarios
# ---------------------------------------------------------------------------


class TestJWTRejection:
    """Verify that invalid/missing JWTs are rejected with 401."""

    def test_no_auth_header(self):
        resp = client.get("/protected")
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Authentication required"

    def test_malformed_scheme(self):
        resp = client.get("/protected", headers={"Authorization": "Basic abc123"})
        assert resp.status_code == 401

    def test_garbage_token(self):
        resp = client.get("/protected", headers=bearer("not.a.jwt"))
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid or unverifiable token"

    def test_wrong_secret(self):
        resp = client.get("/protected", headers=bearer(make_token(secret="another-secret-of-sufficient-length-000")))
        assert resp.status_code == 401

    def test_expired_token(self):
        resp = client.get("/protected", headers=bearer(make_token(expires_in=-60)))
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Token has expired"

    def test_wrong_issuer(self):
        resp = client.get("/protected", headers=bearer(make_token(iss="https://evil.example.com/auth/v1")))
        assert resp.status_code == 401

    def test_wrong_audience(self):
        resp = client.get("/protected", headers=bearer(make_token(aud="anon")))
        assert resp.status_code == 401

    def test_raw_uuid_rejected(self):
        resp = client.get("/protected", headers=bearer(USER_ID))
        assert resp.status_code == 401

    def test_unsupported_algorithm(self):
        settings = get_settings()
        token = jwt.encode(
            {"sub": USER_ID, "aud": "authenticated", "iss": f"{settings.supabase_url}/auth/v1",
             "exp": int(time.time()) + 3600},
            settings.supabase_jwt_secret,
            algorithm="HS512",
        )
        resp = client.get("/protected", headers=bearer(token))
        assert resp.status_code == 401


# ---------------------------------------------------------------------------
# Tests: acceptance scenarios (HS256 and mocked JWKS)
# ---------------------------------------------------------------------------


class TestJWTAcceptance:
    """Verify that valid JWTs are accepted."""

    def test_valid_hs256_token(self):
        resp = client.get("/protected", headers=bearer(make_token()))
        assert resp.status_code == 200
        body = resp.json()
        assert body["user_id"] == USER_ID
        assert body["email"] == "user@example.com"
        assert body["full_name"] == "Test User"

    def test_access_token_cookie(self):
        cookie_client = TestClient(test_app, cookies={"sb-access-token": make_token()})
        resp = cookie_client.get("/protected")
        assert resp.status_code == 200
        assert resp.json()["user_id"] == USER_ID

    def test_valid_es256_token_via_jwks(self):
        settings = get_settings()
        private_key = ec.generate_private_key(ec.SECP256R1())
        token = jwt.encode(
            {"sub": USER_ID, "aud": "authenticated", "iss": f"{settings.supabase_url}/auth/v1",
             "exp": int(time.time()) + 3600},
            private_key,
            algorithm="ES256",
            headers={"kid": "test-key"},
        )
        jwks_client = MagicMock()
        jwks_client.get_signing_key_from_jwt.return_value = SimpleNamespace(key=private_key.public_key())

        with patch("app.api.dependencies._get_jwks_client", return_value=jwks_client):
            resp = client.get("/protected", headers=bearer(token))

        assert resp.status_code == 200
        assert resp.json()["user_id"] == USER_ID


class TestOptionalUser:

    def test_anonymous(self):
        resp = client.get("/optional")
        assert resp.status_code == 200
        assert resp.json() == {"user_id": None}

    def test_invalid_token_is_treated_as_anonymous(self):
        resp = client.get("/optional", headers=bearer("not.a.jwt"))
        assert resp.json() == {"user_id": None}

    def test_signed_in(self):
        resp = client.get("/optional", headers=bearer(make_token()))
        assert resp.json() == {"user_id": USER_ID}
