"""
Tests for authentication and authorization.

Covers:
- Password hashing
- JWT creation, decoding, revocation
- CSRF and security headers middleware
- Register / login / logout / me endpoints
- Principal resolution (cookie, Bearer, revoked, unknown user)
- Capability dependencies (require_member, require_capability)
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import jwt as pyjwt
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from toolgate.core.auth import (
    OrgContext,
    create_jwt,
    decode_jwt,
    generate_csrf_token,
    hash_password,
    require_capability,
    require_member,
    verify_password,
)
from toolgate.core.errors import Forbidden
from toolgate.core.middleware import CSRFMiddleware, SecurityHeadersMiddleware, SECURITY_HEADERS
from toolgate.services.policy import can_manage_tools, can_request_access, can_review_requests
from toolgate_shared.schemas.common import Role

from conftest import DEFAULT_PASSWORD, register


# ---------------------------------------------------------------------------
# Unit Tests: Password hashing
# ---------------------------------------------------------------------------

class TestPasswordHashing:
    def test_hash_and_verify(self):
        password = "MySecureP@ssw0rd!"
        hashed = hash_password(password)
        assert hashed != password
        assert verify_password(password, hashed)

    def test_wrong_password_fails(self):
        hashed = hash_password("correct-password")
        assert not verify_password("wrong-password", hashed)

    def test_different_hashes_for_same_password(self):
        """bcrypt uses random salt, so hashes differ."""
        h1 = hash_password("same")
        h2 = hash_password("same")
        assert h1 != h2
        assert verify_password("same", h1)
        assert verify_password("same", h2)


# ---------------------------------------------------------------------------
# Unit Tests: JWT
# ---------------------------------------------------------------------------

class TestJWT:
    def test_create_and_decode(self):
        uid = uuid.uuid4()
        token, jti = create_jwt(user_id=uid, email="dev@acme.com")
        payload = decode_jwt(token)
        assert payload["sub"] == str(uid)
        assert payload["email"] == "dev@acme.com"
        assert payload["jti"] == jti

    def test_expired_jwt_raises(self):
        token, _ = create_jwt(
            user_id=uuid.uuid4(), email="dev@acme.com", expires_delta=timedelta(seconds=-1)
        )
        with pytest.raises(pyjwt.ExpiredSignatureError):
            decode_jwt(token)

    def test_tampered_jwt_raises(self):
        token, _ = create_jwt(user_id=uuid.uuid4(), email="dev@acme.com")
        header, payload, signature = token.split(".")
        tampered = ".".join([header, payload, signature[::-1]])
        with pytest.raises(pyjwt.PyJWTError):
            decode_jwt(tampered)


class TestCSRFToken:
    def test_generates_unique_tokens(self):
        t1 = generate_csrf_token()
        t2 = generate_csrf_token()
        assert t1 != t2
        assert len(t1) > 20


# ---------------------------------------------------------------------------
# Unit Tests: JWT Revocation (mocked Redis)
# ---------------------------------------------------------------------------

class TestJWTRevocation:
    @pytest.mark.asyncio
    async def test_revoke_and_check(self):
        mock_redis = AsyncMock()
        mock_redis.exists = AsyncMock(return_value=1)

        with patch("toolgate.core.auth.get_redis", return_value=mock_redis):
            from toolgate.core.auth import is_jwt_revoked, revoke_jwt

            await revoke_jwt("test-jti-123", ttl_seconds=3600)
            mock_redis.setex.assert_called_once_with("jwt:revoked:test-jti-123", 3600, "1")

            assert await is_jwt_revoked("test-jti-123") is True

    @pytest.mark.asyncio
    async def test_non_revoked_jwt(self):
        mock_redis = AsyncMock()
        mock_redis.exists = AsyncMock(return_value=0)

        with patch("toolgate.core.auth.get_redis", return_value=mock_redis):
            from toolgate.core.auth import is_jwt_revoked

            assert await is_jwt_revoked("non-existent-jti") is False


# ---------------------------------------------------------------------------
# Integration Tests: Middleware
# ---------------------------------------------------------------------------

class TestSecurityHeadersMiddleware:
    def test_headers_present(self):
        app = FastAPI()
        app.add_middleware(SecurityHeadersMiddleware)

        @app.get("/test")
        async def test_endpoint():
            return {"ok": True}

        client = TestClient(app)
        resp = client.get("/test")
        assert resp.status_code == 200
        for header, value in SECURITY_HEADERS.items():
            assert resp.headers.get(header) == value


class TestCSRFMiddleware:
    def _make_app(self) -> FastAPI:
        app = FastAPI()
        app.add_middleware(CSRFMiddleware)

        @app.get("/test")
        async def get_test():
            return {"ok": True}

        @app.post("/test")
        async def post_test():
            return {"ok": True}

        return app

    def test_get_passes_without_csrf(self):
        client = TestClient(self._make_app())
        assert client.get("/test").status_code == 200

    def test_post_with_bearer_skips_csrf(self):
        client = TestClient(self._make_app(), cookies={"tg_session": "some-jwt"})
        resp = client.post("/test", headers={"Authorization": "Bearer some-jwt"})
        assert resp.status_code == 200

    def test_post_without_session_cookie_passes(self):
        """No session cookie = not a browser session, skip CSRF."""
        client = TestClient(self._make_app())
        assert client.post("/test").status_code == 200

    def test_post_with_session_but_no_csrf_fails(self):
        client = TestClient(self._make_app(), cookies={"tg_session": "some-jwt"})
        resp = client.post("/test")
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "CSRF_VALIDATION_FAILED"

    def test_post_with_matching_csrf_passes(self):
        client = TestClient(
            self._make_app(),
            cookies={"tg_session": "some-jwt", "tg_csrf": "test-csrf-token"},
        )
        resp = client.post("/test", headers={"X-CSRF-Token": "test-csrf-token"})
        assert resp.status_code == 200

    def test_post_with_mismatched_csrf_fails(self):
        client = TestClient(
            self._make_app(),
            cookies={"tg_session": "some-jwt", "tg_csrf": "token-a"},
        )
        resp = client.post("/test", headers={"X-CSRF-Token": "token-b"})
        assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Integration Tests: Auth Endpoints
# ---------------------------------------------------------------------------

class TestAuthEndpoints:
    @pytest.mark.asyncio
    async def test_register_sets_session_cookies(self, client):
        resp = await client.post(
            "/auth/register",
            json={"email": "New.User@Acme.com", "password": DEFAULT_PASSWORD},
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["email"] == "new.user@acme.com"
        assert "tg_session" in resp.headers.get("set-cookie", "")
        assert decode_jwt(data["token"])["sub"] == data["user_id"]

    @pytest.mark.asyncio
    async def test_register_duplicate_email_conflicts(self, client):
        await register(client, "dup@acme.com")
        resp = await client.post(
            "/auth/register",
            json={"email": "DUP@acme.com", "password": DEFAULT_PASSWORD},
        )
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_register_short_password(self, client):
        resp = await client.post(
            "/auth/register",
            json={"email": "short@acme.com", "password": "short"},
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_login(self, client):
        await register(client, "login@acme.com")
        resp = await client.post(
            "/auth/login",
            json={"email": "Login@Acme.com", "password": DEFAULT_PASSWORD},
        )
        assert resp.status_code == 200
        assert resp.json()["email"] == "login@acme.com"

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client):
        await register(client, "login@acme.com")
        resp = await client.post(
            "/auth/login",
            json={"email": "login@acme.com", "password": "not-the-password"},
        )
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_login_unknown_email(self, client):
        resp = await client.post(
            "/auth/login",
            json={"email": "ghost@acme.com", "password": DEFAULT_PASSWORD},
        )
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_me_requires_session(self, client):
        resp = await client.get("/auth/me")
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_me_with_bearer(self, client):
        actor = await register(client, "me@acme.com", "Me Myself")
        resp = await client.get("/auth/me", headers=actor.headers)
        assert resp.status_code == 200
        assert resp.json() == {
            "user_id": str(actor.user_id),
            "email": "me@acme.com",
            "full_name": "Me Myself",
        }

    @pytest.mark.asyncio
    async def test_me_with_session_cookie(self, client):
        actor = await register(client, "cookie@acme.com")
        client.cookies.clear()
        client.cookies.set("tg_session", actor.token)
        resp = await client.get("/auth/me")
        assert resp.status_code == 200
        assert resp.json()["user_id"] == str(actor.user_id)

    @pytest.mark.asyncio
    async def test_invalid_token_is_unauthenticated(self, client):
        resp = await client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_token_for_unknown_user_is_unauthenticated(self, client):
        token, _ = create_jwt(user_id=uuid.uuid4(), email="ghost@acme.com")
        resp = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_revoked_token_is_unauthenticated(self, client, mock_redis):
        actor = await register(client, "revoked@acme.com")
        mock_redis.exists.return_value = 1
        resp = await client.get("/auth/me", headers=actor.headers)
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Session has been revoked"

    @pytest.mark.asyncio
    async def test_revocation_store_down_is_upstream_error(self, client, mock_redis):
        actor = await register(client, "down@acme.com")
        mock_redis.exists.side_effect = RedisConnectionError("connection refused")
        resp = await client.get("/auth/me", headers=actor.headers)
        assert resp.status_code == 500
        assert resp.json()["detail"] == "Internal server error"

    @pytest.mark.asyncio
    async def test_logout_revokes_jti(self, client, mock_redis):
        actor = await register(client, "bye@acme.com")
        jti = decode_jwt(actor.token)["jti"]
        resp = await client.post("/auth/logout", headers=actor.headers)
        assert resp.status_code == 200
        assert resp.json()["message"] == "Logged out"
        key = mock_redis.setex.call_args.args[0]
        assert key == f"jwt:revoked:{jti}"

    @pytest.mark.asyncio
    async def test_logout_without_session(self, client, mock_redis):
        resp = await client.post("/auth/logout")
        assert resp.status_code == 200
        mock_redis.setex.assert_not_called()

    @pytest.mark.asyncio
    async def test_cookie_session_post_requires_csrf(self, client):
        actor = await register(client, "csrf@acme.com")
        client.cookies.clear()
        client.cookies.set("tg_session", actor.token)
        resp = await client.post("/api/v1/orgs", json={"name": "Acme", "slug": "acme"})
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "CSRF_VALIDATION_FAILED"

        client.cookies.set("tg_csrf", "double-submit")
        resp = await client.post(
            "/api/v1/orgs",
            json={"name": "Acme", "slug": "acme"},
            headers={"X-CSRF-Token": "double-submit"},
        )
        assert resp.status_code == 201


# ---------------------------------------------------------------------------
# Unit Tests: Role-based auth matrix
# ---------------------------------------------------------------------------

class TestAuthorizationMatrix:
    """Capability dependencies called directly with mock org contexts."""

    def _mock_ctx(self, role: Role) -> OrgContext:
        principal = MagicMock()
        principal.user_id = uuid.uuid4()
        org = MagicMock()
        org.id = uuid.uuid4()
        return OrgContext(principal=principal, org=org, role=role)

    @pytest.mark.asyncio
    async def test_member_allows_all_roles(self):
        for role in Role:
            ctx = self._mock_ctx(role)
            assert await require_member(ctx) is ctx

    @pytest.mark.asyncio
    async def test_admin_capabilities_allow_owner_and_admin(self):
        for predicate in (can_manage_tools, can_review_requests):
            dependency = require_capability(predicate)
            for role in (Role.OWNER, Role.ADMIN):
                ctx = self._mock_ctx(role)
                assert await dependency(ctx) is ctx

    @pytest.mark.asyncio
    async def test_admin_capabilities_reject_member(self):
        for predicate in (can_manage_tools, can_review_requests):
            dependency = require_capability(predicate)
            with pytest.raises(Forbidden) as exc_info:
                await dependency(self._mock_ctx(Role.MEMBER))
            assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_request_access_allows_member(self):
        dependency = require_capability(can_request_access)
        ctx = self._mock_ctx(Role.MEMBER)
        assert await dependency(ctx) is ctx
