"""
Authentication and authorization for Toolgate.

- Email/password credentials hashed with bcrypt
- JWT session tokens (cookie or Bearer) with a Redis revocation list
- Principal resolution and org-scoped role dependencies
"""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import bcrypt
import jwt
import structlog
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from toolgate.core.config import get_settings
from toolgate.core.database import get_session
from toolgate.core.errors import Forbidden, NotFound, Unauthenticated, Upstream
from toolgate.core.redis import get_redis
from toolgate.models.organization import Organization
from toolgate.models.user import Profile
from toolgate.services import policy
from toolgate_shared.schemas.common import Role

log = structlog.get_logger()
settings = get_settings()

SESSION_COOKIE = "tg_session"
CSRF_COOKIE = "tg_csrf"

bearer_header = APIKeyHeader(name="Authorization", auto_error=False)

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt with cost factor 12."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=12)).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode(), hashed.encode())


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(
    user_id: uuid.UUID,
    email: str,
    *,
    expires_delta: timedelta | None = None,
) -> tuple[str, str]:
    """Create a signed JWT. Returns (token, jti)."""
    jti = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "email": email,
        "iat": now,
        "exp": exp,
        "jti": jti,
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, jti


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


# ---------------------------------------------------------------------------
# JWT Revocation (Redis)
# ---------------------------------------------------------------------------

async def revoke_jwt(jti: str, ttl_seconds: int | None = None) -> None:
    """Add a JWT ID to the revocation list in Redis."""
    redis = await get_redis()
    ttl = ttl_seconds or settings.jwt_expire_minutes * 60
    await redis.setex(f"jwt:revoked:{jti}", ttl, "1")


async def is_jwt_revoked(jti: str) -> bool:
    """Check if a JWT ID has been revoked."""
    redis = await get_redis()
    return await redis.exists(f"jwt:revoked:{jti}") > 0


# ---------------------------------------------------------------------------
# CSRF Token
# ---------------------------------------------------------------------------

def generate_csrf_token() -> str:
    """Generate a random CSRF token."""
    return secrets.token_urlsafe(32)


# ---------------------------------------------------------------------------
# Principal resolution
# ---------------------------------------------------------------------------

class Principal:
    """The authenticated caller."""

    def __init__(self, user_id: uuid.UUID, email: str, jti: Optional[str] = None):
        self.user_id = user_id
        self.email = email
        self.jti = jti

    def __repr__(self) -> str:
        return f"Principal(user_id={self.user_id!s}, email={self.email!r})"


def _extract_token(request: Request, authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip() or None
    return request.cookies.get(SESSION_COOKIE)


async def get_current_principal(
    request: Request,
    authorization: Optional[str] = Depends(bearer_header),
    session: AsyncSession = Depends(get_session),
) -> Principal:
    """Resolve the caller from a Bearer token or the session cookie."""
    token = _extract_token(request, authorization)
    if not token:
        raise Unauthenticated()

    try:
        payload = decode_jwt(token)
        user_id = uuid.UUID(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError):
        raise Unauthenticated("Invalid or expired session")

    jti = payload.get("jti")
    try:
        revoked = bool(jti) and await is_jwt_revoked(jti)
    except RedisError:
        log.exception("auth.revocation_check_failed", user_id=str(user_id))
        raise Upstream()
    if revoked:
        raise Unauthenticated("Session has been revoked")

    profile = await session.get(Profile, user_id)
    if not profile:
        raise Unauthenticated("User not found")

    principal = Principal(user_id=profile.id, email=profile.email, jti=jti)
    request.state.principal = principal
    return principal


# ---------------------------------------------------------------------------
# Org-scoped authorization
# ---------------------------------------------------------------------------

class OrgContext:
    """Principal plus the organization named in the path and the caller's role in it."""

    def __init__(self, principal: Principal, org: Organization, role: Role):
        self.principal = principal
        self.org = org
        self.role = role
        self.user_id = principal.user_id
        self.org_id = org.id


async def get_org_context(
    orgId: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
) -> OrgContext:
    """Resolve the org from the path; non-members are denied."""
    org = await session.get(Organization, orgId)
    if not org or org.deleted_at is not None:
        raise NotFound("Organization not found")

    role = await policy.role_of(session, org.id, principal.user_id)
    if role is None:
        log.info("authz.denied", org_id=str(org.id), user_id=str(principal.user_id), reason="not_member")
        raise Forbidden()
    return OrgContext(principal=principal, org=org, role=role)


def require_capability(predicate: Callable[[Optional[str]], bool]):
    """Build a dependency that admits callers whose role satisfies ``predicate``."""

    async def dependency(ctx: OrgContext = Depends(get_org_context)) -> OrgContext:
        if not predicate(ctx.role):
            log.info(
                "authz.denied",
                org_id=str(ctx.org_id),
                user_id=str(ctx.user_id),
                capability=predicate.__name__,
            )
            raise Forbidden()
        return ctx

    dependency.__name__ = f"require_{predicate.__name__}"
    return dependency


async def require_member(ctx: OrgContext = Depends(get_org_context)) -> OrgContext:
    """Any org member can access this endpoint."""
    return ctx

