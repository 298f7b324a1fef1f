"""
Authentication endpoints.

- Email/password registration & login
- JWT session cookies (plus Bearer for non-browser clients)
- Logout with server-side revocation
"""

from __future__ import annotations

from typing import Optional

import jwt
import structlog
from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from toolgate.core.auth import (
    CSRF_COOKIE,
    SESSION_COOKIE,
    Principal,
    create_jwt,
    decode_jwt,
    generate_csrf_token,
    get_current_principal,
    hash_password,
    revoke_jwt,
    verify_password,
)
from toolgate.core.config import get_settings
from toolgate.core.database import get_session
from toolgate.core.errors import Conflict, Unauthenticated
from toolgate.models.user import Profile

log = structlog.get_logger()
settings = get_settings()
router = APIRouter()

# Cookie config
COOKIE_KWARGS = {
    "httponly": True,
    "secure": not settings.debug,  # allow non-HTTPS in dev
    "samesite": "lax",
    "path": "/",
    "max_age": settings.jwt_expire_minutes * 60,
}


def _set_session_cookies(response: Response, token: str, csrf: str) -> None:
    """Set the session JWT and CSRF cookies on a response."""
    response.set_cookie(key=SESSION_COOKIE, value=token, **COOKIE_KWARGS)
    response.set_cookie(key=CSRF_COOKIE, value=csrf, **{**COOKIE_KWARGS, "httponly": False})


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    full_name: Optional[str] = Field(default=None, max_length=200)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class AuthResponse(BaseModel):
    user_id: str
    email: str
    token: str
    csrf_token: str


class MeResponse(BaseModel):
    user_id: str
    email: str
    full_name: Optional[str] = None


def _issue_session(response: Response, profile: Profile) -> AuthResponse:
    token, _jti = create_jwt(user_id=profile.id, email=profile.email)
    csrf = generate_csrf_token()
    _set_session_cookies(response, token, csrf)
    return AuthResponse(user_id=str(profile.id), email=profile.email, token=token, csrf_token=csrf)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    body: RegisterRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Register a new user with email/password and start a session."""
    email = body.email.lower()
    result = await session.execute(select(Profile.id).where(Profile.email == email))
    if result.first() is not None:
        raise Conflict("Email already registered")

    profile = Profile(
        email=email,
        full_name=body.full_name,
        password_hash=hash_password(body.password),
    )
    session.add(profile)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise Conflict("Email already registered")

    log.info("user.registered", user_id=str(profile.id))
    return _issue_session(response, profile)


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Authenticate with email/password and receive a JWT session."""
    result = await session.execute(select(Profile).where(Profile.email == body.email.lower()))
    profile = result.scalar_one_or_none()

    if not profile or not profile.password_hash:
        raise Unauthenticated("Invalid email or password")

    if not verify_password(body.password, profile.password_hash):
        log.warning("auth.login_failure", user_id=str(profile.id), reason="bad_password")
        raise Unauthenticated("Invalid email or password")

    log.info("auth.login_success", user_id=str(profile.id))
    return _issue_session(response, profile)


@router.post("/logout")
async def logout(request: Request, response: Response):
    """Invalidate the current session."""
    token = request.cookies.get(SESSION_COOKIE)
    authorization = request.headers.get("Authorization", "")
    if authorization.startswith("Bearer "):
        token = authorization[7:].strip()

    if token:
        try:
            payload = decode_jwt(token)
        except jwt.PyJWTError:
            payload = {}  # already invalid; just clear cookies
        jti = payload.get("jti")
        if jti:
            await revoke_jwt(jti)
            log.info("auth.logout", user_id=payload.get("sub"))

    response.delete_cookie(SESSION_COOKIE, path="/")
    response.delete_cookie(CSRF_COOKIE, path="/")
    return {"message": "Logged out"}


@router.get("/me", response_model=MeResponse)
async def me(
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
):
    """The authenticated caller."""
    profile = await session.get(Profile, principal.user_id)
    return MeResponse(
        user_id=str(principal.user_id),
        email=principal.email,
        full_name=profile.full_name if profile else None,
    )
