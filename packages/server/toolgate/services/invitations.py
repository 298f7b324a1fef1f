"""
Invitation lifecycle.

Admins create time-bounded invitations binding an email address to a role;
the invitee accepts (materializing a membership) or declines. Emails are
stored lower-cased, so every comparison here is case-insensitive.
"""

from __future__ import annotations

import secrets
import uuid
from datetime import timedelta
from typing import Optional

import structlog
from sqlalchemy import delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from toolgate.core.audit import AuditRecorder
from toolgate.core.config import get_settings
from toolgate.core.errors import (
    AlreadyMember,
    Conflict,
    EmailMismatch,
    Forbidden,
    InvitationExpired,
    LimitReached,
    NotFound,
)
from toolgate.models.base import as_utc, utcnow
from toolgate.models.invitation import Invitation
from toolgate.models.membership import Membership
from toolgate.models.organization import Organization
from toolgate.models.user import Profile
from toolgate.services import policy
from toolgate_shared.schemas.audit import AuditAction
from toolgate_shared.schemas.common import ProfileSummary, Role
from toolgate_shared.schemas.invitations import (
    InvitationCreateRequest,
    InvitationCreateResponse,
    InvitationOrgSummary,
    InvitationResponse,
)

log = structlog.get_logger()
settings = get_settings()

TOKEN_BYTES = 32  # 256 bits


def generate_invitation_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def to_response(
    invitation: Invitation,
    inviter: Optional[Profile] = None,
    org: Optional[Organization] = None,
) -> InvitationResponse:
    return InvitationResponse(
        id=invitation.id,
        organization_id=invitation.organization_id,
        email=invitation.email,
        role=invitation.role,
        invited_by=invitation.invited_by,
        expires_at=as_utc(invitation.expires_at),
        accepted_at=as_utc(invitation.accepted_at),
        created_at=as_utc(invitation.created_at),
        inviter=ProfileSummary(id=inviter.id, email=inviter.email, full_name=inviter.full_name)
        if inviter
        else None,
        organization=InvitationOrgSummary(id=org.id, name=org.name, slug=org.slug)
        if org
        else None,
    )


# ---------------------------------------------------------------------------
# Admin side
# ---------------------------------------------------------------------------

async def create_invitation(
    session: AsyncSession,
    org_id: uuid.UUID,
    actor_id: uuid.UUID,
    actor_role: Role,
    req: InvitationCreateRequest,
    audit: AuditRecorder,
) -> InvitationCreateResponse:
    """Invite an email address into the org. Caller must already be authorized."""
    if req.role == Role.OWNER and actor_role != Role.OWNER:
        raise Forbidden()

    capacity = await policy.check_capacity(session, org_id)
    if not capacity.can_add_member:
        raise LimitReached(
            f"User limit reached ({capacity.limits.users}). Upgrade to add more members."
        )

    email = req.email.lower()

    result = await session.execute(
        select(Membership.id)
        .join(Profile, Profile.id == Membership.user_id)
        .where(Profile.email == email)
        .where(Membership.organization_id == org_id)
        .where(Membership.deleted_at.is_(None))
    )
    if result.first() is not None:
        raise AlreadyMember("User already has membership")

    now = utcnow()

    # Expired, never-accepted invitations would otherwise block re-inviting
    await session.execute(
        delete(Invitation).where(
            Invitation.organization_id == org_id,
            Invitation.email == email,
            Invitation.accepted_at.is_(None),
            Invitation.expires_at <= now,
        ).execution_options(synchronize_session=False)
    )

    result = await session.execute(
        select(Invitation.id).where(
            Invitation.organization_id == org_id,
            Invitation.email == email,
            Invitation.accepted_at.is_(None),
        )
    )
    if result.first() is not None:
        raise Conflict("Invitation already sent to this email")

    invitation = Invitation(
        organization_id=org_id,
        email=email,
        role=req.role.value,
        invited_by=actor_id,
        token=generate_invitation_token(),
        expires_at=now + timedelta(days=settings.invitation_ttl_days),
        created_at=now,
    )
    session.add(invitation)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise Conflict("Invitation already sent to this email")

    audit.record(
        org_id,
        actor_id,
        AuditAction.INVITATION_CREATED,
        "invitation",
        invitation.id,
        {"email": email, "role": invitation.role},
    )
    log.info("invitation.created", org_id=str(org_id), invitation_id=str(invitation.id), role=invitation.role)
    return InvitationCreateResponse(**to_response(invitation).model_dump(), token=invitation.token)


async def list_invitations(session: AsyncSession, org_id: uuid.UUID) -> list[InvitationResponse]:
    """Every unaccepted invitation of the org, newest first."""
    result = await session.execute(
        select(Invitation, Profile)
        .join(Profile, Profile.id == Invitation.invited_by, isouter=True)
        .where(Invitation.organization_id == org_id)
        .where(Invitation.accepted_at.is_(None))
        .order_by(Invitation.created_at.desc())
    )
    return [to_response(inv, inviter) for inv, inviter in result.all()]


# ---------------------------------------------------------------------------
# Invitee side
# ---------------------------------------------------------------------------

async def list_for_user(session: AsyncSession, email: str) -> list[InvitationResponse]:
    """Open invitations addressed to ``email`` across all orgs, newest first."""
    result = await session.execute(
        select(Invitation, Organization, Profile)
        .join(Organization, Organization.id == Invitation.organization_id)
        .join(Profile, Profile.id == Invitation.invited_by, isouter=True)
        .where(func.lower(Invitation.email) == email.lower())
        .where(Invitation.accepted_at.is_(None))
        .where(Invitation.expires_at > utcnow())
        .where(Organization.deleted_at.is_(None))
        .order_by(Invitation.created_at.desc())
    )
    return [to_response(inv, inviter, org) for inv, org, inviter in result.all()]


async def accept_invitation(
    session: AsyncSession,
    token: str,
    user_id: uuid.UUID,
    user_email: str,
    audit: AuditRecorder,
) -> Organization:
    """Consume an invitation and create the membership in one transaction.

    When the caller already belongs to the org, the stale invitation is deleted
    and ``AlreadyMember`` is raised; the caller is expected to commit first.
    """
    result = await session.execute(
        select(Invitation).where(
            Invitation.token == token,
            Invitation.accepted_at.is_(None),
        )
    )
    invitation = result.scalar_one_or_none()
    if not invitation:
        raise NotFound("Invalid or expired invitation")

    now = utcnow()
    if as_utc(invitation.expires_at) < now:
        raise InvitationExpired()

    if invitation.email.lower() != user_email.lower():
        raise EmailMismatch()

    org = await session.get(Organization, invitation.organization_id)
    if not org or org.deleted_at is not None:
        raise NotFound("Invalid or expired invitation")

    if await policy.is_member(session, org.id, user_id):
        await session.delete(invitation)
        await session.flush()
        audit.record(
            org.id,
            user_id,
            AuditAction.INVITATION_DECLINED,
            "invitation",
            invitation.id,
            {"email": invitation.email, "reason": "already_member"},
        )
        log.info("invitation.auto_declined", org_id=str(org.id), invitation_id=str(invitation.id))
        raise AlreadyMember()

    session.add(
        Membership(organization_id=org.id, user_id=user_id, role=invitation.role)
    )
    invitation.accepted_at = now
    session.add(invitation)
    try:
        await session.flush()
    except IntegrityError:
        # A concurrent accept created the membership first
        await session.rollback()
        raise AlreadyMember()

    audit.record(
        org.id,
        user_id,
        AuditAction.INVITATION_ACCEPTED,
        "invitation",
        invitation.id,
        {"email": invitation.email, "role": invitation.role},
    )
    log.info("invitation.accepted", org_id=str(org.id), invitation_id=str(invitation.id), user_id=str(user_id))
    return org


async def decline_invitation(
    session: AsyncSession,
    invitation_id: uuid.UUID,
    user_id: uuid.UUID,
    user_email: str,
    audit: AuditRecorder,
) -> None:
    """Delete an open invitation addressed to the caller. Anything else is NotFound."""
    invitation = await session.get(Invitation, invitation_id)
    if (
        not invitation
        or invitation.accepted_at is not None
        or invitation.email.lower() != user_email.lower()
    ):
        raise NotFound("Invitation not found")

    await session.delete(invitation)
    await session.flush()

    audit.record(
        invitation.organization_id,
        user_id,
        AuditAction.INVITATION_DECLINED,
        "invitation",
        invitation.id,
        {"email": invitation.email},
    )
    log.info("invitation.declined", org_id=str(invitation.organization_id), invitation_id=str(invitation_id))


async def purge_expired(session: AsyncSession) -> int:
    """Delete every expired, unaccepted invitation. Returns the number removed."""
    result = await session.execute(
        delete(Invitation).where(
            Invitation.accepted_at.is_(None),
            Invitation.expires_at <= utcnow(),
        ).execution_options(synchronize_session=False)
    )
    return result.rowcount or 0
