"""
Organization service: tenant creation, listing and membership views.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from toolgate.core.audit import AuditRecorder
from toolgate.core.errors import Conflict
from toolgate.models.base import as_utc
from toolgate.models.membership import Membership
from toolgate.models.organization import Organization
from toolgate.models.subscription import Subscription
from toolgate.models.user import Profile
from toolgate.services.policy import plan_limits
from toolgate_shared.schemas.audit import AuditAction
from toolgate_shared.schemas.common import ProfileSummary, Role, SubscriptionPlan
from toolgate_shared.schemas.organizations import (
    MemberResponse,
    OrgCreateRequest,
    OrgListItem,
    OrgResponse,
)

log = structlog.get_logger()


def to_response(org: Organization) -> OrgResponse:
    return OrgResponse(
        id=org.id,
        name=org.name,
        slug=org.slug,
        created_at=as_utc(org.created_at),
        updated_at=as_utc(org.updated_at),
    )


async def list_user_orgs(user_id: uuid.UUID, session: AsyncSession) -> list[OrgListItem]:
    """All live orgs the user holds a live membership in, with their role."""
    result = await session.execute(
        select(Organization, Membership.role)
        .join(Membership, Membership.organization_id == Organization.id)
        .where(Membership.user_id == user_id)
        .where(Membership.deleted_at.is_(None))
        .where(Organization.deleted_at.is_(None))
        .order_by(Organization.created_at.desc())
    )
    return [
        OrgListItem(id=org.id, name=org.name, slug=org.slug, role=role)
        for org, role in result.all()
    ]


async def create_org(
    req: OrgCreateRequest,
    creator_id: uuid.UUID,
    session: AsyncSession,
    audit: AuditRecorder,
) -> Organization:
    """Create an org, make the creator its OWNER and provision a FREE subscription."""
    existing = await session.execute(
        select(Organization.id).where(Organization.slug == req.slug)
    )
    if existing.scalar_one_or_none():
        raise Conflict("Organization slug already exists")

    org = Organization(name=req.name, slug=req.slug)
    session.add(org)
    try:
        await session.flush()
    except IntegrityError:
        # Lost a race on the unique slug
        await session.rollback()
        raise Conflict("Organization slug already exists")

    limits = plan_limits(SubscriptionPlan.FREE)
    session.add(
        Membership(organization_id=org.id, user_id=creator_id, role=Role.OWNER.value)
    )
    session.add(
        Subscription(
            organization_id=org.id,
            plan=SubscriptionPlan.FREE.value,
            user_limit=limits.users,
            tool_limit=limits.tools,
        )
    )
    await session.flush()

    audit.record(
        org.id,
        creator_id,
        AuditAction.ORGANIZATION_CREATED,
        "organization",
        org.id,
        {"name": org.name, "slug": org.slug},
    )
    log.info("org.created", org_id=str(org.id), slug=req.slug, creator=str(creator_id))
    return org


async def list_members(org_id: uuid.UUID, session: AsyncSession) -> list[MemberResponse]:
    """Live memberships of an org with profile data, newest first."""
    result = await session.execute(
        select(Membership, Profile)
        .join(Profile, Profile.id == Membership.user_id)
        .where(Membership.organization_id == org_id)
        .where(Membership.deleted_at.is_(None))
        .order_by(Membership.created_at.desc())
    )
    return [
        MemberResponse(
            id=membership.id,
            user_id=membership.user_id,
            role=membership.role,
            created_at=as_utc(membership.created_at),
            user=ProfileSummary(id=profile.id, email=profile.email, full_name=profile.full_name),
        )
        for membership, profile in result.all()
    ]
