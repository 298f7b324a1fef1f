"""
Authorization policy.

Membership lookups, capacity snapshots, and one capability predicate per
protected action. Predicates compare against explicit allow-lists; OWNER only
satisfies a check where it is listed.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from toolgate.core.config import get_settings
from toolgate.models.membership import Membership
from toolgate.models.subscription import Subscription
from toolgate.models.tool import Tool
from toolgate_shared.schemas.common import Role, SubscriptionPlan
from toolgate_shared.schemas.organizations import CapacityLimits, CapacityResponse

log = structlog.get_logger()
settings = get_settings()

ADMIN_ROLES = frozenset({Role.OWNER, Role.ADMIN})
ALL_ROLES = frozenset({Role.OWNER, Role.ADMIN, Role.MEMBER})


# ---------------------------------------------------------------------------
# Capability predicates
# ---------------------------------------------------------------------------

def _allowed(role: Optional[str], allowed: frozenset) -> bool:
    if role is None:
        return False
    try:
        return Role(role) in allowed
    except ValueError:
        return False


def can_manage_tools(role: Optional[str]) -> bool:
    return _allowed(role, ADMIN_ROLES)


def can_manage_invitations(role: Optional[str]) -> bool:
    return _allowed(role, ADMIN_ROLES)


def can_review_requests(role: Optional[str]) -> bool:
    return _allowed(role, ADMIN_ROLES)


def can_view_members(role: Optional[str]) -> bool:
    return _allowed(role, ADMIN_ROLES)


def can_view_audit_log(role: Optional[str]) -> bool:
    return _allowed(role, ADMIN_ROLES)


def can_view_all_requests(role: Optional[str]) -> bool:
    return _allowed(role, ADMIN_ROLES)


def can_request_access(role: Optional[str]) -> bool:
    return _allowed(role, ALL_ROLES)


# ---------------------------------------------------------------------------
# Membership lookups
# ---------------------------------------------------------------------------

async def role_of(
    session: AsyncSession, org_id: uuid.UUID, user_id: uuid.UUID
) -> Optional[Role]:
    """Role from the single live membership, or None."""
    result = await session.execute(
        select(Membership.role).where(
            Membership.organization_id == org_id,
            Membership.user_id == user_id,
            Membership.deleted_at.is_(None),
        )
    )
    role = result.scalar_one_or_none()
    return Role(role) if role is not None else None


async def is_member(session: AsyncSession, org_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    return await role_of(session, org_id, user_id) is not None


async def is_admin_or_owner(
    session: AsyncSession, org_id: uuid.UUID, user_id: uuid.UUID
) -> bool:
    return _allowed(await role_of(session, org_id, user_id), ADMIN_ROLES)


# ---------------------------------------------------------------------------
# Capacity
# ---------------------------------------------------------------------------

def plan_limits(plan: SubscriptionPlan) -> CapacityLimits:
    """Configured caps for a plan."""
    if plan == SubscriptionPlan.PRO:
        return CapacityLimits(users=settings.pro_user_limit, tools=settings.pro_tool_limit)
    return CapacityLimits(users=settings.free_user_limit, tools=settings.free_tool_limit)


async def check_capacity(session: AsyncSession, org_id: uuid.UUID) -> CapacityResponse:
    """Advisory usage snapshot against the subscription caps.

    Not enforced transactionally: two concurrent creators can both pass the
    check, so a limit may be exceeded by a small bounded amount.
    """
    result = await session.execute(
        select(Subscription).where(Subscription.organization_id == org_id)
    )
    subscription = result.scalar_one_or_none()
    if subscription is not None:
        plan = SubscriptionPlan(subscription.plan)
        limits = CapacityLimits(users=subscription.user_limit, tools=subscription.tool_limit)
    else:
        log.warning("subscription.missing", org_id=str(org_id))
        plan = SubscriptionPlan.FREE
        limits = plan_limits(plan)

    members = await session.execute(
        select(func.count(Membership.id)).where(
            Membership.organization_id == org_id,
            Membership.deleted_at.is_(None),
        )
    )
    tools = await session.execute(
        select(func.count(Tool.id)).where(
            Tool.organization_id == org_id,
            Tool.deleted_at.is_(None),
        )
    )
    current_members = members.scalar_one()
    current_tools = tools.scalar_one()

    return CapacityResponse(
        plan=plan,
        can_add_member=current_members < limits.users,
        can_add_tool=current_tools < limits.tools,
        current_members=current_members,
        current_tools=current_tools,
        limits=limits,
    )
