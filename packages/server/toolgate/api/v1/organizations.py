"""
Organization API endpoints.

GET    /api/v1/orgs                     List orgs for the authenticated user
POST   /api/v1/orgs                     Create a new org (caller becomes OWNER)
GET    /api/v1/orgs/{orgId}             Get org details
GET    /api/v1/orgs/{orgId}/capacity    Subscription usage snapshot
GET    /api/v1/orgs/{orgId}/members     List members (admin/owner)
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from toolgate.core.audit import AuditRecorder, get_audit_recorder
from toolgate.core.auth import (
    OrgContext,
    Principal,
    get_current_principal,
    require_capability,
    require_member,
)
from toolgate.core.database import get_session
from toolgate.services import organizations as org_service
from toolgate.services import policy
from toolgate_shared.schemas.organizations import (
    CapacityResponse,
    MemberListResponse,
    OrgCreateRequest,
    OrgListResponse,
    OrgResponse,
)

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Non-org-scoped routes (no orgId in path)
# ---------------------------------------------------------------------------
router_global = APIRouter()


@router_global.get("/orgs", response_model=OrgListResponse, tags=["Organizations"])
async def list_orgs(
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
):
    """List orgs the authenticated user belongs to."""
    items = await org_service.list_user_orgs(principal.user_id, session)
    return OrgListResponse(data=items)


@router_global.post("/orgs", response_model=OrgResponse, status_code=201, tags=["Organizations"])
async def create_org(
    body: OrgCreateRequest,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    """Create a new organization. The creator becomes its owner."""
    org = await org_service.create_org(body, principal.user_id, session, audit)
    await session.commit()
    audit.dispatch()
    return org_service.to_response(org)


# ---------------------------------------------------------------------------
# Org-scoped routes (mounted under /orgs/{orgId})
# ---------------------------------------------------------------------------
router_scoped = APIRouter()


@router_scoped.get("", response_model=OrgResponse)
async def get_org(ctx: OrgContext = Depends(require_member)):
    """Get org details."""
    return org_service.to_response(ctx.org)


@router_scoped.get("/capacity", response_model=CapacityResponse)
async def get_capacity(
    ctx: OrgContext = Depends(require_member),
    session: AsyncSession = Depends(get_session),
):
    """Advisory usage against the subscription limits."""
    return await policy.check_capacity(session, ctx.org_id)


@router_scoped.get("/members", response_model=MemberListResponse)
async def list_members(
    ctx: OrgContext = Depends(require_capability(policy.can_view_members)),
    session: AsyncSession = Depends(get_session),
):
    """List live members with profile data, newest first."""
    members = await org_service.list_members(ctx.org_id, session)
    return MemberListResponse(data=members)
