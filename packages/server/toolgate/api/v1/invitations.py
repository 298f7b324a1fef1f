"""
Invitation endpoints.

Admin side, under /orgs/{orgId}/invitations: list and create.
Invitee side, under /invitations: list own, accept by token, decline.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from toolgate.core.audit import AuditRecorder, get_audit_recorder
from toolgate.core.auth import OrgContext, Principal, get_current_principal, require_capability
from toolgate.core.database import get_session
from toolgate.core.errors import AlreadyMember
from toolgate.services import invitations as invitation_service
from toolgate.services import organizations as org_service
from toolgate.services.policy import can_manage_invitations
from toolgate_shared.schemas.invitations import (
    InvitationAcceptRequest,
    InvitationCreateRequest,
    InvitationCreateResponse,
    InvitationListResponse,
)
from toolgate_shared.schemas.organizations import OrgResponse

require_invitation_admin = require_capability(can_manage_invitations)

# ---------------------------------------------------------------------------
# Org-scoped (admin/owner)
# ---------------------------------------------------------------------------
router_scoped = APIRouter()


@router_scoped.get("", response_model=InvitationListResponse)
async def list_invitations(
    ctx: OrgContext = Depends(require_invitation_admin),
    session: AsyncSession = Depends(get_session),
):
    """All unaccepted invitations for the org, newest first."""
    items = await invitation_service.list_invitations(session, ctx.org_id)
    return InvitationListResponse(data=items)


@router_scoped.post("", response_model=InvitationCreateResponse, status_code=201)
async def create_invitation(
    body: InvitationCreateRequest,
    ctx: OrgContext = Depends(require_invitation_admin),
    session: AsyncSession = Depends(get_session),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    """Invite an email address. The response carries the token for the invite link."""
    invitation = await invitation_service.create_invitation(
        session, ctx.org_id, ctx.user_id, ctx.role, body, audit
    )
    await session.commit()
    audit.dispatch()
    return invitation


# ---------------------------------------------------------------------------
# Invitee (any authenticated user; scoped by token or own email)
# ---------------------------------------------------------------------------
router_user = APIRouter()


@router_user.get("", response_model=InvitationListResponse)
async def list_my_invitations(
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
):
    """Open invitations addressed to the caller's email."""
    items = await invitation_service.list_for_user(session, principal.email)
    return InvitationListResponse(data=items)


@router_user.post("/accept", response_model=OrgResponse)
async def accept_invitation(
    body: InvitationAcceptRequest,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    """Accept an invitation; returns the joined organization."""
    try:
        org = await invitation_service.accept_invitation(
            session, body.token, principal.user_id, principal.email, audit
        )
    except AlreadyMember:
        # Keep the auto-decline of the stale invitation
        await session.commit()
        audit.dispatch()
        raise
    await session.commit()
    audit.dispatch()
    return org_service.to_response(org)


@router_user.delete("/{invitationId}")
async def decline_invitation(
    invitationId: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    """Decline an invitation addressed to the caller."""
    await invitation_service.decline_invitation(
        session, invitationId, principal.user_id, principal.email, audit
    )
    await session.commit()
    audit.dispatch()
    return {"success": True}
