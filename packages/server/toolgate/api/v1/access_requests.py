"""
Access request endpoints.

Members open requests and see their own; admins/owners see every request of
the org and review them (PENDING -> APPROVED/REJECTED, APPROVED -> REVOKED).
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from toolgate.core.audit import AuditRecorder, get_audit_recorder
from toolgate.core.auth import OrgContext, require_capability
from toolgate.core.database import get_session
from toolgate.services import access_requests as request_service
from toolgate.services.policy import can_request_access, can_review_requests, can_view_all_requests
from toolgate_shared.schemas.access_requests import (
    AccessRequestCreate,
    AccessRequestListResponse,
    AccessRequestRead,
    AccessRequestReview,
)
from toolgate_shared.schemas.common import RequestStatus

router = APIRouter()


@router.get("", response_model=AccessRequestListResponse)
async def list_access_requests(
    status: Optional[RequestStatus] = None,
    ctx: OrgContext = Depends(require_capability(can_request_access)),
    session: AsyncSession = Depends(get_session),
):
    """Admins see all requests of the org; members only their own."""
    items = await request_service.list_requests(
        session,
        ctx.org_id,
        ctx.user_id,
        see_all=can_view_all_requests(ctx.role),
        status=status,
    )
    return AccessRequestListResponse(data=items)


@router.post("", response_model=AccessRequestRead, status_code=201)
async def create_access_request(
    body: AccessRequestCreate,
    ctx: OrgContext = Depends(require_capability(can_request_access)),
    session: AsyncSession = Depends(get_session),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    """Request an access level on a tool."""
    access_request = await request_service.create_request(
        session, ctx.org_id, ctx.user_id, body, audit
    )
    await session.commit()
    audit.dispatch()
    return (await request_service.enrich_requests(session, [access_request]))[0]


@router.patch("/{requestId}", response_model=AccessRequestRead)
async def review_access_request(
    requestId: uuid.UUID,
    body: AccessRequestReview,
    ctx: OrgContext = Depends(require_capability(can_review_requests)),
    session: AsyncSession = Depends(get_session),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    """Approve, reject or revoke a request."""
    access_request = await request_service.review_request(
        session, ctx.org_id, requestId, ctx.user_id, body.status, audit
    )
    await session.commit()
    audit.dispatch()
    return (await request_service.enrich_requests(session, [access_request]))[0]
