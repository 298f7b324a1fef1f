"""
Access request lifecycle.

Members ask for an access level on a tool; admins review. Status changes go
through a conditional update keyed on the required source status, so two
reviewers racing on the same request cannot both win.
"""

from __future__ import annotations

import uuid
from typing import Optional, Sequence

import structlog
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from toolgate.core.audit import AuditRecorder
from toolgate.core.errors import Conflict, NotFound, ValidationFailed
from toolgate.models.access_request import AccessRequest
from toolgate.models.base import as_utc, utcnow
from toolgate.models.tool import Tool
from toolgate.models.user import Profile
from toolgate_shared.schemas.access_requests import (
    REVIEW_STATUSES,
    AccessRequestCreate,
    AccessRequestRead,
    ToolSummary,
    source_status_for,
)
from toolgate_shared.schemas.audit import AuditAction
from toolgate_shared.schemas.common import ProfileSummary, RequestStatus

log = structlog.get_logger()

PENDING_EXISTS = "You already have a pending request for this tool"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def get_request_or_404(
    session: AsyncSession, request_id: uuid.UUID, org_id: uuid.UUID
) -> AccessRequest:
    access_request = await session.get(AccessRequest, request_id, populate_existing=True)
    if not access_request or access_request.organization_id != org_id:
        raise NotFound("Access request not found")
    return access_request


async def enrich_requests(
    session: AsyncSession, requests: Sequence[AccessRequest]
) -> list[AccessRequestRead]:
    """Attach tool name and requester/reviewer profiles, batching the lookups."""
    if not requests:
        return []

    tool_ids = {r.tool_id for r in requests}
    profile_ids = {r.user_id for r in requests} | {
        r.reviewed_by for r in requests if r.reviewed_by
    }

    result = await session.execute(select(Tool.id, Tool.name).where(Tool.id.in_(tool_ids)))
    tools = {tool_id: ToolSummary(id=tool_id, name=name) for tool_id, name in result.all()}

    result = await session.execute(select(Profile).where(Profile.id.in_(profile_ids)))
    profiles = {
        p.id: ProfileSummary(id=p.id, email=p.email, full_name=p.full_name)
        for p in result.scalars().all()
    }

    return [
        AccessRequestRead(
            id=r.id,
            organization_id=r.organization_id,
            tool_id=r.tool_id,
            user_id=r.user_id,
            access_level=r.access_level,
            reason=r.reason,
            status=r.status,
            reviewed_by=r.reviewed_by,
            reviewed_at=as_utc(r.reviewed_at),
            created_at=as_utc(r.created_at),
            updated_at=as_utc(r.updated_at),
            tool=tools.get(r.tool_id),
            user=profiles.get(r.user_id),
            reviewer=profiles.get(r.reviewed_by) if r.reviewed_by else None,
        )
        for r in requests
    ]


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

async def create_request(
    session: AsyncSession,
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    req: AccessRequestCreate,
    audit: AuditRecorder,
) -> AccessRequest:
    """Open a PENDING request on a live tool of the org."""
    result = await session.execute(
        select(Tool.id).where(
            Tool.id == req.tool_id,
            Tool.organization_id == org_id,
            Tool.deleted_at.is_(None),
        )
    )
    if result.first() is None:
        raise NotFound("Tool not found")

    result = await session.execute(
        select(AccessRequest.id).where(
            AccessRequest.organization_id == org_id,
            AccessRequest.tool_id == req.tool_id,
            AccessRequest.user_id == user_id,
            AccessRequest.status == RequestStatus.PENDING.value,
        )
    )
    if result.first() is not None:
        raise Conflict(PENDING_EXISTS)

    access_request = AccessRequest(
        organization_id=org_id,
        tool_id=req.tool_id,
        user_id=user_id,
        access_level=req.access_level.value,
        reason=req.reason,
        status=RequestStatus.PENDING.value,
    )
    session.add(access_request)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise Conflict(PENDING_EXISTS)

    audit.record(
        org_id,
        user_id,
        AuditAction.ACCESS_REQUEST_CREATED,
        "access_request",
        access_request.id,
        {
            "tool_id": str(req.tool_id),
            "access_level": access_request.access_level,
            "reason": req.reason,
        },
    )
    log.info(
        "access_request.created",
        org_id=str(org_id),
        request_id=str(access_request.id),
        tool_id=str(req.tool_id),
    )
    return access_request


async def list_requests(
    session: AsyncSession,
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    *,
    see_all: bool,
    status: Optional[RequestStatus] = None,
) -> list[AccessRequestRead]:
    """Newest first. Without ``see_all`` only the caller's own requests are returned."""
    query = select(AccessRequest).where(AccessRequest.organization_id == org_id)
    if not see_all:
        query = query.where(AccessRequest.user_id == user_id)
    if status is not None:
        query = query.where(AccessRequest.status == status.value)
    query = query.order_by(AccessRequest.created_at.desc())

    result = await session.execute(query)
    return await enrich_requests(session, result.scalars().all())


async def review_request(
    session: AsyncSession,
    org_id: uuid.UUID,
    request_id: uuid.UUID,
    reviewer_id: uuid.UUID,
    new_status: RequestStatus,
    audit: AuditRecorder,
) -> AccessRequest:
    """Move a request to APPROVED/REJECTED (from PENDING) or REVOKED (from APPROVED)."""
    if new_status not in REVIEW_STATUSES:
        raise ValidationFailed("Status must be APPROVED, REJECTED, or REVOKED")
    source = source_status_for(new_status)

    now = utcnow()
    result = await session.execute(
        update(AccessRequest)
        .where(
            AccessRequest.id == request_id,
            AccessRequest.organization_id == org_id,
            AccessRequest.status == source.value,
        )
        .values(
            status=new_status.value,
            reviewed_by=reviewer_id,
            reviewed_at=now,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )

    if result.rowcount != 1:
        current = await get_request_or_404(session, request_id, org_id)
        log.info(
            "access_request.review_conflict",
            org_id=str(org_id),
            request_id=str(request_id),
            current=current.status,
            target=new_status.value,
        )
        raise Conflict(f"Access request is {current.status}, expected {source.value}")

    access_request = await get_request_or_404(session, request_id, org_id)

    audit.record(
        org_id,
        reviewer_id,
        AuditAction(f"ACCESS_REQUEST_{new_status.value}"),
        "access_request",
        access_request.id,
        {"status": new_status.value},
    )
    log.info(
        "access_request.reviewed",
        org_id=str(org_id),
        request_id=str(request_id),
        status=new_status.value,
        reviewer=str(reviewer_id),
    )
    return access_request
