"""
Audit log queries (read side of the audit recorder).
"""

from __future__ import annotations

import math
import uuid
from typing import Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from toolgate.models.audit_log import AuditLog
from toolgate.models.base import as_utc
from toolgate.models.user import Profile
from toolgate_shared.schemas.audit import AuditLogListResponse, AuditLogRead
from toolgate_shared.schemas.common import Pagination, ProfileSummary


async def list_audit_logs(
    session: AsyncSession,
    org_id: uuid.UUID,
    *,
    page: int = 1,
    per_page: int = 50,
    action: Optional[str] = None,
) -> AuditLogListResponse:
    """Newest first, with the acting profile attached when there is one."""
    filters = [AuditLog.organization_id == org_id]
    if action:
        filters.append(AuditLog.action == action)

    total = (
        await session.execute(select(func.count(AuditLog.id)).where(*filters))
    ).scalar_one()

    result = await session.execute(
        select(AuditLog, Profile)
        .join(Profile, Profile.id == AuditLog.actor_id, isouter=True)
        .where(*filters)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )

    data = [
        AuditLogRead(
            id=entry.id,
            organization_id=entry.organization_id,
            actor_id=entry.actor_id,
            action=entry.action,
            resource_type=entry.resource_type,
            resource_id=entry.resource_id,
            metadata=entry.metadata_json or {},
            created_at=as_utc(entry.created_at),
            actor=ProfileSummary(id=actor.id, email=actor.email, full_name=actor.full_name)
            if actor
            else None,
        )
        for entry, actor in result.all()
    ]

    return AuditLogListResponse(
        data=data,
        pagination=Pagination(
            page=page,
            per_page=per_page,
            total=total,
            total_pages=math.ceil(total / per_page) if total else 0,
        ),
    )
