"""
Audit log endpoint (admin/owner).
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from toolgate.core.auth import OrgContext, require_capability
from toolgate.core.database import get_session
from toolgate.services.audit_logs import list_audit_logs
from toolgate.services.policy import can_view_audit_log
from toolgate_shared.schemas.audit import AuditAction, AuditLogListResponse

router = APIRouter()


@router.get("", response_model=AuditLogListResponse)
async def list_audit_log_entries(
    action: Optional[AuditAction] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
    ctx: OrgContext = Depends(require_capability(can_view_audit_log)),
    session: AsyncSession = Depends(get_session),
):
    """Audit trail for the org, newest first."""
    return await list_audit_logs(
        session,
        ctx.org_id,
        page=page,
        per_page=per_page,
        action=action.value if action else None,
    )
