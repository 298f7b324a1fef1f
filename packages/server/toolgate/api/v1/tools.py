"""
Tool registry endpoints. Reads are open to members; writes need can_manage_tools.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from toolgate.core.audit import AuditRecorder, get_audit_recorder
from toolgate.core.auth import OrgContext, require_capability, require_member
from toolgate.core.database import get_session
from toolgate.services import tools as tool_service
from toolgate.services.policy import can_manage_tools
from toolgate_shared.schemas.tools import ToolCreate, ToolListResponse, ToolRead, ToolUpdate

router = APIRouter()

require_tool_admin = require_capability(can_manage_tools)


@router.get("", response_model=ToolListResponse)
async def list_tools(
    include_archived: bool = Query(False, alias="includeArchived"),
    ctx: OrgContext = Depends(require_member),
    session: AsyncSession = Depends(get_session),
):
    """List the org's tools, newest first. Archived tools only on request."""
    items = await tool_service.list_tools(session, ctx.org_id, include_archived=include_archived)
    return ToolListResponse(data=items)


@router.post("", response_model=ToolRead, status_code=201)
async def create_tool(
    body: ToolCreate,
    ctx: OrgContext = Depends(require_tool_admin),
    session: AsyncSession = Depends(get_session),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    """Create a tool together with its READ/WRITE/ADMIN access levels."""
    tool = await tool_service.create_tool(session, ctx.org_id, ctx.user_id, body, audit)
    await session.commit()
    audit.dispatch()
    return await tool_service.enrich_tool(session, tool)


@router.get("/{toolId}", response_model=ToolRead)
async def get_tool(
    toolId: uuid.UUID,
    ctx: OrgContext = Depends(require_member),
    session: AsyncSession = Depends(get_session),
):
    """Tool details including access levels. Archived tools stay readable."""
    tool = await tool_service.get_tool_or_404(session, toolId, ctx.org_id, include_archived=True)
    return await tool_service.enrich_tool(session, tool)


@router.patch("/{toolId}", response_model=ToolRead)
async def update_tool(
    toolId: uuid.UUID,
    body: ToolUpdate,
    ctx: OrgContext = Depends(require_tool_admin),
    session: AsyncSession = Depends(get_session),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    tool = await tool_service.update_tool(session, ctx.org_id, toolId, ctx.user_id, body, audit)
    await session.commit()
    audit.dispatch()
    return await tool_service.enrich_tool(session, tool)


@router.delete("/{toolId}", response_model=ToolRead)
async def archive_tool(
    toolId: uuid.UUID,
    ctx: OrgContext = Depends(require_tool_admin),
    session: AsyncSession = Depends(get_session),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    """Archive (soft delete) a tool."""
    tool = await tool_service.archive_tool(session, ctx.org_id, toolId, ctx.user_id, audit)
    await session.commit()
    audit.dispatch()
    return await tool_service.enrich_tool(session, tool)
