"""
Tool registry: tools and their fixed READ/WRITE/ADMIN access levels.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from typing import Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from toolgate.core.audit import AuditRecorder
from toolgate.core.errors import LimitReached, NotFound, ValidationFailed
from toolgate.models.base import as_utc, utcnow
from toolgate.models.tool import Tool, ToolAccessLevel
from toolgate.services import policy
from toolgate_shared.schemas.audit import AuditAction
from toolgate_shared.schemas.common import DEFAULT_ACCESS_LEVELS, ToolStatus
from toolgate_shared.schemas.tools import AccessLevelRead, ToolCreate, ToolRead, ToolUpdate

log = structlog.get_logger()

LEVEL_ORDER = {level.value: i for i, (level, _) in enumerate(DEFAULT_ACCESS_LEVELS)}


async def get_tool_or_404(
    session: AsyncSession,
    tool_id: uuid.UUID,
    org_id: uuid.UUID,
    *,
    include_archived: bool = False,
) -> Tool:
    tool = await session.get(Tool, tool_id)
    if not tool or tool.organization_id != org_id:
        raise NotFound("Tool not found")
    if tool.deleted_at is not None and not include_archived:
        raise NotFound("Tool not found")
    return tool


async def enrich_tools(session: AsyncSession, tools: Sequence[Tool]) -> list[ToolRead]:
    if not tools:
        return []
    result = await session.execute(
        select(ToolAccessLevel).where(ToolAccessLevel.tool_id.in_([t.id for t in tools]))
    )
    levels: dict[uuid.UUID, list[AccessLevelRead]] = defaultdict(list)
    for row in sorted(result.scalars().all(), key=lambda lv: LEVEL_ORDER.get(lv.level, 99)):
        levels[row.tool_id].append(
            AccessLevelRead(id=row.id, level=row.level, description=row.description)
        )

    return [
        ToolRead(
            id=t.id,
            organization_id=t.organization_id,
            name=t.name,
            url=t.url,
            description=t.description,
            category=t.category,
            status=t.status,
            created_at=as_utc(t.created_at),
            updated_at=as_utc(t.updated_at),
            deleted_at=as_utc(t.deleted_at),
            access_levels=levels.get(t.id, []),
        )
        for t in tools
    ]


async def enrich_tool(session: AsyncSession, tool: Tool) -> ToolRead:
    return (await enrich_tools(session, [tool]))[0]


async def list_tools(
    session: AsyncSession, org_id: uuid.UUID, *, include_archived: bool = False
) -> list[ToolRead]:
    query = select(Tool).where(Tool.organization_id == org_id)
    if not include_archived:
        query = query.where(Tool.deleted_at.is_(None))
    result = await session.execute(query.order_by(Tool.created_at.desc()))
    return await enrich_tools(session, result.scalars().all())


async def create_tool(
    session: AsyncSession,
    org_id: uuid.UUID,
    actor_id: uuid.UUID,
    req: ToolCreate,
    audit: AuditRecorder,
) -> Tool:
    """Create a tool with its three access levels in the caller's transaction."""
    capacity = await policy.check_capacity(session, org_id)
    if not capacity.can_add_tool:
        raise LimitReached(
            f"Tool limit reached ({capacity.limits.tools}). Upgrade to add more tools."
        )

    tool = Tool(
        organization_id=org_id,
        name=req.name,
        url=req.url,
        description=req.description,
        category=req.category,
        status=ToolStatus.ACTIVE.value,
    )
    session.add(tool)
    await session.flush()

    for level, description in DEFAULT_ACCESS_LEVELS:
        session.add(ToolAccessLevel(tool_id=tool.id, level=level.value, description=description))
    await session.flush()

    audit.record(
        org_id,
        actor_id,
        AuditAction.TOOL_CREATED,
        "tool",
        tool.id,
        {"name": tool.name, "category": tool.category},
    )
    log.info("tool.created", org_id=str(org_id), tool_id=str(tool.id), name=tool.name)
    return tool


async def update_tool(
    session: AsyncSession,
    org_id: uuid.UUID,
    tool_id: uuid.UUID,
    actor_id: uuid.UUID,
    req: ToolUpdate,
    audit: AuditRecorder,
) -> Tool:
    """Apply only the fields present in the request body."""
    updates = req.model_dump(exclude_unset=True, mode="json")
    if not updates:
        raise ValidationFailed("No fields to update")
    for field in ("name", "status"):
        if field in updates and updates[field] is None:
            raise ValidationFailed(f"{field} cannot be null")

    tool = await get_tool_or_404(session, tool_id, org_id)
    for field, value in updates.items():
        setattr(tool, field, value)
    tool.updated_at = utcnow()
    session.add(tool)
    await session.flush()

    audit.record(org_id, actor_id, AuditAction.TOOL_UPDATED, "tool", tool.id, updates)
    log.info("tool.updated", org_id=str(org_id), tool_id=str(tool.id), fields=sorted(updates))
    return tool


async def archive_tool(
    session: AsyncSession,
    org_id: uuid.UUID,
    tool_id: uuid.UUID,
    actor_id: uuid.UUID,
    audit: AuditRecorder,
) -> Tool:
    """Soft delete. Historical access requests keep pointing at the row."""
    tool = await get_tool_or_404(session, tool_id, org_id)
    tool.deleted_at = utcnow()
    tool.updated_at = tool.deleted_at
    session.add(tool)
    await session.flush()

    audit.record(org_id, actor_id, AuditAction.TOOL_ARCHIVED, "tool", tool.id, {"name": tool.name})
    log.info("tool.archived", org_id=str(org_id), tool_id=str(tool.id))
    return tool
