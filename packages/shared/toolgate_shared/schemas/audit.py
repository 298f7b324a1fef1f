"""Audit log actions and read schemas."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field, UUID4

from .common import Pagination, ProfileSummary


class AuditAction(str, Enum):
    # Organization
    ORGANIZATION_CREATED = "ORGANIZATION_CREATED"
    # Invitations
    INVITATION_CREATED = "INVITATION_CREATED"
    INVITATION_ACCEPTED = "INVITATION_ACCEPTED"
    INVITATION_DECLINED = "INVITATION_DECLINED"
    # Tools
    TOOL_CREATED = "TOOL_CREATED"
    TOOL_UPDATED = "TOOL_UPDATED"
    TOOL_ARCHIVED = "TOOL_ARCHIVED"
    # Access requests
    ACCESS_REQUEST_CREATED = "ACCESS_REQUEST_CREATED"
    ACCESS_REQUEST_APPROVED = "ACCESS_REQUEST_APPROVED"
    ACCESS_REQUEST_REJECTED = "ACCESS_REQUEST_REJECTED"
    ACCESS_REQUEST_REVOKED = "ACCESS_REQUEST_REVOKED"


class AuditLogRead(BaseModel):
    id: UUID4
    organization_id: UUID4
    actor_id: Optional[UUID4] = None
    action: str
    resource_type: str
    resource_id: Optional[UUID4] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    actor: Optional[ProfileSummary] = None


class AuditLogListResponse(BaseModel):
    data: List[AuditLogRead]
    pagination: Pagination
