"""Access request schemas and the request status state machine."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, UUID4

from .common import AccessLevel, ProfileSummary, RequestStatus


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------

# Source status each review target may be reached from
REQUEST_TRANSITIONS: dict[RequestStatus, list[RequestStatus]] = {
    RequestStatus.PENDING: [RequestStatus.APPROVED, RequestStatus.REJECTED],
    RequestStatus.APPROVED: [RequestStatus.REVOKED],
    RequestStatus.REJECTED: [],
    RequestStatus.REVOKED: [],
}

REVIEW_STATUSES = (RequestStatus.APPROVED, RequestStatus.REJECTED, RequestStatus.REVOKED)


def source_status_for(target: RequestStatus) -> Optional[RequestStatus]:
    """Return the only status from which ``target`` may be reached, if any."""
    for source, targets in REQUEST_TRANSITIONS.items():
        if target in targets:
            return source
    return None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class AccessRequestCreate(BaseModel):
    tool_id: UUID4
    access_level: AccessLevel
    reason: Optional[str] = Field(default=None, max_length=2000)


class AccessRequestReview(BaseModel):
    """Body for PATCH /access-requests/{requestId}. Validated in the service."""
    status: RequestStatus


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class ToolSummary(BaseModel):
    id: UUID4
    name: str


class AccessRequestRead(BaseModel):
    id: UUID4
    organization_id: UUID4
    tool_id: UUID4
    user_id: UUID4
    access_level: AccessLevel
    reason: Optional[str] = None
    status: RequestStatus
    reviewed_by: Optional[UUID4] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    tool: Optional[ToolSummary] = None
    user: Optional[ProfileSummary] = None
    reviewer: Optional[ProfileSummary] = None


class AccessRequestListResponse(BaseModel):
    data: List[AccessRequestRead]
