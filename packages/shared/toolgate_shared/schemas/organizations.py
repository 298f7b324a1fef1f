"""
Organization-related Pydantic schemas shared between server and clients.

Covers: org create/list/get, membership listing and subscription capacity.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .common import ProfileSummary, Role, SubscriptionPlan


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class OrgCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Organization display name")
    slug: str = Field(
        ...,
        min_length=2,
        max_length=50,
        pattern=r"^[a-z0-9][a-z0-9-]*[a-z0-9]$",
        description="URL-safe org identifier",
    )


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class OrgResponse(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OrgListItem(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    role: Role  # the requesting user's role in this org

    model_config = {"from_attributes": True}


class OrgListResponse(BaseModel):
    data: list[OrgListItem]


class MemberResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    role: Role
    created_at: datetime
    user: Optional[ProfileSummary] = None


class MemberListResponse(BaseModel):
    data: list[MemberResponse]


class CapacityLimits(BaseModel):
    users: int
    tools: int


class CapacityResponse(BaseModel):
    """Advisory snapshot of subscription usage; not a transactional guarantee."""
    plan: SubscriptionPlan
    can_add_member: bool
    can_add_tool: bool
    current_members: int
    current_tools: int
    limits: CapacityLimits
