"""Invitation schemas: admin-side creation/listing and invitee-side accept/decline."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, UUID4

from .common import ProfileSummary, Role


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class InvitationCreateRequest(BaseModel):
    """Invite an email address into the org."""
    email: EmailStr
    role: Role = Role.MEMBER


class InvitationAcceptRequest(BaseModel):
    token: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class InvitationOrgSummary(BaseModel):
    id: UUID4
    name: str
    slug: str


class InvitationResponse(BaseModel):
    id: UUID4
    organization_id: UUID4
    email: str
    role: Role
    invited_by: UUID4
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    created_at: datetime
    inviter: Optional[ProfileSummary] = None
    organization: Optional[InvitationOrgSummary] = None


class InvitationCreateResponse(InvitationResponse):
    """Returned once to the inviting admin; carries the token for the invite link."""
    token: str


class InvitationListResponse(BaseModel):
    data: List[InvitationResponse]
