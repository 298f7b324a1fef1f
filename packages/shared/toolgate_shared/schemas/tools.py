"""Tool registry schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, UUID4

from .common import AccessLevel, ToolStatus


class ToolCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    url: Optional[str] = Field(default=None, max_length=2048)
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=100)


class ToolUpdate(BaseModel):
    """Partial update. Only fields present in the request body are changed."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    url: Optional[str] = Field(default=None, max_length=2048)
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=100)
    status: Optional[ToolStatus] = None


class AccessLevelRead(BaseModel):
    id: UUID4
    level: AccessLevel
    description: Optional[str] = None


class ToolRead(BaseModel):
    id: UUID4
    organization_id: UUID4
    name: str
    url: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    status: ToolStatus
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None
    access_levels: List[AccessLevelRead] = Field(default_factory=list)


class ToolListResponse(BaseModel):
    data: List[ToolRead]
