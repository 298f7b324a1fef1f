"""Tool and per-tool access level models."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin, utcnow


class Tool(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "tools"

    organization_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    name: str = Field(nullable=False)
    url: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    status: str = Field(nullable=False, default="ACTIVE")  # ACTIVE | INACTIVE
    deleted_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))


class ToolAccessLevel(UUIDMixin, SQLModel, table=True):
    """Immutable after creation."""

    __tablename__ = "tool_access_levels"
    __table_args__ = (UniqueConstraint("tool_id", "level", name="uq_tool_access_levels_tool_level"),)

    tool_id: uuid.UUID = Field(foreign_key="tools.id", nullable=False, index=True)
    level: str = Field(nullable=False)  # READ | WRITE | ADMIN
    description: Optional[str] = None
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
