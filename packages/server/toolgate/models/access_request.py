"""Access request model."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlalchemy import Index
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class AccessRequest(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "access_requests"
    __table_args__ = (
        # One PENDING request per (org, tool, user)
        Index(
            "uq_access_requests_pending",
            "organization_id",
            "tool_id",
            "user_id",
            unique=True,
            postgresql_where=sa.text("status = 'PENDING'"),
            sqlite_where=sa.text("status = 'PENDING'"),
        ),
        Index("idx_access_requests_org_created", "organization_id", "created_at"),
    )

    organization_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    tool_id: uuid.UUID = Field(foreign_key="tools.id", nullable=False, index=True)
    user_id: uuid.UUID = Field(foreign_key="profiles.id", nullable=False, index=True)
    access_level: str = Field(nullable=False)  # READ | WRITE | ADMIN
    reason: Optional[str] = None
    status: str = Field(nullable=False, default="PENDING")  # PENDING | APPROVED | REJECTED | REVOKED
    reviewed_by: Optional[uuid.UUID] = Field(default=None, foreign_key="profiles.id")
    reviewed_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
