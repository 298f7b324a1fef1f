"""Audit log model (org-scoped, append-only)."""

from datetime import datetime
from typing import Any, Optional
import uuid

import sqlalchemy as sa
from sqlalchemy import Index
from sqlmodel import Field, SQLModel

from .base import JSONType, utcnow


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("idx_audit_logs_org_created", "organization_id", "created_at"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    organization_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False)
    actor_id: Optional[uuid.UUID] = Field(default=None, foreign_key="profiles.id")  # None = system
    action: str = Field(nullable=False, index=True)
    resource_type: str = Field(nullable=False)
    resource_id: Optional[uuid.UUID] = None
    # "metadata" is reserved on SQLModel classes; keep the DB column name
    metadata_json: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=sa.Column("metadata", JSONType, nullable=False),
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
