"""Subscription model: one per organization, carries plan caps."""

import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Subscription(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "subscriptions"

    organization_id: uuid.UUID = Field(
        foreign_key="organizations.id", unique=True, nullable=False, index=True
    )
    plan: str = Field(nullable=False, default="FREE")  # FREE | PRO
    user_limit: int = Field(nullable=False)
    tool_limit: int = Field(nullable=False)
