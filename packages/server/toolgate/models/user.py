"""Profile model. The id is the principal id issued by the session resolver."""

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, utcnow


class Profile(UUIDMixin, SQLModel, table=True):
    __tablename__ = "profiles"

    email: str = Field(unique=True, index=True, nullable=False)  # always lower-cased
    full_name: Optional[str] = None
    password_hash: Optional[str] = Field(default=None)  # bcrypt hash
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.text("CURRENT_TIMESTAMP")},
        sa_type=sa.DateTime(timezone=True),
    )
