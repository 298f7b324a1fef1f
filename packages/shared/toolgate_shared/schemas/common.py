from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class Role(str, Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class AccessLevel(str, Enum):
    READ = "READ"
    WRITE = "WRITE"
    ADMIN = "ADMIN"


# Every tool gets exactly these levels, in this order, at creation
DEFAULT_ACCESS_LEVELS: list[tuple["AccessLevel", str]] = [
    (AccessLevel.READ, "Read-only access"),
    (AccessLevel.WRITE, "Read and write access"),
    (AccessLevel.ADMIN, "Full administrative access"),
]


class RequestStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    REVOKED = "REVOKED"


class ToolStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class SubscriptionPlan(str, Enum):
    FREE = "FREE"
    PRO = "PRO"


class ProfileSummary(BaseModel):
    id: UUID
    email: str
    full_name: Optional[str] = None


class Pagination(BaseModel):
    page: int
    per_page: int
    total: int
    total_pages: int
