"""
Error taxonomy.

Each error is an ``HTTPException`` so services can raise it directly and
FastAPI renders it with the matching status code. Messages are safe to show
to callers; internal detail is only ever logged.
"""

from __future__ import annotations

from fastapi import HTTPException


class ServiceError(HTTPException):
    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: str | None = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class Unauthenticated(ServiceError):
    status_code = 401
    default_detail = "Authentication required"


class Forbidden(ServiceError):
    status_code = 403
    default_detail = "Forbidden"


class NotFound(ServiceError):
    """Absent, or hidden by tenant isolation. Callers cannot tell the two apart."""
    status_code = 404
    default_detail = "Not found"


class InvitationExpired(NotFound):
    default_detail = "Invitation has expired"


class Conflict(ServiceError):
    status_code = 409
    default_detail = "Conflict"


class ValidationFailed(ServiceError):
    status_code = 422
    default_detail = "Invalid request"


class LimitReached(ServiceError):
    status_code = 400
    default_detail = "Subscription limit reached"


class EmailMismatch(ServiceError):
    status_code = 400
    default_detail = "This invitation was sent to a different email address"


class AlreadyMember(ServiceError):
    status_code = 400
    default_detail = "User is already a member of this organization"


class Upstream(ServiceError):
    status_code = 500
    default_detail = "Internal server error"
