"""
API v1 Router

Org-scoped endpoints are prefixed with /orgs/{orgId}; the invitee endpoints
live under /invitations because the caller is not yet a member.
"""

from fastapi import APIRouter
from . import access_requests, audit_logs, tools
from .invitations import router_scoped as invitations_scoped_router
from .invitations import router_user as invitations_user_router
from .organizations import router_global as orgs_global_router
from .organizations import router_scoped as orgs_scoped_router

router = APIRouter()

# Organization routes (non-org-scoped: list, create)
router.include_router(orgs_global_router)

# Organization routes (org-scoped: get, capacity, members)
router.include_router(orgs_scoped_router, prefix="/orgs/{orgId}", tags=["Organizations"])

router.include_router(
    invitations_scoped_router, prefix="/orgs/{orgId}/invitations", tags=["Invitations"]
)
router.include_router(invitations_user_router, prefix="/invitations", tags=["Invitations"])
router.include_router(tools.router, prefix="/orgs/{orgId}/tools", tags=["Tools"])
router.include_router(
    access_requests.router, prefix="/orgs/{orgId}/access-requests", tags=["Access Requests"]
)
router.include_router(audit_logs.router, prefix="/orgs/{orgId}/audit-logs", tags=["Audit Logs"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/orgs",
            "/orgs/{orgId}/members",
            "/orgs/{orgId}/capacity",
            "/orgs/{orgId}/invitations",
            "/orgs/{orgId}/tools",
            "/orgs/{orgId}/access-requests",
            "/orgs/{orgId}/audit-logs",
            "/invitations",
        ],
    }
