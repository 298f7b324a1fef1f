"""
Integration tests for Organization endpoints.

Tests cover:
- Create/list/get, creator becomes OWNER, FREE subscription provisioned
- Slug validation and uniqueness
- Tenant isolation (non-member 403, unknown or deleted org 404)
- Member listing (admin/owner only)
"""

from __future__ import annotations

import uuid

import pytest
from pydantic import ValidationError
from sqlmodel import select

from toolgate.models.audit_log import AuditLog
from toolgate.models.base import utcnow
from toolgate.models.organization import Organization
from toolgate.models.subscription import Subscription
from toolgate.services import organizations as org_service
from toolgate_shared.schemas.organizations import OrgCreateRequest

from conftest import create_org, register


# ---------------------------------------------------------------------------
# Schema validation tests (no DB needed)
# ---------------------------------------------------------------------------

class TestOrgCreateValidation:
    def test_valid_slug(self):
        req = OrgCreateRequest(name="Acme", slug="acme-corp")
        assert req.slug == "acme-corp"

    @pytest.mark.parametrize("slug", ["Acme", "-acme", "acme-", "a", "acme corp", "acme_corp"])
    def test_invalid_slugs(self, slug):
        with pytest.raises(ValidationError):
            OrgCreateRequest(name="Acme", slug=slug)

    def test_name_required(self):
        with pytest.raises(ValidationError):
            OrgCreateRequest(name="", slug="acme")


# ---------------------------------------------------------------------------
# Integration tests
# ---------------------------------------------------------------------------

class TestOrgEndpoints:
    @pytest.mark.asyncio
    async def test_create_org(self, client, session_factory):
        owner = await register(client, "owner@acme.com")
        resp = await client.post(
            "/api/v1/orgs", json={"name": "Acme", "slug": "acme"}, headers=owner.headers
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["name"] == "Acme"
        assert data["slug"] == "acme"

        async with session_factory() as s:
            sub = (
                await s.execute(
                    select(Subscription).where(Subscription.organization_id == uuid.UUID(data["id"]))
                )
            ).scalar_one()
            assert sub.plan == "FREE"
            assert (sub.user_limit, sub.tool_limit) == (5, 10)

    @pytest.mark.asyncio
    async def test_creator_is_owner(self, client):
        owner = await register(client, "owner@acme.com")
        org_id = await create_org(client, owner)

        resp = await client.get("/api/v1/orgs", headers=owner.headers)
        assert resp.status_code == 200
        items = resp.json()["data"]
        assert len(items) == 1
        assert items[0]["id"] == str(org_id)
        assert items[0]["role"] == "OWNER"

    @pytest.mark.asyncio
    async def test_capacity_after_create(self, client):
        owner = await register(client, "owner@acme.com")
        org_id = await create_org(client, owner)

        resp = await client.get(f"/api/v1/orgs/{org_id}/capacity", headers=owner.headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["plan"] == "FREE"
        assert data["current_members"] == 1
        assert data["current_tools"] == 0
        assert data["limits"] == {"users": 5, "tools": 10}
        assert data["can_add_member"] is True

    @pytest.mark.asyncio
    async def test_duplicate_slug_conflicts(self, client):
        owner = await register(client, "owner@acme.com")
        await create_org(client, owner)
        resp = await client.post(
            "/api/v1/orgs", json={"name": "Other", "slug": "acme"}, headers=owner.headers
        )
        assert resp.status_code == 409
        assert resp.json()["detail"] == "Organization slug already exists"

    @pytest.mark.asyncio
    async def test_create_requires_auth(self, client):
        resp = await client.post("/api/v1/orgs", json={"name": "Acme", "slug": "acme"})
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_create_records_audit_entry(self, client, session_factory):
        owner = await register(client, "owner@acme.com")
        org_id = await create_org(client, owner, slug="audited", name="Audited")

        async with session_factory() as s:
            entries = (
                await s.execute(select(AuditLog).where(AuditLog.organization_id == org_id))
            ).scalars().all()
        assert len(entries) == 1
        assert entries[0].action == "ORGANIZATION_CREATED"
        assert entries[0].actor_id == owner.user_id
        assert entries[0].metadata_json == {"name": "Audited", "slug": "audited"}

    @pytest.mark.asyncio
    async def test_get_org(self, client, acme):
        resp = await client.get(f"/api/v1/orgs/{acme['org_id']}", headers=acme["member"].headers)
        assert resp.status_code == 200
        assert resp.json()["slug"] == "acme"


class TestTenantIsolation:
    @pytest.mark.asyncio
    async def test_non_member_forbidden(self, client, acme):
        outsider = await register(client, "outsider@other.com")
        resp = await client.get(f"/api/v1/orgs/{acme['org_id']}", headers=outsider.headers)
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_org_not_found(self, client, acme):
        resp = await client.get(f"/api/v1/orgs/{uuid.uuid4()}", headers=acme["owner"].headers)
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_deleted_org_not_found(self, client, acme, session_factory):
        async with session_factory() as s:
            org = await s.get(Organization, acme["org_id"])
            org.deleted_at = utcnow()
            s.add(org)
            await s.commit()

        resp = await client.get(f"/api/v1/orgs/{acme['org_id']}", headers=acme["owner"].headers)
        assert resp.status_code == 404
        resp = await client.get("/api/v1/orgs", headers=acme["owner"].headers)
        assert resp.json()["data"] == []

    @pytest.mark.asyncio
    async def test_list_only_shows_own_orgs(self, client, acme):
        other = await register(client, "boss@globex.com")
        await create_org(client, other, slug="globex", name="Globex")

        resp = await client.get("/api/v1/orgs", headers=acme["member"].headers)
        slugs = [item["slug"] for item in resp.json()["data"]]
        assert slugs == ["acme"]

    @pytest.mark.asyncio
    async def test_malformed_org_id(self, client, acme):
        resp = await client.get("/api/v1/orgs/not-a-uuid", headers=acme["owner"].headers)
        assert resp.status_code == 422


class TestMembers:
    @pytest.mark.asyncio
    async def test_admin_lists_members(self, client, acme):
        resp = await client.get(
            f"/api/v1/orgs/{acme['org_id']}/members", headers=acme["admin"].headers
        )
        assert resp.status_code == 200
        members = resp.json()["data"]
        by_email = {m["user"]["email"]: m["role"] for m in members}
        assert by_email == {
            "owner@acme.com": "OWNER",
            "admin@acme.com": "ADMIN",
            "member@acme.com": "MEMBER",
        }

    @pytest.mark.asyncio
    async def test_member_timestamps_are_utc(self, client, acme, session):
        # SQLite hands back naive datetimes
        members = await org_service.list_members(acme["org_id"], session)
        assert len(members) == 3
        assert all(m.created_at.tzinfo is not None for m in members)

        resp = await client.get(
            f"/api/v1/orgs/{acme['org_id']}/members", headers=acme["owner"].headers
        )
        created = resp.json()["data"][0]["created_at"]
        assert created.endswith("Z") or created.endswith("+00:00")

    @pytest.mark.asyncio
    async def test_member_cannot_list_members(self, client, acme):
        resp = await client.get(
            f"/api/v1/orgs/{acme['org_id']}/members", headers=acme["member"].headers
        )
        assert resp.status_code == 403
