"""Toolgate schema: tenants, memberships, tools, access requests, invitations, audit.

Revision ID: 0001_toolgate_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001_toolgate_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid() -> postgresql.UUID:
    return postgresql.UUID(as_uuid=True)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # -----------------------------------------------------------------------
    # 1. Tenants and identities
    # -----------------------------------------------------------------------

    op.create_table(
        "organizations",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_organizations_slug", "organizations", ["slug"], unique=True)
    op.create_index("ix_organizations_name", "organizations", ["name"])

    op.create_table(
        "profiles",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("password_hash", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("email = lower(email)", name="ck_profiles_email_lower"),
    )
    op.create_index("ix_profiles_email", "profiles", ["email"], unique=True)

    op.create_table(
        "memberships",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("organization_id", _uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("user_id", _uuid(), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("role", sa.Text(), nullable=False, server_default="MEMBER"),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("role IN ('OWNER', 'ADMIN', 'MEMBER')", name="ck_memberships_role"),
    )
    op.create_index("ix_memberships_organization_id", "memberships", ["organization_id"])
    op.create_index("ix_memberships_user_id", "memberships", ["user_id"])
    op.create_index(
        "uq_memberships_org_user_live",
        "memberships",
        ["organization_id", "user_id"],
        unique=True,
        postgresql_where=sa.text("deleted_at IS NULL"),
    )

    op.create_table(
        "subscriptions",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("organization_id", _uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("plan", sa.Text(), nullable=False, server_default="FREE"),
        sa.Column("user_limit", sa.Integer(), nullable=False),
        sa.Column("tool_limit", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("plan IN ('FREE', 'PRO')", name="ck_subscriptions_plan"),
    )
    op.create_index("ix_subscriptions_organization_id", "subscriptions", ["organization_id"], unique=True)

    # -----------------------------------------------------------------------
    # 2. Tools
    # -----------------------------------------------------------------------

    op.create_table(
        "tools",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("organization_id", _uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("url", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="ACTIVE"),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("status IN ('ACTIVE', 'INACTIVE')", name="ck_tools_status"),
    )
    op.create_index("ix_tools_organization_id", "tools", ["organization_id"])

    op.create_table(
        "tool_access_levels",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("tool_id", _uuid(), sa.ForeignKey("tools.id"), nullable=False),
        sa.Column("level", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("tool_id", "level", name="uq_tool_access_levels_tool_level"),
        sa.CheckConstraint("level IN ('READ', 'WRITE', 'ADMIN')", name="ck_tool_access_levels_level"),
    )
    op.create_index("ix_tool_access_levels_tool_id", "tool_access_levels", ["tool_id"])

    # -----------------------------------------------------------------------
    # 3. Access requests
    # -----------------------------------------------------------------------

    op.create_table(
        "access_requests",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("organization_id", _uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("tool_id", _uuid(), sa.ForeignKey("tools.id"), nullable=False),
        sa.Column("user_id", _uuid(), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("access_level", sa.Text(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="PENDING"),
        sa.Column("reviewed_by", _uuid(), sa.ForeignKey("profiles.id"), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'REJECTED', 'REVOKED')",
            name="ck_access_requests_status",
        ),
        sa.CheckConstraint("access_level IN ('READ', 'WRITE', 'ADMIN')", name="ck_access_requests_level"),
    )
    op.create_index("ix_access_requests_organization_id", "access_requests", ["organization_id"])
    op.create_index("ix_access_requests_tool_id", "access_requests", ["tool_id"])
    op.create_index("ix_access_requests_user_id", "access_requests", ["user_id"])
    op.create_index("idx_access_requests_org_created", "access_requests", ["organization_id", "created_at"])
    op.create_index(
        "uq_access_requests_pending",
        "access_requests",
        ["organization_id", "tool_id", "user_id"],
        unique=True,
        postgresql_where=sa.text("status = 'PENDING'"),
    )

    # -----------------------------------------------------------------------
    # 4. Invitations
    # -----------------------------------------------------------------------

    op.create_table(
        "invitations",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("organization_id", _uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("role", sa.Text(), nullable=False, server_default="MEMBER"),
        sa.Column("invited_by", _uuid(), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("token", sa.Text(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("email = lower(email)", name="ck_invitations_email_lower"),
        sa.CheckConstraint("role IN ('OWNER', 'ADMIN', 'MEMBER')", name="ck_invitations_role"),
    )
    op.create_index("ix_invitations_organization_id", "invitations", ["organization_id"])
    op.create_index("ix_invitations_email", "invitations", ["email"])
    op.create_index("ix_invitations_token", "invitations", ["token"], unique=True)
    # Expired rows are deleted before re-inviting, so this only blocks live duplicates
    op.create_index(
        "uq_invitations_org_email_open",
        "invitations",
        ["organization_id", "email"],
        unique=True,
        postgresql_where=sa.text("accepted_at IS NULL"),
    )

    # -----------------------------------------------------------------------
    # 5. Audit log (append-only)
    # -----------------------------------------------------------------------

    op.create_table(
        "audit_logs",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("organization_id", _uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("actor_id", _uuid(), sa.ForeignKey("profiles.id"), nullable=True),
        sa.Column("action", sa.Text(), nullable=False),
        sa.Column("resource_type", sa.Text(), nullable=False),
        sa.Column("resource_id", _uuid(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("idx_audit_logs_org_created", "audit_logs", ["organization_id", "created_at"])

    op.execute("""
        CREATE OR REPLACE FUNCTION prevent_audit_log_mutation()
        RETURNS TRIGGER AS $$
        BEGIN
            RAISE EXCEPTION 'Audit logs are append-only. UPDATE and DELETE are not permitted.';
        END;
        $$ LANGUAGE plpgsql
    """)
    op.execute("""
        CREATE TRIGGER audit_logs_immutable
        BEFORE UPDATE OR DELETE ON audit_logs
        FOR EACH ROW EXECUTE FUNCTION prevent_audit_log_mutation()
    """)


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS audit_logs_immutable ON audit_logs")
    op.execute("DROP FUNCTION IF EXISTS prevent_audit_log_mutation()")

    op.drop_table("audit_logs")
    op.drop_table("invitations")
    op.drop_table("access_requests")
    op.drop_table("tool_access_levels")
    op.drop_table("tools")
    op.drop_table("subscriptions")
    op.drop_table("memberships")
    op.drop_table("profiles")
    op.drop_table("organizations")
