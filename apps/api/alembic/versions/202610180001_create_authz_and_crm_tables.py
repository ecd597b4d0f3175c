"""create permission catalog, teams, assignments and crm entity tables

Revision ID: 202610180001
Revises:
Create Date: 2026-10-18 10:00:00
"""

from __future__ import annotations

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610180001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


_CRM_TABLES = ("crm_lead", "crm_contact", "crm_account", "crm_opportunity")


def _timestamps(nullable_updated: bool) -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=nullable_updated),
    ]


def upgrade() -> None:
    op.create_table(
        "authz_module",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("display_name", sa.String(length=128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("icon", sa.String(length=64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "authz_role_permission",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("module_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(length=16), nullable=False),
        sa.Column("is_allowed", sa.Boolean(), nullable=False, server_default="false"),
        *_timestamps(True),
        sa.ForeignKeyConstraint(["module_id"], ["authz_module.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("role", "module_id", "action", name="uq_authz_role_permission_rule"),
    )

    op.create_table(
        "authz_user_permission",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("module_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(length=16), nullable=False),
        sa.Column("is_allowed", sa.Boolean(), nullable=False, server_default="false"),
        *_timestamps(True),
        sa.ForeignKeyConstraint(["module_id"], ["authz_module.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "module_id", "action", name="uq_authz_user_permission_rule"),
    )
    op.create_index("ix_authz_user_permission_user_id", "authz_user_permission", ["user_id"])

    op.create_table(
        "authz_team",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("leader_id", sa.Integer(), nullable=True),
        *_timestamps(True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "authz_team_member",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False, server_default="Member"),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["team_id"], ["authz_team.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("team_id", "user_id", name="uq_authz_team_member"),
    )
    op.create_index("ix_authz_team_member_user_id", "authz_team_member", ["user_id"])

    op.create_table(
        "authz_assignment",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("entity_type", sa.String(length=32), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("assigned_to_type", sa.String(length=8), nullable=False),
        sa.Column("assigned_to_id", sa.Integer(), nullable=False),
        sa.Column("assigned_by_id", sa.Integer(), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_authz_assignment_entity", "authz_assignment", ["entity_type", "entity_id"])

    op.create_table(
        "crm_lead",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("company", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="New"),
        sa.Column("owner_id", sa.Integer(), nullable=True),
        *_timestamps(False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "crm_contact",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("owner_id", sa.Integer(), nullable=True),
        *_timestamps(False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "crm_account",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("industry", sa.String(length=128), nullable=True),
        sa.Column("owner_id", sa.Integer(), nullable=True),
        *_timestamps(False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "crm_opportunity",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("stage", sa.String(length=64), nullable=False, server_default="Prospecting"),
        sa.Column("owner_id", sa.Integer(), nullable=True),
        *_timestamps(False),
        sa.PrimaryKeyConstraint("id"),
    )
    for table_name in _CRM_TABLES:
        op.create_index(f"ix_{table_name}_owner_id", table_name, ["owner_id"])


def downgrade() -> None:
    for table_name in reversed(_CRM_TABLES):
        op.drop_index(f"ix_{table_name}_owner_id", table_name=table_name)
        op.drop_table(table_name)

    op.drop_index("ix_authz_assignment_entity", table_name="authz_assignment")
    op.drop_table("authz_assignment")
    op.drop_index("ix_authz_team_member_user_id", table_name="authz_team_member")
    op.drop_table("authz_team_member")
    op.drop_table("authz_team")
    op.drop_index("ix_authz_user_permission_user_id", table_name="authz_user_permission")
    op.drop_table("authz_user_permission")
    op.drop_table("authz_role_permission")
    op.drop_table("authz_module")
