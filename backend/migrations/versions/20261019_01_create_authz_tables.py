"""create branch / user / role / permission / assignment tables

Revision ID: 20261019_01
Revises:
Create Date: 2026-10-19
"""
import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_01"
down_revision = None
branch_labels = None
depends_on = None


def _uuid_fk(name: str, target: str, ondelete: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey(target, ondelete=ondelete),
        nullable=nullable,
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    ]


def upgrade() -> None:
    op.create_table(
        "branches",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.UniqueConstraint("code", name="uq_branches_code"),
    )

    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("username", sa.String(length=100), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "departments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.UniqueConstraint("code", name="uq_departments_code"),
    )

    op.create_table(
        "roles",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("slug", sa.String(length=50), nullable=False),
        sa.Column("hierarchy_level", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_system_default", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
    )
    op.create_index("ix_roles_slug", "roles", ["slug"], unique=True)

    op.create_table(
        "permissions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("module", sa.String(length=40), nullable=False),
        sa.Column("action", sa.String(length=20), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        sa.UniqueConstraint("module", "action", name="uq_permissions_module_action"),
    )

    op.create_table(
        "role_permissions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        _uuid_fk("role_id", "roles.id", "CASCADE"),
        _uuid_fk("permission_id", "permissions.id", "CASCADE"),
        sa.Column("scope", sa.String(length=20), nullable=False, server_default="global"),
        *_timestamps(),
        sa.UniqueConstraint("role_id", "permission_id", name="uq_role_permissions_role_permission"),
    )
    op.create_index("ix_role_permissions_role_id", "role_permissions", ["role_id"])

    op.create_table(
        "user_role_assignments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        _uuid_fk("user_id", "users.id", "CASCADE"),
        _uuid_fk("role_id", "roles.id", "RESTRICT"),
        sa.Column("scope_type", sa.String(length=20), nullable=False, server_default="global"),
        _uuid_fk("branch_id", "branches.id", "CASCADE", nullable=True),
        _uuid_fk("department_id", "departments.id", "CASCADE", nullable=True),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_user_role_assignments_user_active", "user_role_assignments", ["user_id", "is_active"])
    op.create_index("ix_user_role_assignments_role_id", "user_role_assignments", ["role_id"])

    op.create_table(
        "user_branch_access",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        _uuid_fk("user_id", "users.id", "CASCADE"),
        _uuid_fk("branch_id", "branches.id", "CASCADE"),
        sa.Column("access_level", sa.String(length=20), nullable=False, server_default="full"),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "branch_id", name="uq_user_branch_access_user_branch"),
    )
    op.create_index("ix_user_branch_access_user_id", "user_branch_access", ["user_id"])
    # 每个用户最多一个默认分支
    op.create_index(
        "uq_user_branch_access_default",
        "user_branch_access",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("is_default"),
    )

    op.create_table(
        "permission_audit_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        _uuid_fk("changed_by_user_id", "users.id", "SET NULL", nullable=True),
        _uuid_fk("target_user_id", "users.id", "SET NULL", nullable=True),
        _uuid_fk("role_id", "roles.id", "SET NULL", nullable=True),
        sa.Column("action", sa.String(length=40), nullable=False),
        sa.Column("module", sa.String(length=40), nullable=True),
        sa.Column("old_value", sa.JSON(), nullable=True),
        sa.Column("new_value", sa.JSON(), nullable=True),
        sa.Column("template_applied", sa.String(length=50), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_permission_audit_logs_target_user", "permission_audit_logs", ["target_user_id"])
    op.create_index("ix_permission_audit_logs_role", "permission_audit_logs", ["role_id"])


def downgrade() -> None:
    op.drop_index("ix_permission_audit_logs_role", table_name="permission_audit_logs")
    op.drop_index("ix_permission_audit_logs_target_user", table_name="permission_audit_logs")
    op.drop_table("permission_audit_logs")
    op.drop_index("uq_user_branch_access_default", table_name="user_branch_access")
    op.drop_index("ix_user_branch_access_user_id", table_name="user_branch_access")
    op.drop_table("user_branch_access")
    op.drop_index("ix_user_role_assignments_role_id", table_name="user_role_assignments")
    op.drop_index("ix_user_role_assignments_user_active", table_name="user_role_assignments")
    op.drop_table("user_role_assignments")
    op.drop_index("ix_role_permissions_role_id", table_name="role_permissions")
    op.drop_table("role_permissions")
    op.drop_table("permissions")
    op.drop_index("ix_roles_slug", table_name="roles")
    op.drop_table("roles")
    op.drop_table("departments")
    op.drop_index("ix_users_username", table_name="users")
    op.drop_table("users")
    op.drop_table("branches")
