"""seed permission catalog, system roles and their template grants

Revision ID: 20261019_02
Revises: 20261019_01
Create Date: 2026-10-19

幂等：已存在的权限/角色跳过；已存在的角色不会被重新套用模板。
"""
import uuid

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

from app.constants.permissions import (
    PERMISSION_REGISTRY,
    ROLE_PERMISSION_TEMPLATES,
    SYSTEM_ROLE_SLUGS,
    SYSTEM_ROLE_TEMPLATES,
    SYSTEM_ROLES,
    GrantScope,
)

# revision identifiers, used by Alembic.
revision = "20261019_02"
down_revision = "20261019_01"
branch_labels = None
depends_on = None


permissions_table = sa.table(
    "permissions",
    sa.column("id", postgresql.UUID(as_uuid=True)),
    sa.column("module", sa.String),
    sa.column("action", sa.String),
    sa.column("name", sa.String),
    sa.column("description", sa.Text),
    sa.column("is_default", sa.Boolean),
)

roles_table = sa.table(
    "roles",
    sa.column("id", postgresql.UUID(as_uuid=True)),
    sa.column("name", sa.String),
    sa.column("slug", sa.String),
    sa.column("hierarchy_level", sa.Integer),
    sa.column("description", sa.Text),
    sa.column("is_system_default", sa.Boolean),
)

role_permissions_table = sa.table(
    "role_permissions",
    sa.column("id", postgresql.UUID(as_uuid=True)),
    sa.column("role_id", postgresql.UUID(as_uuid=True)),
    sa.column("permission_id", postgresql.UUID(as_uuid=True)),
    sa.column("scope", sa.String),
)


def upgrade() -> None:
    conn = op.get_bind()

    catalog = {
        (row.module, row.action): row.id
        for row in conn.execute(sa.select(permissions_table.c.id, permissions_table.c.module, permissions_table.c.action))
    }
    new_permissions = []
    for item in PERMISSION_REGISTRY:
        key = (item.module.value, item.action.value)
        if key in catalog:
            continue
        catalog[key] = uuid.uuid4()
        new_permissions.append(
            {
                "id": catalog[key],
                "module": item.module.value,
                "action": item.action.value,
                "name": item.name,
                "description": f"{item.action.label} access to {item.module.label}",
                "is_default": item.is_default,
            }
        )
    if new_permissions:
        op.bulk_insert(permissions_table, new_permissions)

    existing_roles = {row.slug for row in conn.execute(sa.select(roles_table.c.slug))}
    new_roles = []
    new_grants = []
    for role in SYSTEM_ROLES:
        if role.slug in existing_roles:
            continue
        role_id = uuid.uuid4()
        new_roles.append(
            {
                "id": role_id,
                "name": role.name,
                "slug": role.slug,
                "hierarchy_level": role.hierarchy_level,
                "description": role.description,
                "is_system_default": True,
            }
        )
        for module, action in ROLE_PERMISSION_TEMPLATES[SYSTEM_ROLE_TEMPLATES[role.slug]]:
            new_grants.append(
                {
                    "id": uuid.uuid4(),
                    "role_id": role_id,
                    "permission_id": catalog[(module.value, action.value)],
                    "scope": GrantScope.GLOBAL.value,
                }
            )
    if new_roles:
        op.bulk_insert(roles_table, new_roles)
    if new_grants:
        op.bulk_insert(role_permissions_table, new_grants)


def downgrade() -> None:
    # 只移除系统角色（级联删除其授权）；权限目录保留给自定义角色
    op.execute(roles_table.delete().where(roles_table.c.slug.in_(sorted(SYSTEM_ROLE_SLUGS))))
