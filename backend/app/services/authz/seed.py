"""
参考数据初始化（幂等）

- 补齐权限目录（SystemModule x ModuleAction）
- 补齐系统角色；仅在角色首次创建时套用其模板，避免覆盖管理员后续的调整
"""
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.permissions import (
    PERMISSION_REGISTRY,
    ROLE_PERMISSION_TEMPLATES,
    SYSTEM_ROLE_TEMPLATES,
    SYSTEM_ROLES,
    GrantScope,
)
from app.core.database import transactional
from app.core.logging import logger
from app.models import Permission, Role
from app.repositories import PermissionRepository, RolePermissionRepository, RoleRepository


async def seed_reference_data(db: AsyncSession) -> dict[str, int]:
    permission_repo = PermissionRepository(db)
    role_repo = RoleRepository(db)
    grant_repo = RolePermissionRepository(db)

    created_permissions = 0
    created_roles = 0
    async with transactional(db):
        catalog = await permission_repo.map_by_pair()
        for item in PERMISSION_REGISTRY:
            if (item.module, item.action) in catalog:
                continue
            permission = Permission(
                module=item.module,
                action=item.action,
                name=item.name,
                description=f"{item.action.label} access to {item.module.label}",
                is_default=item.is_default,
            )
            db.add(permission)
            catalog[(item.module, item.action)] = permission
            created_permissions += 1
        await db.flush()

        for system_role in SYSTEM_ROLES:
            if await role_repo.get_by_slug(system_role.slug):
                continue
            role = Role(
                name=system_role.name,
                slug=system_role.slug,
                hierarchy_level=system_role.hierarchy_level,
                description=system_role.description,
                is_system_default=True,
            )
            db.add(role)
            await db.flush()
            template = ROLE_PERMISSION_TEMPLATES[SYSTEM_ROLE_TEMPLATES[system_role.slug]]
            for pair in template:
                await grant_repo.add_grant(role.id, catalog[pair], GrantScope.GLOBAL)
            created_roles += 1

    summary = {"permissions": created_permissions, "roles": created_roles}
    logger.info("reference_data_seeded", extra=summary)
    return summary
