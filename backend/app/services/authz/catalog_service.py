"""
权限目录与角色存储

- 权限目录是 SystemModule x ModuleAction 的全集，只读
- 系统角色在初始化时写入，创建/删除路径拒绝使用或删除它们
- 角色一旦被分配引用就只允许修改权限集合
"""
import re
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.permissions import SYSTEM_ROLE_SLUGS, GrantScope, SystemModule
from app.core.database import transactional
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.logging import logger
from app.models import Permission, Role
from app.repositories import (
    PermissionAuditRepository,
    PermissionRepository,
    RolePermissionRepository,
    RoleRepository,
)

SLUG_PATTERN = re.compile(r"^[a-z][a-z0-9_]{1,49}$")


class RoleCatalogService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.role_repo = RoleRepository(db)
        self.permission_repo = PermissionRepository(db)
        self.grant_repo = RolePermissionRepository(db)
        self.audit_repo = PermissionAuditRepository(db)

    async def list_permissions(self, module: SystemModule | None = None) -> list[Permission]:
        return await self.permission_repo.list_permissions(module)

    async def list_roles(self) -> list[Role]:
        return await self.role_repo.list_roles()

    async def get_role(self, role_id: UUID) -> Role:
        role = await self.role_repo.get(role_id)
        if not role:
            raise NotFoundError("Role not found")
        return role

    async def create_role(
        self,
        *,
        name: str,
        slug: str,
        hierarchy_level: int,
        description: str | None = None,
        actor_id: UUID | None = None,
    ) -> Role:
        slug = slug.strip()
        if not SLUG_PATTERN.match(slug):
            raise ValidationError(
                "Role slug must start with a lowercase letter and contain only lowercase letters, digits or underscores (2-50 chars)"
            )
        if slug in SYSTEM_ROLE_SLUGS:
            raise ValidationError(f"Role slug '{slug}' is reserved for a system role")
        if hierarchy_level < 1:
            raise ValidationError("hierarchy_level 0 is reserved for the administrator role")
        if await self.role_repo.get_by_slug(slug):
            raise ValidationError(f"Role slug '{slug}' already exists")

        try:
            role = await self._insert_role(name, slug, hierarchy_level, description, actor_id)
        except IntegrityError as exc:
            raise ValidationError(f"Role slug '{slug}' already exists") from exc

        logger.info(
            "role_created",
            extra={"role_id": str(role.id), "slug": slug},
        )
        return role

    async def _insert_role(
        self,
        name: str,
        slug: str,
        hierarchy_level: int,
        description: str | None,
        actor_id: UUID | None,
    ) -> Role:
        async with transactional(self.db):
            role = await self.role_repo.create(
                {
                    "name": name.strip(),
                    "slug": slug,
                    "hierarchy_level": hierarchy_level,
                    "description": description,
                    "is_system_default": False,
                },
                commit=False,
            )
            defaults = await self.permission_repo.list_defaults()
            for permission in defaults:
                await self.grant_repo.add_grant(role.id, permission, GrantScope.GLOBAL)
            await self.audit_repo.record(
                action="create_role",
                changed_by_user_id=actor_id,
                role_id=role.id,
                new_value={"slug": slug, "hierarchy_level": hierarchy_level, "default_grants": len(defaults)},
            )
        return role

    async def update_role(
        self,
        role_id: UUID,
        *,
        name: str | None = None,
        description: str | None = None,
        hierarchy_level: int | None = None,
        actor_id: UUID | None = None,
    ) -> Role:
        role = await self.get_role(role_id)
        if role.is_system_default:
            raise ConflictError("System roles cannot be modified")
        if await self.role_repo.is_referenced(role.id):
            raise ConflictError("Role is referenced by user assignments; only its permissions can change")
        if hierarchy_level is not None and hierarchy_level < 1:
            raise ValidationError("hierarchy_level 0 is reserved for the administrator role")

        changes: dict = {}
        if name is not None:
            changes["name"] = name.strip()
        if description is not None:
            changes["description"] = description
        if hierarchy_level is not None:
            changes["hierarchy_level"] = hierarchy_level
        if not changes:
            return role

        async with transactional(self.db):
            old = {k: getattr(role, k) for k in changes}
            await self.role_repo.update(role, changes, commit=False)
            await self.audit_repo.record(
                action="update_role",
                changed_by_user_id=actor_id,
                role_id=role.id,
                old_value=old,
                new_value=changes,
            )
        logger.info("role_updated", extra={"role_id": str(role.id), "fields": sorted(changes)})
        return role

    async def delete_role(self, role_id: UUID, actor_id: UUID | None = None) -> None:
        role = await self.get_role(role_id)
        if role.is_system_default:
            raise ConflictError("System roles cannot be deleted")
        if await self.role_repo.is_referenced(role.id):
            raise ConflictError("Role is referenced by user assignments")

        async with transactional(self.db):
            await self.audit_repo.record(
                action="delete_role",
                changed_by_user_id=actor_id,
                old_value={"slug": role.slug, "name": role.name},
            )
            await self.role_repo.delete_role(role)
        logger.info("role_deleted", extra={"role_id": str(role_id), "slug": role.slug})
