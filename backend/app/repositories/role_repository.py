from collections import defaultdict
from uuid import UUID

from sqlalchemy import delete, exists, select

from app.constants.permissions import GrantScope, ModuleAction, SystemModule
from app.models import Permission, Role, RolePermission, UserRoleAssignment

from .base import BaseRepository


class RoleRepository(BaseRepository[Role]):
    model = Role

    async def get_by_slug(self, slug: str) -> Role | None:
        result = await self.session.execute(select(Role).where(Role.slug == slug))
        return result.scalar_one_or_none()

    async def list_roles(self) -> list[Role]:
        result = await self.session.execute(
            select(Role).order_by(Role.hierarchy_level.asc(), Role.name.asc())
        )
        return list(result.scalars().all())

    async def is_referenced(self, role_id: UUID) -> bool:
        """是否有任何分配（含未生效的）引用该角色"""
        stmt = select(exists().where(UserRoleAssignment.role_id == role_id))
        return bool((await self.session.execute(stmt)).scalar())

    async def holder_user_ids(self, role_id: UUID) -> set[UUID]:
        """持有该角色的所有用户（不区分生效状态，失效时宁多勿少）"""
        result = await self.session.execute(
            select(UserRoleAssignment.user_id).where(UserRoleAssignment.role_id == role_id).distinct()
        )
        return set(result.scalars().all())

    async def delete_role(self, role: Role) -> None:
        await self.session.execute(delete(RolePermission).where(RolePermission.role_id == role.id))
        await self.session.delete(role)
        await self.session.flush()


class PermissionRepository(BaseRepository[Permission]):
    model = Permission

    async def list_permissions(self, module: SystemModule | None = None) -> list[Permission]:
        stmt = select(Permission)
        if module is not None:
            stmt = stmt.where(Permission.module == module)
        result = await self.session.execute(stmt)
        # 按枚举声明顺序排序，而非字符串字典序
        module_order = {m: i for i, m in enumerate(SystemModule)}
        action_order = {a: i for i, a in enumerate(ModuleAction)}
        return sorted(
            result.scalars().all(),
            key=lambda p: (module_order[p.module], action_order[p.action]),
        )

    async def get_by_pair(self, module: SystemModule, action: ModuleAction) -> Permission | None:
        result = await self.session.execute(
            select(Permission).where(Permission.module == module, Permission.action == action)
        )
        return result.scalar_one_or_none()

    async def list_defaults(self) -> list[Permission]:
        result = await self.session.execute(select(Permission).where(Permission.is_default.is_(True)))
        return list(result.scalars().all())

    async def map_by_pair(self) -> dict[tuple[SystemModule, ModuleAction], Permission]:
        return {(p.module, p.action): p for p in await self.list_permissions()}


class RolePermissionRepository(BaseRepository[RolePermission]):
    model = RolePermission

    async def get_grant(self, role_id: UUID, permission_id: UUID) -> RolePermission | None:
        result = await self.session.execute(
            select(RolePermission).where(
                RolePermission.role_id == role_id,
                RolePermission.permission_id == permission_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_role(self, role_id: UUID) -> list[RolePermission]:
        result = await self.session.execute(
            select(RolePermission).where(RolePermission.role_id == role_id)
        )
        return list(result.scalars().all())

    async def grants_by_role(
        self, role_ids: set[UUID]
    ) -> dict[UUID, list[tuple[SystemModule, ModuleAction, GrantScope]]]:
        """批量读取多个角色的授权：role_id -> [(module, action, scope)]"""
        grouped: dict[UUID, list[tuple[SystemModule, ModuleAction, GrantScope]]] = defaultdict(list)
        if not role_ids:
            return grouped
        result = await self.session.execute(
            select(RolePermission.role_id, Permission.module, Permission.action, RolePermission.scope)
            .join(Permission, Permission.id == RolePermission.permission_id)
            .where(RolePermission.role_id.in_(role_ids))
        )
        for role_id, module, action, scope in result.all():
            grouped[role_id].append((module, action, scope))
        return grouped

    async def add_grant(self, role_id: UUID, permission: Permission, scope: GrantScope) -> RolePermission:
        grant = RolePermission(role_id=role_id, permission_id=permission.id, permission=permission, scope=scope)
        self.session.add(grant)
        await self.session.flush()
        return grant

    async def remove_grant(self, grant: RolePermission) -> None:
        await self.session.delete(grant)
        await self.session.flush()
