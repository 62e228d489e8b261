"""
角色授权（grant / revoke / 模板）

- grant 幂等：已存在时不改动、不报错
- revoke 不存在时为空操作
- 实际发生变更时：写审计 -> 提交前后各失效一次所有持有者的快照 -> 返回
- Redis 失效失败时事务回滚，返回 503
- 同一角色上的写操作用分布式锁串行
"""
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.permissions import ROLE_PERMISSION_TEMPLATES, GrantScope
from app.core.cache_keys import CacheKeys
from app.core.distributed_lock import distributed_lock
from app.core.exceptions import NotFoundError, ValidationError
from app.core.logging import logger
from app.models import Role, RolePermission
from app.repositories import (
    PermissionAuditRepository,
    PermissionRepository,
    RolePermissionRepository,
    RoleRepository,
)

from .permission_snapshot_service import EffectivePermissionService


def _parse_scope(scope: GrantScope | str) -> GrantScope:
    try:
        return GrantScope(scope)
    except ValueError as exc:
        allowed = ", ".join(s.value for s in GrantScope)
        raise ValidationError(f"Invalid grant scope '{scope}', expected one of: {allowed}") from exc


class RoleGrantService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.role_repo = RoleRepository(db)
        self.permission_repo = PermissionRepository(db)
        self.grant_repo = RolePermissionRepository(db)
        self.audit_repo = PermissionAuditRepository(db)

    async def _get_role(self, role_id: UUID) -> Role:
        role = await self.role_repo.get(role_id)
        if not role:
            raise NotFoundError("Role not found")
        return role

    async def list_grants(self, role_id: UUID) -> list[RolePermission]:
        await self._get_role(role_id)
        return await self.grant_repo.list_for_role(role_id)

    async def grant(
        self,
        role_id: UUID,
        permission_id: UUID,
        scope: GrantScope | str = GrantScope.GLOBAL,
        actor_id: UUID | None = None,
    ) -> RolePermission:
        grant_scope = _parse_scope(scope)
        role = await self._get_role(role_id)
        permission = await self.permission_repo.get(permission_id)
        if not permission:
            raise NotFoundError("Permission not found")

        async with distributed_lock(CacheKeys.role_lock(role_id)):
            existing = await self.grant_repo.get_grant(role_id, permission_id)
            if existing:
                return existing

            holders = await self.role_repo.holder_user_ids(role_id)
            async with EffectivePermissionService.invalidating(self.db, holders):
                grant = await self.grant_repo.add_grant(role_id, permission, grant_scope)
                await self.audit_repo.record(
                    action="grant",
                    changed_by_user_id=actor_id,
                    role_id=role_id,
                    module=permission.module.value,
                    new_value={"action": permission.action.value, "scope": grant_scope.value},
                )

        logger.info(
            "permission_granted",
            extra={
                "role": role.slug,
                "permission": f"{permission.module.value}.{permission.action.value}",
                "scope": grant_scope.value,
                "holders_invalidated": len(holders),
            },
        )
        return grant

    async def revoke(self, role_id: UUID, permission_id: UUID, actor_id: UUID | None = None) -> bool:
        """返回是否真的删除了授权"""
        role = await self._get_role(role_id)

        async with distributed_lock(CacheKeys.role_lock(role_id)):
            existing = await self.grant_repo.get_grant(role_id, permission_id)
            if not existing:
                return False

            permission = existing.permission
            holders = await self.role_repo.holder_user_ids(role_id)
            async with EffectivePermissionService.invalidating(self.db, holders):
                await self.grant_repo.remove_grant(existing)
                await self.audit_repo.record(
                    action="revoke",
                    changed_by_user_id=actor_id,
                    role_id=role_id,
                    module=permission.module.value,
                    old_value={"action": permission.action.value, "scope": existing.scope.value},
                )

        logger.info(
            "permission_revoked",
            extra={
                "role": role.slug,
                "permission": f"{permission.module.value}.{permission.action.value}",
                "holders_invalidated": len(holders),
            },
        )
        return True

    async def apply_template(
        self,
        role_id: UUID,
        template: str,
        actor_id: UUID | None = None,
    ) -> list[RolePermission]:
        """用模板整体替换角色的权限集合（单事务）"""
        target_pairs = ROLE_PERMISSION_TEMPLATES.get(template)
        if target_pairs is None:
            allowed = ", ".join(sorted(ROLE_PERMISSION_TEMPLATES))
            raise ValidationError(f"Unknown template '{template}', expected one of: {allowed}")
        role = await self._get_role(role_id)
        catalog = await self.permission_repo.map_by_pair()

        async with distributed_lock(CacheKeys.role_lock(role_id)):
            current = await self.grant_repo.list_for_role(role_id)
            current_pairs = {(g.permission.module, g.permission.action): g for g in current}
            old_codes = sorted(f"{m.value}.{a.value}" for m, a in current_pairs)

            holders = await self.role_repo.holder_user_ids(role_id)
            async with EffectivePermissionService.invalidating(self.db, holders):
                for pair, grant in current_pairs.items():
                    if pair not in target_pairs:
                        await self.grant_repo.remove_grant(grant)
                for pair in target_pairs - current_pairs.keys():
                    permission = catalog.get(pair)
                    if permission is not None:
                        await self.grant_repo.add_grant(role_id, permission, GrantScope.GLOBAL)
                await self.audit_repo.record(
                    action="apply_template",
                    changed_by_user_id=actor_id,
                    role_id=role_id,
                    old_value=old_codes,
                    new_value=sorted(f"{m.value}.{a.value}" for m, a in target_pairs),
                    template_applied=template,
                )

        logger.info(
            "role_template_applied",
            extra={"role": role.slug, "template": template, "holders_invalidated": len(holders)},
        )
        return await self.grant_repo.list_for_role(role_id)
