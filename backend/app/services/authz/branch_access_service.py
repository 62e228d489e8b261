"""
分支访问登记

不变量：
- 每个用户最多一条 is_default=true（部分唯一索引兜底）
- 没有任何登记行 = 不受分支限制（可访问全部分支），与"无权访问"不同
- 默认分支的更换在单个事务内完成，任何中间状态都不会出现 0 个或 2 个默认
"""
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache_keys import CacheKeys
from app.core.distributed_lock import distributed_lock
from app.core.exceptions import ConflictError, NotFoundError
from app.core.logging import logger
from app.models import UserBranchAccess
from app.repositories import (
    BranchAccessRepository,
    BranchRepository,
    PermissionAuditRepository,
    UserRepository,
)

from .permission_snapshot_service import EffectivePermissionService
from .snapshot import BranchAccessSet


@dataclass(frozen=True)
class BranchAccessListing:
    rows: list[UserBranchAccess]

    @property
    def unrestricted(self) -> bool:
        return not self.rows

    @property
    def default_branch_id(self) -> UUID | None:
        return next((r.branch_id for r in self.rows if r.is_default), None)


class BranchAccessService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.access_repo = BranchAccessRepository(db)
        self.branch_repo = BranchRepository(db)
        self.user_repo = UserRepository(db)
        self.audit_repo = PermissionAuditRepository(db)

    async def _ensure_user(self, user_id: UUID) -> None:
        if not await self.user_repo.get_by_id(user_id):
            raise NotFoundError("User not found")

    async def list_access(self, user_id: UUID) -> BranchAccessListing:
        await self._ensure_user(user_id)
        return BranchAccessListing(rows=await self.access_repo.list_for_user(user_id))

    async def get_access_set(self, user_id: UUID) -> BranchAccessSet:
        rows = await self.access_repo.list_for_user(user_id)
        return BranchAccessSet(
            branch_ids=frozenset(r.branch_id for r in rows),
            default_branch_id=next((r.branch_id for r in rows if r.is_default), None),
        )

    async def add_access(
        self,
        user_id: UUID,
        branch_id: UUID,
        access_level: str = "full",
        is_default: bool = False,
        actor_id: UUID | None = None,
    ) -> UserBranchAccess:
        await self._ensure_user(user_id)
        branch = await self.branch_repo.get(branch_id)
        if not branch:
            raise NotFoundError("Branch not found")

        async with distributed_lock(CacheKeys.user_lock(user_id)):
            if await self.access_repo.get_access(user_id, branch_id):
                raise ConflictError("User already has access to this branch")

            async with EffectivePermissionService.invalidating(self.db, [user_id]):
                if is_default:
                    await self.access_repo.clear_default(user_id)
                row = UserBranchAccess(
                    user_id=user_id,
                    branch_id=branch.id,
                    branch=branch,
                    access_level=access_level,
                    is_default=is_default,
                )
                self.db.add(row)
                await self.db.flush()
                await self.audit_repo.record(
                    action="add_branch_access",
                    changed_by_user_id=actor_id,
                    target_user_id=user_id,
                    new_value={"branch_id": str(branch_id), "access_level": access_level, "is_default": is_default},
                )

        logger.info(
            "branch_access_added",
            extra={"user_id": str(user_id), "branch_id": str(branch_id), "is_default": is_default},
        )
        return row

    async def remove_access(
        self,
        user_id: UUID,
        branch_id: UUID,
        replacement_branch_id: UUID | None = None,
        lift_restriction: bool = False,
        actor_id: UUID | None = None,
    ) -> None:
        """
        移除分支访问

        - 移除默认分支且仍有其他行时，必须指定 replacement_branch_id（须为剩余行之一），同事务内提升为默认
        - 移除最后一行会让用户变为"不受限"，需显式 lift_restriction=True
        """
        async with distributed_lock(CacheKeys.user_lock(user_id)):
            rows = await self.access_repo.list_for_user(user_id)
            target = next((r for r in rows if r.branch_id == branch_id), None)
            if not target:
                raise NotFoundError("Branch access not found")

            remaining = [r for r in rows if r.branch_id != branch_id]
            if not remaining and not lift_restriction:
                raise ConflictError(
                    "Removing the last branch access would lift the user's branch restriction; "
                    "pass lift_restriction=true to confirm"
                )

            promote: UserBranchAccess | None = None
            if target.is_default and remaining:
                if replacement_branch_id is None:
                    raise ConflictError("Cannot remove the default branch without a replacement_branch_id")
                promote = next((r for r in remaining if r.branch_id == replacement_branch_id), None)
                if promote is None:
                    raise ConflictError("replacement_branch_id must be one of the user's remaining branches")

            async with EffectivePermissionService.invalidating(self.db, [user_id]):
                await self.db.delete(target)
                await self.db.flush()
                if promote is not None:
                    await self.access_repo.mark_default(user_id, promote.branch_id)
                await self.audit_repo.record(
                    action="remove_branch_access",
                    changed_by_user_id=actor_id,
                    target_user_id=user_id,
                    old_value={"branch_id": str(branch_id), "is_default": target.is_default},
                    new_value={"default_branch_id": str(promote.branch_id)} if promote else None,
                )

        logger.info(
            "branch_access_removed",
            extra={
                "user_id": str(user_id),
                "branch_id": str(branch_id),
                "promoted_default": str(promote.branch_id) if promote else None,
                "unrestricted": not remaining,
            },
        )

    async def set_default(
        self,
        user_id: UUID,
        branch_id: UUID,
        actor_id: UUID | None = None,
    ) -> UserBranchAccess:
        async with distributed_lock(CacheKeys.user_lock(user_id)):
            row = await self.access_repo.get_access(user_id, branch_id)
            if not row:
                raise NotFoundError("Branch access not found")

            previous = next(
                (r.branch_id for r in await self.access_repo.list_for_user(user_id) if r.is_default),
                None,
            )
            if previous != branch_id:
                async with EffectivePermissionService.invalidating(self.db, [user_id]):
                    await self.access_repo.clear_default(user_id)
                    await self.access_repo.mark_default(user_id, branch_id)
                    await self.audit_repo.record(
                        action="set_default_branch",
                        changed_by_user_id=actor_id,
                        target_user_id=user_id,
                        old_value={"default_branch_id": str(previous) if previous else None},
                        new_value={"default_branch_id": str(branch_id)},
                    )
                logger.info(
                    "branch_default_changed",
                    extra={"user_id": str(user_id), "from": str(previous) if previous else None, "to": str(branch_id)},
                )

        return row
