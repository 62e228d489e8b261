"""
当前作用域会话（active branch）

当前分支存放在 Redis，按用户维度保存：
- 打开会话时若没有已选分支，使用默认分支；没有默认分支则保持为空，需要显式选择
- 切换分支必须落在分支访问登记内（无登记行或管理员除外），否则 403 且不改变当前分支
- 切换成功后清理旧分支下的分支级缓存
- 切换时当前分支写入 Redis 失败则返回 503，不会报告成功
"""
from dataclasses import dataclass
from uuid import UUID

from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import cache
from app.core.cache_invalidation import invalidator
from app.core.cache_keys import CacheKeys
from app.core.config import settings
from app.core.distributed_lock import distributed_lock
from app.core.exceptions import CacheUnavailableError, ForbiddenError, NotFoundError
from app.core.logging import logger
from app.models import User
from app.repositories import BranchRepository

from .branch_access_service import BranchAccessService
from .permission_snapshot_service import EffectivePermissionService


@dataclass(frozen=True)
class SessionState:
    user_id: UUID
    active_branch_id: UUID | None
    allowed_branch_ids: list[UUID]
    default_branch_id: UUID | None
    unrestricted: bool
    primary_role: str | None
    is_admin: bool


class ActiveScopeSessionService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.branch_repo = BranchRepository(db)
        self.access_service = BranchAccessService(db)
        self.permissions = EffectivePermissionService(db)

    @staticmethod
    async def get_active_branch_id(user_id: UUID) -> UUID | None:
        """只读缓存中的当前分支，不做校验（供鉴权依赖使用）"""
        raw = await cache.get(CacheKeys.active_branch(user_id))
        if not raw:
            return None
        try:
            return UUID(str(raw))
        except ValueError:
            return None

    async def _store_active_branch(self, user_id: UUID, branch_id: UUID | None, required: bool = False) -> None:
        """
        写入当前分支

        required=True（显式切换）时写入必须成功，否则抛 CacheUnavailableError；
        打开会话时的默认分支回落每次都可重新推导，写失败只记日志。
        """
        key = CacheKeys.active_branch(user_id)
        if branch_id is None:
            await cache.delete(key)
            return
        if required and not cache.enabled:
            raise CacheUnavailableError("Active branch storage is unavailable")
        try:
            stored = await cache.set(key, str(branch_id), ttl=settings.SESSION_TTL_SECONDS, strict=required)
        except RedisError as exc:
            raise CacheUnavailableError("Active branch storage is unavailable, please retry") from exc
        if not stored:
            logger.warning("active_branch_not_persisted", extra={"user_id": str(user_id)})
            if required:
                raise CacheUnavailableError("Active branch could not be saved, please retry")

    async def open_session(self, user: User) -> SessionState:
        """
        获取会话状态；没有有效的当前分支时回落到默认分支
        """
        snapshot = await self.permissions.get_snapshot(user.id)
        access = await self.access_service.get_access_set(user.id)
        active = await self.get_active_branch_id(user.id)

        if active is not None and not (access.allows(active) or snapshot.is_admin):
            # 访问登记已被移除，旧选择作废
            logger.info(
                "active_branch_dropped",
                extra={"user_id": str(user.id), "branch_id": str(active)},
            )
            active = None
            await self._store_active_branch(user.id, None)

        if active is None and access.default_branch_id is not None:
            active = access.default_branch_id
            await self._store_active_branch(user.id, active)

        return SessionState(
            user_id=user.id,
            active_branch_id=active,
            allowed_branch_ids=sorted(access.branch_ids, key=str),
            default_branch_id=access.default_branch_id,
            unrestricted=access.unrestricted,
            primary_role=snapshot.primary_role,
            is_admin=snapshot.is_admin,
        )

    async def switch_branch(self, user: User, branch_id: UUID) -> SessionState:
        async with distributed_lock(CacheKeys.user_lock(user.id)):
            snapshot = await self.permissions.get_snapshot(user.id)
            # 访问登记直接读库，不依赖快照缓存
            access = await self.access_service.get_access_set(user.id)
            if not (access.allows(branch_id) or snapshot.is_admin):
                logger.warning(
                    "active_branch_switch_denied",
                    extra={"user_id": str(user.id), "branch_id": str(branch_id)},
                )
                raise ForbiddenError("You do not have access to this branch")

            branch = await self.branch_repo.get(branch_id)
            if not branch or not branch.is_active:
                raise NotFoundError("Branch not found")

            previous = await self.get_active_branch_id(user.id)
            await self._store_active_branch(user.id, branch_id, required=True)
            if previous is not None and previous != branch_id:
                await invalidator.on_branch_switched(user.id, previous)

        logger.info(
            "active_branch_switched",
            extra={
                "user_id": str(user.id),
                "from": str(previous) if previous else None,
                "to": str(branch_id),
            },
        )
        return await self.open_session(user)
