"""
有效权限快照服务

读路径：
- Redis 命中（版本匹配）直接返回
- 未命中时同进程内同一用户的并发请求共享一个回源 Future，跨进程用短锁防击穿
- 缓存异常只会退化为重新计算，绝不会退化为放行

写路径（失效）：
- invalidate_user 递增版本号并删除快照；回源中的旧结果以旧版本写入，读取时自然失配
- 变更服务通过 invalidating() 包住事务：提交前失效一次（失败则回滚并返回 503），提交后再失效一次
"""
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import date
from uuid import UUID

from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import cache
from app.core.cache_invalidation import invalidator
from app.core.cache_keys import CacheKeys
from app.core.config import settings
from app.core.database import transactional
from app.core.exceptions import CacheUnavailableError
from app.core.logging import logger
from app.repositories import BranchAccessRepository, RolePermissionRepository

from .resolver import AssignmentResolver
from .snapshot import BranchAccessSet, GrantSource, PermissionSnapshot, build_snapshot


class EffectivePermissionService:
    # 进程内回源合并：(user_id, redis 版本, 本地代数) -> Future
    _inflight: dict[tuple[str, int, int], asyncio.Future] = {}
    # 本地代数，Redis 不可用时同样能让失效后的新请求绕开旧的回源；只为有回源在途的用户保留
    _generations: dict[str, int] = {}

    def __init__(self, db: AsyncSession):
        self.db = db
        self.resolver = AssignmentResolver(db)
        self.grant_repo = RolePermissionRepository(db)
        self.access_repo = BranchAccessRepository(db)

    async def get_snapshot(self, user_id: UUID) -> PermissionSnapshot:
        uid = str(user_id)
        version = await cache.get_counter(CacheKeys.permission_version(uid))
        cached = await cache.get_with_version(CacheKeys.effective_permissions(uid), version)
        if isinstance(cached, PermissionSnapshot):
            return cached

        flight_key = (uid, version, self._generations.get(uid, 0))
        pending = self._inflight.get(flight_key)
        if pending is not None:
            return await asyncio.shield(pending)

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._inflight[flight_key] = future
        try:
            snapshot = await self._fill(user_id, version)
        except Exception as exc:
            future.set_exception(exc)
            future.exception()  # 标记已读取，没有跟随者时不告警
            raise
        except BaseException:
            future.cancel()
            raise
        else:
            future.set_result(snapshot)
            return snapshot
        finally:
            self._inflight.pop(flight_key, None)
            if not self._has_inflight(uid):
                self._generations.pop(uid, None)

    async def _fill(self, user_id: UUID, version: int) -> PermissionSnapshot:
        cache_key = CacheKeys.effective_permissions(user_id)
        lock_key = CacheKeys.permission_fill_lock(user_id)

        got_lock = await cache.set(lock_key, 1, ttl=settings.PERMISSION_FILL_LOCK_TTL_SECONDS, nx=True)
        if not got_lock and cache.enabled:
            # 其他进程正在回源，稍等后复查
            await asyncio.sleep(0.05)
            cached = await cache.get_with_version(cache_key, version)
            if isinstance(cached, PermissionSnapshot):
                return cached
        try:
            snapshot = await self.compute_snapshot(user_id)
            await cache.set_with_version(
                cache_key,
                snapshot,
                version,
                ttl=cache.jitter_ttl(settings.PERMISSION_CACHE_TTL_SECONDS),
            )
            return snapshot
        finally:
            if got_lock:
                await cache.delete(lock_key)

    async def compute_snapshot(self, user_id: UUID, as_of: date | None = None) -> PermissionSnapshot:
        """直接从数据库计算快照（不读写缓存）"""
        resolved = await self.resolver.resolve(user_id, as_of)
        grants_by_role = await self.grant_repo.grants_by_role({a.role_id for a in resolved.assignments})
        sources = [
            GrantSource(
                role_slug=a.role.slug,
                scope_type=a.scope_type,
                branch_id=a.branch_id,
                grants=tuple(grants_by_role.get(a.role_id, ())),
            )
            for a in resolved.assignments
        ]

        rows = await self.access_repo.list_for_user(user_id)
        access = BranchAccessSet(
            branch_ids=frozenset(r.branch_id for r in rows),
            default_branch_id=next((r.branch_id for r in rows if r.is_default), None),
        )

        primary_role = resolved.primary_role.slug if resolved.primary_role else None
        snapshot = build_snapshot(user_id, sources, primary_role, access)
        logger.debug(
            "permission_snapshot_built",
            extra={
                "user_id": str(user_id),
                "roles": sorted(snapshot.role_slugs),
                "primary_role": primary_role,
                "grant_count": len(snapshot.all_grants),
            },
        )
        return snapshot

    @classmethod
    def _has_inflight(cls, uid: str) -> bool:
        return any(key[0] == uid for key in cls._inflight)

    @classmethod
    def _bump_generation(cls, uid: str) -> None:
        # 没有在途回源时无需代数，新请求本就会重新读取版本
        if cls._has_inflight(uid):
            cls._generations[uid] = cls._generations.get(uid, 0) + 1

    @classmethod
    async def invalidate_user(cls, user_id: UUID) -> None:
        await cls.invalidate_users([user_id])

    @classmethod
    async def invalidate_users(cls, user_ids: Iterable[UUID]) -> None:
        """
        失效用户快照；Redis 写失败时抛出 CacheUnavailableError

        旧快照可能仍以当前版本留在 Redis 中，此时不能向调用方报告成功。
        """
        uids = {str(uid) for uid in user_ids}
        for uid in uids:
            cls._bump_generation(uid)
        try:
            await invalidator.on_role_grants_changed(uids)
        except RedisError as exc:
            logger.error(
                "permission_invalidation_failed",
                extra={"user_count": len(uids), "error": str(exc)},
            )
            raise CacheUnavailableError("Permission cache is unavailable, please retry") from exc

    @classmethod
    @asynccontextmanager
    async def invalidating(cls, db: AsyncSession, user_ids: Iterable[UUID]) -> AsyncIterator[None]:
        """
        事务 + 快照失效

        - 提交前失效：Redis 不可用时整个事务回滚，变更不落库
        - 提交后再失效：提交前并发回源可能以新版本写入旧结果，需要再递增一次
        """
        uids = list(user_ids)
        async with transactional(db):
            yield
            await cls.invalidate_users(uids)
        await cls.invalidate_users(uids)
