"""
缓存失效管理

职责：
- 统一管理授权相关缓存的失效逻辑
- 提供事件驱动的失效入口，避免业务代码中散落的 Key 操作

事件 -> Key 矩阵:

1. 用户授权输入变更（分配增删改、分支访问增删、默认分支变更）
   - 递增: authz:perm_ver:{user}
   - 删除: authz:perm:{user}

2. 角色授权变更（grant/revoke/apply_template）
   - 对所有持有该角色的用户执行 1

3. 当前分支切换
   - 前缀删除: authz:branch:{user}:{old_branch}:*

版本失效保证：回源开始后发生的失效会让回源结果以旧版本写入，读取时版本不匹配即视为未命中。
事件 1、2 的 Redis 写失败会抛出 RedisError，旧快照可能仍在缓存中，调用方不能报告成功。

使用方式:
    from app.core.cache_invalidation import invalidator

    await invalidator.on_user_access_changed(user_id)
    await invalidator.invalidate([
        ("role_grants_changed", {"user_ids": holders}),
        ("branch_switched", {"user_id": uid, "old_branch_id": old}),
    ])
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from uuid import UUID

from app.core.cache import cache
from app.core.cache_keys import CacheKeys
from app.core.logging import logger


class CacheInvalidator:
    """事件驱动的授权缓存失效器"""

    async def invalidate(self, events: Sequence[tuple[str, dict]]) -> None:
        """批量处理失效事件"""
        tasks = []
        for name, payload in events:
            handler = getattr(self, f"on_{name}", None)
            if handler:
                tasks.append(handler(**payload))
            else:
                logger.warning("unknown_invalidation_event", extra={"event": name})
        if tasks:
            await asyncio.gather(*tasks)

    # === 事件处理 ===

    async def on_user_access_changed(self, user_id: UUID | str) -> None:
        """单个用户的分配/分支访问变更"""
        await self.bump_permission_version(user_id)
        await self._delete_keys([CacheKeys.effective_permissions(user_id)])

    async def on_role_grants_changed(self, user_ids: Iterable[UUID | str]) -> None:
        """角色权限集合变更：所有持有者的快照都需失效"""
        unique = {str(uid) for uid in user_ids}
        if not unique:
            return
        await asyncio.gather(*(self.on_user_access_changed(uid) for uid in unique))
        logger.info("role_holders_invalidated", extra={"count": len(unique)})

    async def on_branch_switched(self, user_id: UUID | str, old_branch_id: UUID | str | None) -> None:
        """切换当前分支后清理旧分支下的分支级缓存"""
        if old_branch_id is None:
            return
        await self._clear_prefix(CacheKeys.branch_scoped_prefix(user_id, old_branch_id))

    async def bump_permission_version(self, user_id: UUID | str) -> int:
        return await cache.incr(CacheKeys.permission_version(user_id), strict=True)

    # === 内部工具 ===

    async def _delete_keys(self, keys: Iterable[str]) -> None:
        keys = [k for k in keys if k]
        if not keys:
            return
        await cache.delete(*keys, strict=True)

    async def _clear_prefix(self, prefix: str) -> None:
        removed = await cache.clear_prefix(prefix)
        if removed:
            logger.debug("cache_prefix_cleared", extra={"prefix": prefix, "removed": removed})


invalidator = CacheInvalidator()
