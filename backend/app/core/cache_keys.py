"""缓存 Key 注册表。

禁止在业务代码中硬编码 Redis Key，统一从此处生成，便于失效管理。
"""

from __future__ import annotations

from uuid import UUID


class CacheKeys:
    prefix = "authz"

    # ===== 有效权限快照 =====
    @classmethod
    def effective_permissions(cls, user_id: UUID | str) -> str:
        """用户有效权限快照（pickle 的 PermissionSnapshot，带版本）"""
        return f"{cls.prefix}:perm:{user_id}"

    @classmethod
    def permission_version(cls, user_id: UUID | str) -> str:
        """快照版本计数器，失效时递增"""
        return f"{cls.prefix}:perm_ver:{user_id}"

    @classmethod
    def permission_fill_lock(cls, user_id: UUID | str) -> str:
        """跨进程回源短锁"""
        return f"{cls.prefix}:perm_fill:{user_id}"

    # ===== 会话 =====
    @classmethod
    def active_branch(cls, user_id: UUID | str) -> str:
        """用户当前选中的分支"""
        return f"{cls.prefix}:session:active_branch:{user_id}"

    @classmethod
    def branch_scoped_prefix(cls, user_id: UUID | str, branch_id: UUID | str) -> str:
        """某用户在某分支下的分支级缓存前缀（切换分支时整体清除）"""
        return f"{cls.prefix}:branch:{user_id}:{branch_id}:"

    # ===== 写操作串行锁 =====
    @classmethod
    def role_lock(cls, role_id: UUID | str) -> str:
        return f"{cls.prefix}:lock:role:{role_id}"

    @classmethod
    def user_lock(cls, user_id: UUID | str) -> str:
        return f"{cls.prefix}:lock:user:{user_id}"
