"""
分布式锁实现（基于 Redis）

用于串行化同一角色/同一用户上的授权写操作。
Redis 不可用时退化为进程内 asyncio.Lock，单进程部署下仍保证串行。
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from redis.exceptions import RedisError

from app.core.cache import cache
from app.core.config import settings
from app.core.exceptions import ConflictError
from app.core.logging import logger

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""

_local_locks: dict[str, asyncio.Lock] = {}


class LockAcquisitionError(ConflictError):
    """锁获取失败：资源正被其他写操作占用"""

    def __init__(self, key: str):
        super().__init__(detail="Resource is busy, retry later")
        self.key = key


class DistributedLock:
    """分布式锁（基于 Redis SET NX EX）"""

    def __init__(
        self,
        key: str,
        ttl: int | None = None,
        retry_times: int = 50,
        retry_delay: float = 0.1,
    ):
        """
        Args:
            key: 锁的 Redis Key（不含全局前缀）
            ttl: 锁的过期时间（秒），默认 AUTHZ_LOCK_TTL_SECONDS
            retry_times: 获取锁失败时的重试次数
            retry_delay: 重试间隔（秒）
        """
        self.key = key
        self.ttl = ttl or settings.AUTHZ_LOCK_TTL_SECONDS
        self.retry_times = retry_times
        self.retry_delay = retry_delay
        self.lock_value = str(uuid.uuid4())
        self._acquired = False
        self._local: asyncio.Lock | None = None

    async def acquire(self) -> bool:
        redis_client = getattr(cache, "_redis", None)
        if not redis_client:
            self._local = _local_locks.setdefault(self.key, asyncio.Lock())
            await self._local.acquire()
            self._acquired = True
            return True

        full_key = cache.full_key(self.key)
        for attempt in range(self.retry_times):
            try:
                if await redis_client.set(full_key, self.lock_value, ex=self.ttl, nx=True):
                    self._acquired = True
                    logger.debug("distributed_lock_acquired", extra={"key": self.key})
                    return True
            except RedisError as exc:
                logger.warning(
                    "distributed_lock_acquire_error",
                    extra={"key": self.key, "attempt": attempt, "error": str(exc)},
                )
            if attempt < self.retry_times - 1:
                await asyncio.sleep(self.retry_delay)

        logger.warning("distributed_lock_acquire_failed", extra={"key": self.key})
        return False

    async def release(self) -> bool:
        """只释放自己持有的锁（Lua 比较 value 后删除）"""
        if not self._acquired:
            return True
        self._acquired = False

        if self._local is not None:
            self._local.release()
            self._local = None
            return True

        redis_client = getattr(cache, "_redis", None)
        if not redis_client:
            return True
        try:
            result = await redis_client.eval(_RELEASE_SCRIPT, 1, cache.full_key(self.key), self.lock_value)
        except RedisError as exc:
            logger.error("distributed_lock_release_error", extra={"key": self.key, "error": str(exc)})
            return False
        if not result:
            logger.warning("distributed_lock_release_failed", extra={"key": self.key})
        return bool(result)


@asynccontextmanager
async def distributed_lock(
    key: str,
    ttl: int | None = None,
    retry_times: int = 50,
    retry_delay: float = 0.1,
) -> AsyncGenerator[None, None]:
    """
    获取锁失败时抛出 LockAcquisitionError（409）

    Example:
        async with distributed_lock(CacheKeys.role_lock(role_id)):
            ...
    """
    lock = DistributedLock(key, ttl, retry_times, retry_delay)
    if not await lock.acquire():
        raise LockAcquisitionError(key)
    try:
        yield
    finally:
        await lock.release()
