"""
Redis 缓存

承载三类数据：
- 有效权限快照（pickle，带版本号）
- 快照版本计数器（原生整数，INCR 维护）
- 当前分支选择与各类短锁

Redis 缺失或出错时，读返回默认值、写返回失败；调用方负责回源，不能把缓存失败当作放行依据。
strict=True 的写（快照失效、当前分支）在 Redis 出错时抛出 RedisError，由调用方决定如何上报。
"""
import pickle
import random
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from redis.asyncio import Redis, from_url
from redis.exceptions import RedisError

from app.core.config import settings
from app.core.logging import logger

T = TypeVar("T")

# 版本化包装的字段名
_VERSION_FIELD = "v"
_PAYLOAD_FIELD = "data"


class CacheService:
    def __init__(self):
        self._redis: Redis | None = None

    def init(self) -> None:
        if not settings.REDIS_URL:
            logger.warning("redis_url_missing_cache_disabled")
            return
        # 值由本类自行序列化
        self._redis = from_url(settings.REDIS_URL, encoding=settings.REDIS_ENCODING, decode_responses=False)
        logger.info("redis_initialized", extra={"url": settings.REDIS_URL})

    async def close(self) -> None:
        if self._redis is None:
            return
        await self._redis.close()
        self._redis = None
        logger.info("redis_closed")

    @property
    def redis(self) -> Redis:
        if self._redis is None:
            raise RuntimeError("CacheService not initialized. Call init() first.")
        return self._redis

    @property
    def enabled(self) -> bool:
        return self._redis is not None

    def full_key(self, key: str) -> str:
        """业务 key -> Redis 实际 key（带项目前缀）"""
        return f"{settings.CACHE_PREFIX}{key}"

    async def _run(
        self,
        op: str,
        key: str,
        call: Callable[[Redis], Awaitable[T]],
        default: T,
        strict: bool = False,
    ) -> T:
        if self._redis is None:
            return default
        try:
            return await call(self._redis)
        except (RedisError, pickle.PickleError) as exc:
            logger.error("cache_op_failed", extra={"op": op, "key": key, "error": str(exc), "strict": strict})
            if strict:
                raise
            return default

    async def get(self, key: str) -> Any | None:
        async def _call(r: Redis) -> Any | None:
            raw = await r.get(self.full_key(key))
            return pickle.loads(raw) if raw else None

        return await self._run("get", key, _call, None)

    async def set(
        self,
        key: str,
        value: Any,
        ttl: int | None = settings.CACHE_DEFAULT_TTL,
        nx: bool = False,
        strict: bool = False,
    ) -> bool:
        """写入缓存；nx=True 时仅在 key 不存在时写入（用作短锁）"""
        async def _call(r: Redis) -> bool:
            options: dict[str, Any] = {"ex": ttl}
            if nx:
                options["nx"] = True
            return bool(await r.set(self.full_key(key), pickle.dumps(value), **options))

        return await self._run("set", key, _call, False, strict)

    async def delete(self, *keys: str, strict: bool = False) -> int:
        if not keys:
            return 0

        async def _call(r: Redis) -> int:
            return int(await r.delete(*(self.full_key(k) for k in keys)))

        return await self._run("delete", ",".join(keys), _call, 0, strict)

    # ====== 计数器（不经 pickle） ======

    async def incr(self, key: str, ttl: int | None = None, strict: bool = False) -> int:
        """原子自增；首次创建时设置过期时间"""
        async def _call(r: Redis) -> int:
            full = self.full_key(key)
            value = int(await r.incr(full, 1))
            if ttl and value == 1:
                await r.expire(full, ttl)
            return value

        return await self._run("incr", key, _call, 0, strict)

    async def get_counter(self, key: str) -> int:
        async def _call(r: Redis) -> int:
            raw = await r.get(self.full_key(key))
            return int(raw) if raw is not None else 0

        return await self._run("get_counter", key, _call, 0)

    async def clear_prefix(self, prefix: str) -> int:
        """按业务前缀批量删除"""
        async def _call(r: Redis) -> int:
            keys = await r.keys(f"{self.full_key(prefix)}*")
            return int(await r.delete(*keys)) if keys else 0

        return await self._run("clear_prefix", prefix, _call, 0)

    # ====== 版本化缓存 ======

    async def set_with_version(self, key: str, value: Any, version: int, ttl: int | None = None) -> bool:
        """以写入时的版本号包装；失效递增版本后旧值不会再被读到"""
        return await self.set(
            key,
            {_VERSION_FIELD: version, _PAYLOAD_FIELD: value},
            ttl=ttl or settings.CACHE_DEFAULT_TTL,
        )

    async def get_with_version(self, key: str, expected_version: int) -> Any | None:
        wrapped = await self.get(key)
        if not isinstance(wrapped, dict) or wrapped.get(_VERSION_FIELD) != expected_version:
            return None
        return wrapped.get(_PAYLOAD_FIELD)

    @staticmethod
    def jitter_ttl(ttl: int, jitter_ratio: float = 0.1) -> int:
        """TTL 加随机抖动，避免同批快照同时过期"""
        if ttl <= 0:
            return ttl
        spread = int(ttl * jitter_ratio)
        return ttl + random.randint(-spread, spread)


cache = CacheService()
