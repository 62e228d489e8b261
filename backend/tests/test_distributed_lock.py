"""
分布式锁测试

- 锁的获取和释放
- 锁的竞争
- 只释放自己持有的锁
- Redis 不可用时退化为进程内锁
"""

import asyncio

import pytest

from app.core.cache import cache
from app.core.distributed_lock import DistributedLock, LockAcquisitionError, distributed_lock
from app.core.exceptions import ConflictError


@pytest.mark.asyncio
async def test_distributed_lock_acquire_release():
    """测试锁的获取和释放"""
    lock = DistributedLock("test_lock_1", ttl=5)

    assert await lock.acquire() is True
    assert await lock.release() is True


@pytest.mark.asyncio
async def test_distributed_lock_competition():
    """测试锁的竞争"""
    lock1 = DistributedLock("test_lock_2", ttl=5, retry_times=2, retry_delay=0.01)
    lock2 = DistributedLock("test_lock_2", ttl=5, retry_times=2, retry_delay=0.01)

    assert await lock1.acquire() is True
    # 同一个 key 第二把锁获取失败
    assert await lock2.acquire() is False

    await lock1.release()

    assert await lock2.acquire() is True
    await lock2.release()


@pytest.mark.asyncio
async def test_release_only_own_lock(dummy_redis):
    lock = DistributedLock("test_lock_3", ttl=5)
    assert await lock.acquire() is True

    # 锁过期后被他人持有
    full_key = cache.full_key("test_lock_3")
    dummy_redis.store[full_key] = "someone-else"

    assert await lock.release() is False
    assert dummy_redis.store[full_key] == "someone-else"


@pytest.mark.asyncio
async def test_context_manager_raises_conflict_when_busy():
    holder = DistributedLock("test_lock_4", ttl=5)
    await holder.acquire()

    with pytest.raises(LockAcquisitionError) as exc_info:
        async with distributed_lock("test_lock_4", retry_times=2, retry_delay=0.01):
            pass
    assert isinstance(exc_info.value, ConflictError)
    assert exc_info.value.status_code == 409

    await holder.release()
    async with distributed_lock("test_lock_4"):
        pass


@pytest.mark.asyncio
async def test_local_fallback_serializes_writers():
    cache._redis = None
    order: list[str] = []

    async def _writer(name: str):
        async with distributed_lock("test_lock_5"):
            order.append(f"{name}:start")
            await asyncio.sleep(0.01)
            order.append(f"{name}:end")

    await asyncio.gather(_writer("a"), _writer("b"))

    assert order in (
        ["a:start", "a:end", "b:start", "b:end"],
        ["b:start", "b:end", "a:start", "a:end"],
    )
