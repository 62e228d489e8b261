"""
测试全局配置

- 禁用真实 Redis，统一使用内存 DummyRedis 挂载到 CacheService
- 每个用例使用独立的内存 SQLite (aiosqlite)，并写入权限目录与系统角色
"""
from __future__ import annotations

import fnmatch
import os
import sys
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

# 确保 backend/ 在 sys.path，便于导入 app.*
BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

# 必须在导入 app 之前设置
os.environ["REDIS_URL"] = ""
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["LOG_FILE_PATH"] = ""
os.environ["LOG_ASYNC"] = "false"
os.environ["ENVIRONMENT"] = "test"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.core.cache import cache  # noqa: E402
from app.models import Base, Branch, User  # noqa: E402
from app.services.authz import EffectivePermissionService, seed_reference_data  # noqa: E402


class DummyRedis:
    """
    轻量内存 Redis 替身，覆盖授权服务用到的方法：
    - get/set(ex, nx)/delete/keys/incr/expire/flushall
    - eval: 仅模拟分布式锁的"比较后删除"脚本
    """

    def __init__(self):
        self.store: dict[str, Any] = {}
        self.ttls: dict[str, int | None] = {}

    async def get(self, key: str):
        return self.store.get(key)

    async def set(self, key: str, value, ex=None, nx: bool | None = None):
        if nx and key in self.store:
            return False
        self.store[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, *keys):
        removed = 0
        for k in keys:
            if self.store.pop(k, None) is not None:
                removed += 1
            self.ttls.pop(k, None)
        return removed

    async def keys(self, pattern: str):
        return [k for k in list(self.store) if fnmatch.fnmatchcase(k, pattern)]

    async def incr(self, key: str, amount: int = 1):
        new_val = int(self.store.get(key, 0)) + amount
        self.store[key] = new_val
        return new_val

    async def expire(self, key: str, ttl):
        if key not in self.store:
            return False
        self.ttls[key] = ttl
        return True

    async def eval(self, script, numkeys, *keys_and_args):
        keys = list(keys_and_args[:numkeys])
        args = list(keys_and_args[numkeys:])
        if not keys or not args:
            return 0
        stored = self.store.get(keys[0])
        if stored is None:
            return 0
        stored_val = stored.decode() if isinstance(stored, (bytes, bytearray)) else str(stored)
        if stored_val != str(args[0]):
            return 0
        return await self.delete(keys[0])

    async def flushall(self):
        self.store.clear()
        self.ttls.clear()

    async def close(self):
        return None


@pytest.fixture(autouse=True)
def dummy_redis() -> DummyRedis:
    """每个用例一个干净的 Redis 替身"""
    redis = DummyRedis()
    cache._redis = redis
    EffectivePermissionService._inflight.clear()
    EffectivePermissionService._generations.clear()
    yield redis
    cache._redis = None


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with factory() as session:
        await seed_reference_data(session)

    yield factory
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def make_user(db_session: AsyncSession):
    counter = {"n": 0}

    async def _make(username: str | None = None, is_active: bool = True) -> User:
        counter["n"] += 1
        user = User(
            username=username or f"user{counter['n']}",
            full_name=f"Test User {counter['n']}",
            is_active=is_active,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest_asyncio.fixture
async def make_branch(db_session: AsyncSession):
    counter = {"n": 0}

    async def _make(code: str | None = None, is_active: bool = True) -> Branch:
        counter["n"] += 1
        branch = Branch(
            name=f"Branch {counter['n']}",
            code=code or f"BR{counter['n']:03d}",
            is_active=is_active,
        )
        db_session.add(branch)
        await db_session.commit()
        return branch

    return _make
