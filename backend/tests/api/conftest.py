"""
测试配置与 fixtures（API 层）

- 复用全局 conftest 的内存 SQLite 与 DummyRedis
- 覆盖 get_db 依赖，避免连接真实 PostgreSQL
- 直接签发与上游认证服务同构的 JWT 作为测试 token
"""
from collections.abc import AsyncGenerator
from dataclasses import dataclass

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.core.database import get_db
from app.models import User
from app.repositories import RoleRepository
from app.services.authz import AssignmentService
from app.utils.security import create_access_token
from main import app


@dataclass
class Actor:
    user: User
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def make_actor(db_session, make_user):
    async def _make(role_slug: str | None, username: str | None = None) -> Actor:
        user = await make_user(username)
        if role_slug:
            role = await RoleRepository(db_session).get_by_slug(role_slug)
            await AssignmentService(db_session).add_assignment(user.id, role_id=role.id)
        return Actor(user=user, token=create_access_token(user.id))

    return _make


@pytest_asyncio.fixture
async def admin(make_actor) -> Actor:
    return await make_actor("admin", "admin")


@pytest_asyncio.fixture
async def employee(make_actor) -> Actor:
    return await make_actor("employee", "employee")


@pytest_asyncio.fixture
async def viewer(make_actor) -> Actor:
    return await make_actor("viewer", "viewer")
