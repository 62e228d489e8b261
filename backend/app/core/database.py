from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings


def _engine_options(url: str) -> dict:
    options: dict = {"echo": settings.DEBUG, "pool_pre_ping": True}
    # sqlite（测试）不支持连接池参数
    if not url.startswith("sqlite"):
        options.update(pool_size=20, max_overflow=10)
    return options


engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

# 提交后不过期：服务层在提交后仍要读取实体构造响应，异步下不能触发惰性加载
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI 依赖：每个请求一个 Session"""
    async with AsyncSessionLocal() as session:
        yield session


@asynccontextmanager
async def transactional(session: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """
    多步写操作的事务边界：全部成功才提交，任一步失败整体回滚

    用于“写授权行 + 写审计”“清默认 + 设默认”这类必须原子完成的组合。
    """
    try:
        yield session
        await session.commit()
    except BaseException:
        await session.rollback()
        raise
