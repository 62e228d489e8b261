from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    异步 Repository 基类，子类声明 `model`

    授权表的写操作大多是多步事务（写行 + 写审计），
    因此写方法支持 commit=False：只 flush，由服务层的 transactional() 统一提交。
    """

    model: type[ModelType]

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _persist(self, obj: ModelType, commit: bool) -> ModelType:
        self.session.add(obj)
        if commit:
            await self.session.commit()
        else:
            await self.session.flush()
        return obj

    async def get(self, id: UUID) -> ModelType | None:
        result = await self.session.execute(select(self.model).where(self.model.id == id))
        return result.scalars().first()

    async def create(self, values: dict[str, Any], commit: bool = True) -> ModelType:
        return await self._persist(self.model(**values), commit)

    async def update(self, obj: ModelType, changes: dict[str, Any], commit: bool = True) -> ModelType:
        for name, value in changes.items():
            setattr(obj, name, value)
        return await self._persist(obj, commit)
