from sqlalchemy import select

from app.models import Department

from .base import BaseRepository


class DepartmentRepository(BaseRepository[Department]):
    model = Department

    async def get_by_code(self, code: str) -> Department | None:
        result = await self.session.execute(select(Department).where(Department.code == code))
        return result.scalar_one_or_none()

    async def list_departments(self, include_inactive: bool = False) -> list[Department]:
        stmt = select(Department).order_by(Department.name.asc())
        if not include_inactive:
            stmt = stmt.where(Department.is_active.is_(True))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
