"""部门（参考数据），只停用不物理删除"""
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationError
from app.core.logging import logger
from app.models import Department
from app.repositories import DepartmentRepository


class DepartmentService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = DepartmentRepository(db)

    async def list_departments(self, include_inactive: bool = False) -> list[Department]:
        return await self.repo.list_departments(include_inactive)

    async def get_department(self, department_id: UUID) -> Department:
        department = await self.repo.get(department_id)
        if not department:
            raise NotFoundError("Department not found")
        return department

    async def create_department(self, *, name: str, code: str, description: str | None = None) -> Department:
        code = code.strip()
        if await self.repo.get_by_code(code):
            raise ValidationError(f"Department code '{code}' already exists")
        try:
            department = await self.repo.create({"name": name.strip(), "code": code, "description": description})
        except IntegrityError as exc:
            await self.db.rollback()
            raise ValidationError(f"Department code '{code}' already exists") from exc
        logger.info("department_created", extra={"department_id": str(department.id), "code": code})
        return department

    async def update_department(
        self,
        department_id: UUID,
        *,
        name: str | None = None,
        description: str | None = None,
        is_active: bool | None = None,
    ) -> Department:
        department = await self.get_department(department_id)
        changes = {
            k: v
            for k, v in {"name": name, "description": description, "is_active": is_active}.items()
            if v is not None
        }
        if not changes:
            return department
        department = await self.repo.update(department, changes)
        logger.info(
            "department_updated",
            extra={"department_id": str(department_id), "fields": sorted(changes)},
        )
        return department
