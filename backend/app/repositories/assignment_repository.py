from datetime import date
from uuid import UUID

from sqlalchemy import or_, select, update

from app.constants.permissions import AssignmentScope
from app.models import UserRoleAssignment
from app.utils.time_utils import Datetime

from .base import BaseRepository


class AssignmentRepository(BaseRepository[UserRoleAssignment]):
    model = UserRoleAssignment

    async def list_for_user(self, user_id: UUID) -> list[UserRoleAssignment]:
        result = await self.session.execute(
            select(UserRoleAssignment)
            .where(UserRoleAssignment.user_id == user_id)
            .order_by(UserRoleAssignment.created_at.asc())
        )
        return list(result.scalars().all())

    async def get_for_user(self, user_id: UUID, assignment_id: UUID) -> UserRoleAssignment | None:
        result = await self.session.execute(
            select(UserRoleAssignment).where(
                UserRoleAssignment.id == assignment_id,
                UserRoleAssignment.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def find_active_duplicate(
        self,
        user_id: UUID,
        role_id: UUID,
        scope_type: AssignmentScope,
        branch_id: UUID | None,
        department_id: UUID | None,
    ) -> UserRoleAssignment | None:
        stmt = select(UserRoleAssignment).where(
            UserRoleAssignment.user_id == user_id,
            UserRoleAssignment.role_id == role_id,
            UserRoleAssignment.scope_type == scope_type,
            UserRoleAssignment.is_active.is_(True),
        )
        stmt = stmt.where(
            UserRoleAssignment.branch_id.is_(None) if branch_id is None else UserRoleAssignment.branch_id == branch_id
        )
        stmt = stmt.where(
            UserRoleAssignment.department_id.is_(None)
            if department_id is None
            else UserRoleAssignment.department_id == department_id
        )
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def has_primary(self, user_id: UUID, as_of: date | None = None) -> bool:
        """是否已有当日生效的主分配（过期或未开始的不算）"""
        day = as_of or Datetime.today()
        result = await self.session.execute(
            select(UserRoleAssignment.id)
            .where(
                UserRoleAssignment.user_id == user_id,
                UserRoleAssignment.is_primary.is_(True),
                UserRoleAssignment.is_active.is_(True),
                or_(UserRoleAssignment.start_date.is_(None), UserRoleAssignment.start_date <= day),
                or_(UserRoleAssignment.end_date.is_(None), UserRoleAssignment.end_date >= day),
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def clear_primary(self, user_id: UUID, keep_id: UUID | None = None) -> None:
        """取消用户其余分配的主标记（与新主分配同一事务）"""
        stmt = (
            update(UserRoleAssignment)
            .where(UserRoleAssignment.user_id == user_id, UserRoleAssignment.is_primary.is_(True))
            .values(is_primary=False)
            .execution_options(synchronize_session="fetch")
        )
        if keep_id is not None:
            stmt = stmt.where(UserRoleAssignment.id != keep_id)
        await self.session.execute(stmt)
