from uuid import UUID

from sqlalchemy import select, update

from app.models import UserBranchAccess

from .base import BaseRepository


class BranchAccessRepository(BaseRepository[UserBranchAccess]):
    model = UserBranchAccess

    async def list_for_user(self, user_id: UUID) -> list[UserBranchAccess]:
        result = await self.session.execute(
            select(UserBranchAccess)
            .where(UserBranchAccess.user_id == user_id)
            .order_by(UserBranchAccess.created_at.asc())
        )
        return list(result.scalars().all())

    async def get_access(self, user_id: UUID, branch_id: UUID) -> UserBranchAccess | None:
        result = await self.session.execute(
            select(UserBranchAccess).where(
                UserBranchAccess.user_id == user_id,
                UserBranchAccess.branch_id == branch_id,
            )
        )
        return result.scalar_one_or_none()

    async def clear_default(self, user_id: UUID) -> None:
        await self.session.execute(
            update(UserBranchAccess)
            .where(UserBranchAccess.user_id == user_id, UserBranchAccess.is_default.is_(True))
            .values(is_default=False)
            .execution_options(synchronize_session="fetch")
        )

    async def mark_default(self, user_id: UUID, branch_id: UUID) -> None:
        await self.session.execute(
            update(UserBranchAccess)
            .where(UserBranchAccess.user_id == user_id, UserBranchAccess.branch_id == branch_id)
            .values(is_default=True)
            .execution_options(synchronize_session="fetch")
        )
