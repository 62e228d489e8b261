from uuid import UUID

from sqlalchemy import select

from app.models import Branch, User

from .base import BaseRepository


class UserRepository(BaseRepository[User]):
    model = User

    async def get_by_id(self, user_id: UUID) -> User | None:
        return await self.session.get(User, user_id)

    async def get_by_username(self, username: str) -> User | None:
        result = await self.session.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()


class BranchRepository(BaseRepository[Branch]):
    model = Branch

    async def get_by_code(self, code: str) -> Branch | None:
        result = await self.session.execute(select(Branch).where(Branch.code == code))
        return result.scalar_one_or_none()

    async def list_by_ids(self, branch_ids: list[UUID]) -> list[Branch]:
        if not branch_ids:
            return []
        result = await self.session.execute(
            select(Branch).where(Branch.id.in_(branch_ids)).order_by(Branch.name)
        )
        return list(result.scalars().all())
