from uuid import UUID

from app.schemas.base import BaseSchema


class ActiveBranchUpdate(BaseSchema):
    branch_id: UUID


class SessionRead(BaseSchema):
    """当前身份与作用域"""
    user_id: UUID
    username: str | None = None
    full_name: str | None = None
    active_branch_id: UUID | None = None
    default_branch_id: UUID | None = None
    allowed_branch_ids: list[UUID]
    unrestricted: bool
    primary_role: str | None = None
    is_admin: bool
