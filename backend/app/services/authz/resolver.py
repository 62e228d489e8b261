"""
分配解析器

把用户的 UserRoleAssignment 行整理为"生效分配 + 唯一主分配"：
1. 丢弃 is_active=false 或不在有效期内的分配
2. 按 (角色层级, 创建时间, id) 排序，保证结果确定
3. 多个主标记时取排序最靠前的一个，其余本次视为非主；没有主标记时取第一个
4. 无生效分配是合法状态（完全受限），不抛异常
"""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import logger
from app.models import Role, UserRoleAssignment
from app.repositories import AssignmentRepository
from app.utils.time_utils import Datetime


@dataclass(frozen=True)
class ResolvedAssignments:
    user_id: UUID
    assignments: tuple[UserRoleAssignment, ...]
    primary: UserRoleAssignment | None

    @property
    def roles(self) -> list[Role]:
        seen: dict[UUID, Role] = {}
        for assignment in self.assignments:
            seen.setdefault(assignment.role_id, assignment.role)
        return list(seen.values())

    @property
    def primary_role(self) -> Role | None:
        return self.primary.role if self.primary else None

    def is_primary(self, assignment: UserRoleAssignment) -> bool:
        return self.primary is not None and assignment.id == self.primary.id


def _sort_key(assignment: UserRoleAssignment) -> tuple:
    return (
        assignment.role.hierarchy_level,
        Datetime.ensure_aware(assignment.created_at),
        str(assignment.id),
    )


def resolve_assignments(
    user_id: UUID,
    assignments: Iterable[UserRoleAssignment],
    as_of: date | None = None,
) -> ResolvedAssignments:
    as_of = as_of or Datetime.today()
    active = sorted((a for a in assignments if a.is_effective(as_of)), key=_sort_key)

    marked = [a for a in active if a.is_primary]
    if len(marked) > 1:
        logger.warning(
            "multiple_primary_assignments",
            extra={
                "user_id": str(user_id),
                "assignment_ids": [str(a.id) for a in marked],
                "chosen": str(marked[0].id),
            },
        )
    if marked:
        primary = marked[0]
    else:
        primary = active[0] if active else None

    return ResolvedAssignments(user_id=user_id, assignments=tuple(active), primary=primary)


class AssignmentResolver:
    def __init__(self, db: AsyncSession):
        self.assignment_repo = AssignmentRepository(db)

    async def resolve(self, user_id: UUID, as_of: date | None = None) -> ResolvedAssignments:
        rows = await self.assignment_repo.list_for_user(user_id)
        return resolve_assignments(user_id, rows, as_of)
