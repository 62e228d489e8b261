"""
用户角色分配

作用域字段规则：
- global: 不能带 branch_id / department_id
- branch: 必须带 branch_id，不能带 department_id
- department: 必须带 department_id，不能带 branch_id

主分配：新增/更新时标记为主，会在同一事务内取消该用户其余分配的主标记。
所有写操作按用户串行，提交前后各失效一次该用户的权限快照（失败回滚并返回 503）。
"""
from datetime import date
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.permissions import AssignmentScope
from app.core.cache_keys import CacheKeys
from app.core.distributed_lock import distributed_lock
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.logging import logger
from app.models import User, UserRoleAssignment
from app.repositories import (
    AssignmentRepository,
    BranchRepository,
    DepartmentRepository,
    PermissionAuditRepository,
    RoleRepository,
    UserRepository,
)

from .permission_snapshot_service import EffectivePermissionService


def validate_scope_fields(
    scope_type: AssignmentScope,
    branch_id: UUID | None,
    department_id: UUID | None,
) -> None:
    if scope_type is AssignmentScope.BRANCH:
        if branch_id is None:
            raise ValidationError("branch_id is required for a branch-scoped assignment")
        if department_id is not None:
            raise ValidationError("department_id is not allowed for a branch-scoped assignment")
    elif scope_type is AssignmentScope.DEPARTMENT:
        if department_id is None:
            raise ValidationError("department_id is required for a department-scoped assignment")
        if branch_id is not None:
            raise ValidationError("branch_id is not allowed for a department-scoped assignment")
    elif branch_id is not None or department_id is not None:
        raise ValidationError("A global assignment cannot reference a branch or department")


def _snapshot_of(assignment: UserRoleAssignment) -> dict:
    return {
        "assignment_id": str(assignment.id),
        "role": assignment.role.slug,
        "scope_type": assignment.scope_type.value,
        "branch_id": str(assignment.branch_id) if assignment.branch_id else None,
        "department_id": str(assignment.department_id) if assignment.department_id else None,
        "is_primary": assignment.is_primary,
        "is_active": assignment.is_active,
    }


class AssignmentService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.assignment_repo = AssignmentRepository(db)
        self.user_repo = UserRepository(db)
        self.role_repo = RoleRepository(db)
        self.branch_repo = BranchRepository(db)
        self.department_repo = DepartmentRepository(db)
        self.audit_repo = PermissionAuditRepository(db)

    async def _get_user(self, user_id: UUID) -> User:
        user = await self.user_repo.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    async def list_assignments(self, user_id: UUID) -> list[UserRoleAssignment]:
        await self._get_user(user_id)
        return await self.assignment_repo.list_for_user(user_id)

    async def add_assignment(
        self,
        user_id: UUID,
        *,
        role_id: UUID,
        scope_type: AssignmentScope | str = AssignmentScope.GLOBAL,
        branch_id: UUID | None = None,
        department_id: UUID | None = None,
        is_primary: bool | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        actor_id: UUID | None = None,
    ) -> UserRoleAssignment:
        try:
            scope = AssignmentScope(scope_type)
        except ValueError as exc:
            raise ValidationError(f"Invalid scope_type '{scope_type}'") from exc
        validate_scope_fields(scope, branch_id, department_id)
        if start_date and end_date and end_date < start_date:
            raise ValidationError("end_date must not be earlier than start_date")

        await self._get_user(user_id)
        role = await self.role_repo.get(role_id)
        if not role:
            raise NotFoundError("Role not found")
        if branch_id is not None and not await self.branch_repo.get(branch_id):
            raise NotFoundError("Branch not found")
        if department_id is not None and not await self.department_repo.get(department_id):
            raise NotFoundError("Department not found")

        async with distributed_lock(CacheKeys.user_lock(user_id)):
            duplicate = await self.assignment_repo.find_active_duplicate(
                user_id, role_id, scope, branch_id, department_id
            )
            if duplicate:
                raise ConflictError("User already holds this role in the same scope")

            if is_primary is None:
                is_primary = not await self.assignment_repo.has_primary(user_id)

            async with EffectivePermissionService.invalidating(self.db, [user_id]):
                if is_primary:
                    await self.assignment_repo.clear_primary(user_id)
                assignment = UserRoleAssignment(
                    user_id=user_id,
                    role_id=role.id,
                    role=role,
                    scope_type=scope,
                    branch_id=branch_id,
                    department_id=department_id,
                    is_primary=is_primary,
                    is_active=True,
                    start_date=start_date,
                    end_date=end_date,
                )
                self.db.add(assignment)
                await self.db.flush()
                await self.audit_repo.record(
                    action="assign_role",
                    changed_by_user_id=actor_id,
                    target_user_id=user_id,
                    role_id=role.id,
                    new_value=_snapshot_of(assignment),
                )

        logger.info(
            "role_assigned",
            extra={
                "user_id": str(user_id),
                "role": role.slug,
                "scope_type": scope.value,
                "is_primary": is_primary,
            },
        )
        return assignment

    async def update_assignment(
        self,
        user_id: UUID,
        assignment_id: UUID,
        *,
        is_active: bool | None = None,
        is_primary: bool | None = None,
        end_date: date | None = None,
        clear_end_date: bool = False,
        actor_id: UUID | None = None,
    ) -> UserRoleAssignment:
        """
        部分更新；None 表示不修改，clear_end_date=True 时取消失效日期

        重新启用时与新增相同，不允许与已生效的同角色同作用域分配重复。
        """
        if clear_end_date and end_date is not None:
            raise ValidationError("end_date and clear_end_date cannot be combined")

        async with distributed_lock(CacheKeys.user_lock(user_id)):
            assignment = await self.assignment_repo.get_for_user(user_id, assignment_id)
            if not assignment:
                raise NotFoundError("Assignment not found")
            if end_date and assignment.start_date and end_date < assignment.start_date:
                raise ValidationError("end_date must not be earlier than start_date")
            if is_active and not assignment.is_active:
                duplicate = await self.assignment_repo.find_active_duplicate(
                    user_id,
                    assignment.role_id,
                    assignment.scope_type,
                    assignment.branch_id,
                    assignment.department_id,
                )
                if duplicate:
                    raise ConflictError("User already holds this role in the same scope")

            before = _snapshot_of(assignment)
            async with EffectivePermissionService.invalidating(self.db, [user_id]):
                if is_primary:
                    await self.assignment_repo.clear_primary(user_id, keep_id=assignment.id)
                changes: dict = {}
                if is_active is not None:
                    changes["is_active"] = is_active
                if is_primary is not None:
                    changes["is_primary"] = is_primary
                if end_date is not None or clear_end_date:
                    changes["end_date"] = end_date
                await self.assignment_repo.update(assignment, changes, commit=False)
                await self.audit_repo.record(
                    action="update_assignment",
                    changed_by_user_id=actor_id,
                    target_user_id=user_id,
                    role_id=assignment.role_id,
                    old_value=before,
                    new_value=_snapshot_of(assignment),
                )

        logger.info(
            "assignment_updated",
            extra={"user_id": str(user_id), "assignment_id": str(assignment_id)},
        )
        return assignment

    async def remove_assignment(
        self,
        user_id: UUID,
        assignment_id: UUID,
        actor_id: UUID | None = None,
    ) -> None:
        async with distributed_lock(CacheKeys.user_lock(user_id)):
            assignment = await self.assignment_repo.get_for_user(user_id, assignment_id)
            if not assignment:
                raise NotFoundError("Assignment not found")

            before = _snapshot_of(assignment)
            role_id = assignment.role_id
            async with EffectivePermissionService.invalidating(self.db, [user_id]):
                await self.db.delete(assignment)
                await self.db.flush()
                await self.audit_repo.record(
                    action="unassign_role",
                    changed_by_user_id=actor_id,
                    target_user_id=user_id,
                    role_id=role_id,
                    old_value=before,
                )

        logger.info(
            "role_unassigned",
            extra={"user_id": str(user_id), "assignment_id": str(assignment_id), "role": before["role"]},
        )
