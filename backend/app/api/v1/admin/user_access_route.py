"""
用户角色分配与分支访问 API 路由 (/api/v1/users/{user_id})

端点:
- GET /users/{user_id}/assignments - 角色分配列表 [权限: users.view]
- POST /users/{user_id}/assignments - 新增分配 [权限: users.edit]
- PATCH /users/{user_id}/assignments/{assignment_id} - 更新分配 [权限: users.edit]
- DELETE /users/{user_id}/assignments/{assignment_id} - 移除分配 [权限: users.edit]
- GET /users/{user_id}/branches - 分支访问列表 [权限: users.view]
- POST /users/{user_id}/branches - 新增分支访问 [权限: users.edit]
- DELETE /users/{user_id}/branches/{branch_id} - 移除分支访问 [权限: users.edit]
- PATCH /users/{user_id}/branches/{branch_id}/default - 设为默认分支 [权限: users.edit]
"""
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.permissions import ModuleAction, SystemModule
from app.core.database import get_db
from app.deps.auth import require_permission
from app.models import User
from app.schemas.authz import (
    AssignmentCreate,
    AssignmentRead,
    AssignmentUpdate,
    BranchAccessCreate,
    BranchAccessListResponse,
    BranchAccessRead,
)
from app.schemas.base import MessageResponse
from app.services.authz import AssignmentService, BranchAccessService

router = APIRouter(prefix="/users/{user_id}", tags=["Admin - User Access"])

_can_view = require_permission(SystemModule.USERS, ModuleAction.VIEW)
_can_edit = require_permission(SystemModule.USERS, ModuleAction.EDIT)


# ===== 角色分配 =====

@router.get("/assignments", response_model=list[AssignmentRead], dependencies=[Depends(_can_view)])
async def list_assignments(user_id: UUID, db: AsyncSession = Depends(get_db)) -> list[AssignmentRead]:
    return await AssignmentService(db).list_assignments(user_id)


@router.post("/assignments", response_model=AssignmentRead, status_code=status.HTTP_201_CREATED)
async def add_assignment(
    user_id: UUID,
    payload: AssignmentCreate,
    actor: User = Depends(_can_edit),
    db: AsyncSession = Depends(get_db),
) -> AssignmentRead:
    """
    为用户分配角色

    - branch 作用域需 branch_id，department 作用域需 department_id，global 两者皆无
    - is_primary 缺省时，用户尚无主分配则设为主
    """
    service = AssignmentService(db)
    return await service.add_assignment(
        user_id,
        role_id=payload.role_id,
        scope_type=payload.scope_type,
        branch_id=payload.branch_id,
        department_id=payload.department_id,
        is_primary=payload.is_primary,
        start_date=payload.start_date,
        end_date=payload.end_date,
        actor_id=actor.id,
    )


@router.patch("/assignments/{assignment_id}", response_model=AssignmentRead)
async def update_assignment(
    user_id: UUID,
    assignment_id: UUID,
    payload: AssignmentUpdate,
    actor: User = Depends(_can_edit),
    db: AsyncSession = Depends(get_db),
) -> AssignmentRead:
    """
    部分更新分配；显式传入 "end_date": null 表示取消失效日期
    """
    service = AssignmentService(db)
    return await service.update_assignment(
        user_id,
        assignment_id,
        is_active=payload.is_active,
        is_primary=payload.is_primary,
        end_date=payload.end_date,
        clear_end_date="end_date" in payload.model_fields_set and payload.end_date is None,
        actor_id=actor.id,
    )


@router.delete("/assignments/{assignment_id}", response_model=MessageResponse)
async def remove_assignment(
    user_id: UUID,
    assignment_id: UUID,
    actor: User = Depends(_can_edit),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await AssignmentService(db).remove_assignment(user_id, assignment_id, actor_id=actor.id)
    return MessageResponse(message="Assignment removed")


# ===== 分支访问 =====

@router.get("/branches", response_model=BranchAccessListResponse, dependencies=[Depends(_can_view)])
async def list_branch_access(user_id: UUID, db: AsyncSession = Depends(get_db)) -> BranchAccessListResponse:
    listing = await BranchAccessService(db).list_access(user_id)
    return BranchAccessListResponse(
        items=[BranchAccessRead.model_validate(row) for row in listing.rows],
        unrestricted=listing.unrestricted,
        default_branch_id=listing.default_branch_id,
    )


@router.post("/branches", response_model=BranchAccessRead, status_code=status.HTTP_201_CREATED)
async def add_branch_access(
    user_id: UUID,
    payload: BranchAccessCreate,
    actor: User = Depends(_can_edit),
    db: AsyncSession = Depends(get_db),
) -> BranchAccessRead:
    service = BranchAccessService(db)
    return await service.add_access(
        user_id,
        payload.branch_id,
        access_level=payload.access_level,
        is_default=payload.is_default,
        actor_id=actor.id,
    )


@router.delete("/branches/{branch_id}", response_model=MessageResponse)
async def remove_branch_access(
    user_id: UUID,
    branch_id: UUID,
    replacement_branch_id: UUID | None = Query(None, description="移除默认分支时提升为默认的分支"),
    lift_restriction: bool = Query(False, description="确认移除最后一条登记（用户变为不受限）"),
    actor: User = Depends(_can_edit),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    service = BranchAccessService(db)
    await service.remove_access(
        user_id,
        branch_id,
        replacement_branch_id=replacement_branch_id,
        lift_restriction=lift_restriction,
        actor_id=actor.id,
    )
    return MessageResponse(message="Branch access removed")


@router.patch("/branches/{branch_id}/default", response_model=BranchAccessRead)
async def set_default_branch(
    user_id: UUID,
    branch_id: UUID,
    actor: User = Depends(_can_edit),
    db: AsyncSession = Depends(get_db),
) -> BranchAccessRead:
    return await BranchAccessService(db).set_default(user_id, branch_id, actor_id=actor.id)
