"""
部门管理 API 路由 (/api/v1/departments)

端点:
- GET /departments - 部门列表 [权限: users.view]
- POST /departments - 创建部门 [权限: users.create]
- PATCH /departments/{department_id} - 更新部门 [权限: users.edit]
"""
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.permissions import ModuleAction, SystemModule
from app.core.database import get_db
from app.deps.auth import require_permission
from app.schemas.authz import DepartmentCreate, DepartmentRead, DepartmentUpdate
from app.services.authz import DepartmentService

router = APIRouter(prefix="/departments", tags=["Admin - Departments"])


@router.get(
    "",
    response_model=list[DepartmentRead],
    dependencies=[Depends(require_permission(SystemModule.USERS, ModuleAction.VIEW))],
)
async def list_departments(
    include_inactive: bool = Query(False, description="包含已停用部门"),
    db: AsyncSession = Depends(get_db),
) -> list[DepartmentRead]:
    return await DepartmentService(db).list_departments(include_inactive=include_inactive)


@router.post(
    "",
    response_model=DepartmentRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission(SystemModule.USERS, ModuleAction.CREATE))],
)
async def create_department(payload: DepartmentCreate, db: AsyncSession = Depends(get_db)) -> DepartmentRead:
    service = DepartmentService(db)
    return await service.create_department(name=payload.name, code=payload.code, description=payload.description)


@router.patch(
    "/{department_id}",
    response_model=DepartmentRead,
    dependencies=[Depends(require_permission(SystemModule.USERS, ModuleAction.EDIT))],
)
async def update_department(
    department_id: UUID,
    payload: DepartmentUpdate,
    db: AsyncSession = Depends(get_db),
) -> DepartmentRead:
    service = DepartmentService(db)
    return await service.update_department(
        department_id,
        name=payload.name,
        description=payload.description,
        is_active=payload.is_active,
    )
