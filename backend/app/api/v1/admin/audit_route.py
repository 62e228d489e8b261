"""
授权审计 API 路由 (/api/v1/audit-logs)

端点:
- GET /audit-logs - 审计记录（分页，按目标用户/角色筛选）[权限: users.view]
"""
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi_pagination import Page, Params
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.permissions import ModuleAction, SystemModule
from app.core.database import get_db
from app.deps.auth import require_permission
from app.schemas.authz import AuditLogRead
from app.services.authz import PermissionAuditService

router = APIRouter(prefix="/audit-logs", tags=["Admin - Audit"])


@router.get(
    "",
    response_model=Page[AuditLogRead],
    dependencies=[Depends(require_permission(SystemModule.USERS, ModuleAction.VIEW))],
)
async def list_audit_logs(
    params: Params = Depends(),
    target_user_id: UUID | None = Query(None, description="按目标用户筛选"),
    role_id: UUID | None = Query(None, description="按角色筛选"),
    db: AsyncSession = Depends(get_db),
) -> Page[AuditLogRead]:
    service = PermissionAuditService(db)
    return await service.list_logs(params=params, target_user_id=target_user_id, role_id=role_id)
