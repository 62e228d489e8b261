"""
权限查询 API 路由 (/api/v1/permissions)

端点:
- GET /permissions/me - 当前用户的有效权限（前端整会话缓存）
- GET /permissions/check - 判定单个 (module, action)，未知名称返回 allowed=false
- GET /permissions - 权限目录 [权限: users.view]
"""
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.permissions import ModuleAction, SystemModule
from app.core.database import get_db
from app.deps.auth import get_current_active_user, get_permission_snapshot, require_permission
from app.models import User
from app.schemas.authz import (
    ModulePermissionsRead,
    MyPermissionsResponse,
    PermissionCheckResponse,
    PermissionPairRead,
    PermissionRead,
)
from app.services.authz import (
    ActiveScopeSessionService,
    PermissionSnapshot,
    RoleCatalogService,
    has_permission,
)

router = APIRouter(prefix="/permissions", tags=["Permissions"])


@router.get("/me", response_model=MyPermissionsResponse)
async def get_my_permissions(
    user: User = Depends(get_current_active_user),
    snapshot: PermissionSnapshot = Depends(get_permission_snapshot),
) -> MyPermissionsResponse:
    """
    返回当前用户的有效权限

    - 管理员返回完整目录（判定对其恒为放行）
    - 查看者只返回 view 动作
    - 按当前分支判定，与服务端鉴权依赖一致；分支作用域分配只在其分支为当前分支时出现
    """
    active_branch_id = await ActiveScopeSessionService.get_active_branch_id(user.id)
    if snapshot.is_admin:
        pairs = [(m, a) for m in SystemModule for a in ModuleAction]
    else:
        pairs = snapshot.sorted_pairs()
    pairs = [p for p in pairs if has_permission(snapshot, p[0], p[1], active_branch_id)]

    modules: dict[SystemModule, list[ModuleAction]] = {}
    for module, action in pairs:
        modules.setdefault(module, []).append(action)

    return MyPermissionsResponse(
        user_id=user.id,
        primary_role=snapshot.primary_role,
        roles=sorted(snapshot.role_slugs),
        is_admin=snapshot.is_admin,
        permissions=[
            PermissionPairRead(module=m, action=a, scope=snapshot.scope_for(m, a)) for m, a in pairs
        ],
        modules=[ModulePermissionsRead(module=m, actions=actions) for m, actions in modules.items()],
        allowed_branch_ids=sorted(snapshot.branch_access.branch_ids, key=str),
        unrestricted=snapshot.branch_access.unrestricted,
        active_branch_id=active_branch_id,
    )


@router.get("/check", response_model=PermissionCheckResponse)
async def check_permission(
    module: str = Query(..., description="模块名"),
    action: str = Query(..., description="动作名"),
    branch_id: UUID | None = Query(None, description="分支，缺省为当前分支"),
    user: User = Depends(get_current_active_user),
    snapshot: PermissionSnapshot = Depends(get_permission_snapshot),
) -> PermissionCheckResponse:
    if branch_id is None:
        branch_id = await ActiveScopeSessionService.get_active_branch_id(user.id)
    return PermissionCheckResponse(
        module=module,
        action=action,
        branch_id=branch_id,
        allowed=has_permission(snapshot, module, action, branch_id),
    )


@router.get(
    "",
    response_model=list[PermissionRead],
    dependencies=[Depends(require_permission(SystemModule.USERS, ModuleAction.VIEW))],
)
async def list_permissions(
    module: SystemModule | None = Query(None, description="按模块筛选"),
    db: AsyncSession = Depends(get_db),
) -> list[PermissionRead]:
    service = RoleCatalogService(db)
    return await service.list_permissions(module)
