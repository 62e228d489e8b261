"""
角色与授权管理 API 路由 (/api/v1/roles)

端点:
- GET /roles - 角色列表 [权限: users.view]
- GET /roles/{role_id} - 角色详情 [权限: users.view]
- POST /roles - 创建自定义角色（自动授予默认权限）[权限: users.create]
- PATCH /roles/{role_id} - 更新自定义角色 [权限: users.edit]
- DELETE /roles/{role_id} - 删除自定义角色 [权限: users.delete]
- GET /roles/{role_id}/permissions - 角色授权列表 [权限: users.view]
- POST /roles/{role_id}/permissions - 授予权限（幂等）[权限: users.edit]
- DELETE /roles/{role_id}/permissions/{permission_id} - 撤销权限 [权限: users.edit]
- POST /roles/{role_id}/template - 套用权限模板 [权限: users.edit]

路由只做入参校验、鉴权与调用 Service。
"""
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.permissions import ModuleAction, SystemModule
from app.core.database import get_db
from app.deps.auth import require_permission
from app.models import User
from app.schemas.authz import GrantCreate, GrantRead, RoleCreate, RoleRead, RoleUpdate, TemplateApply
from app.schemas.base import MessageResponse
from app.services.authz import RoleCatalogService, RoleGrantService

router = APIRouter(prefix="/roles", tags=["Admin - Roles"])

_can_view = require_permission(SystemModule.USERS, ModuleAction.VIEW)
_can_create = require_permission(SystemModule.USERS, ModuleAction.CREATE)
_can_edit = require_permission(SystemModule.USERS, ModuleAction.EDIT)
_can_delete = require_permission(SystemModule.USERS, ModuleAction.DELETE)


@router.get("", response_model=list[RoleRead], dependencies=[Depends(_can_view)])
async def list_roles(db: AsyncSession = Depends(get_db)) -> list[RoleRead]:
    return await RoleCatalogService(db).list_roles()


@router.post("", response_model=RoleRead, status_code=status.HTTP_201_CREATED)
async def create_role(
    payload: RoleCreate,
    actor: User = Depends(_can_create),
    db: AsyncSession = Depends(get_db),
) -> RoleRead:
    """
    创建自定义角色

    - slug 必须为小写标识且不能占用系统角色
    - hierarchy_level 0 保留给管理员
    """
    service = RoleCatalogService(db)
    return await service.create_role(
        name=payload.name,
        slug=payload.slug,
        hierarchy_level=payload.hierarchy_level,
        description=payload.description,
        actor_id=actor.id,
    )


@router.get("/{role_id}", response_model=RoleRead, dependencies=[Depends(_can_view)])
async def get_role(role_id: UUID, db: AsyncSession = Depends(get_db)) -> RoleRead:
    return await RoleCatalogService(db).get_role(role_id)


@router.patch("/{role_id}", response_model=RoleRead)
async def update_role(
    role_id: UUID,
    payload: RoleUpdate,
    actor: User = Depends(_can_edit),
    db: AsyncSession = Depends(get_db),
) -> RoleRead:
    service = RoleCatalogService(db)
    return await service.update_role(
        role_id,
        name=payload.name,
        description=payload.description,
        hierarchy_level=payload.hierarchy_level,
        actor_id=actor.id,
    )


@router.delete("/{role_id}", response_model=MessageResponse)
async def delete_role(
    role_id: UUID,
    actor: User = Depends(_can_delete),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await RoleCatalogService(db).delete_role(role_id, actor_id=actor.id)
    return MessageResponse(message="Role deleted")


@router.get("/{role_id}/permissions", response_model=list[GrantRead], dependencies=[Depends(_can_view)])
async def list_role_permissions(role_id: UUID, db: AsyncSession = Depends(get_db)) -> list[GrantRead]:
    return await RoleGrantService(db).list_grants(role_id)


@router.post("/{role_id}/permissions", response_model=GrantRead)
async def grant_permission(
    role_id: UUID,
    payload: GrantCreate,
    actor: User = Depends(_can_edit),
    db: AsyncSession = Depends(get_db),
) -> GrantRead:
    """授予权限；已存在时原样返回"""
    service = RoleGrantService(db)
    return await service.grant(role_id, payload.permission_id, payload.scope, actor_id=actor.id)


@router.delete("/{role_id}/permissions/{permission_id}", response_model=MessageResponse)
async def revoke_permission(
    role_id: UUID,
    permission_id: UUID,
    actor: User = Depends(_can_edit),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    removed = await RoleGrantService(db).revoke(role_id, permission_id, actor_id=actor.id)
    return MessageResponse(message="Permission revoked" if removed else "Permission was not granted")


@router.post("/{role_id}/template", response_model=list[GrantRead])
async def apply_template(
    role_id: UUID,
    payload: TemplateApply,
    actor: User = Depends(_can_edit),
    db: AsyncSession = Depends(get_db),
) -> list[GrantRead]:
    service = RoleGrantService(db)
    return await service.apply_template(role_id, payload.template, actor_id=actor.id)
