"""
Auth/ACL 依赖

认证模式（优先级从高到低）：
1. JWT Bearer Token: Authorization: Bearer <token>
2. X-User-Id Header: 向后兼容模式（ALLOW_USER_ID_HEADER 控制，将逐步废弃）

依赖使用：
- get_current_user: 获取当前用户（支持 JWT 和 X-User-Id）
- get_current_active_user: 确保用户已激活
- get_permission_snapshot: 当前用户的有效权限快照
- require_permission / require_any_permission: 按 (module, action) 鉴权，使用当前分支
"""
import uuid
from collections.abc import Callable, Iterable

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.permissions import ModuleAction, SystemModule
from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import ForbiddenError
from app.core.logging import logger
from app.models import User
from app.repositories import UserRepository
from app.services.authz import (
    ActiveScopeSessionService,
    EffectivePermissionService,
    PermissionSnapshot,
    has_any_permission,
    has_permission,
)
from app.utils.security import decode_token


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _load_user(raw_id: str, db: AsyncSession) -> User:
    try:
        user_uuid = uuid.UUID(raw_id)
    except ValueError:
        raise _unauthorized("Invalid user id")

    user = await UserRepository(db).get_by_id(user_uuid)
    if not user:
        raise _unauthorized("User not found")
    return user


async def _get_user_from_jwt(token: str, db: AsyncSession) -> User:
    """从 JWT token 解析并验证用户"""
    try:
        payload = decode_token(token)
    except ValueError as e:
        logger.warning("jwt_decode_failed", extra={"error": str(e)})
        raise _unauthorized("Invalid token")

    if payload.get("type") != "access":
        raise _unauthorized("Invalid token type")

    user_id_str = payload.get("sub")
    if not user_id_str:
        raise _unauthorized("Invalid token payload")
    return await _load_user(user_id_str, db)


async def _get_user_from_header(x_user_id: str, db: AsyncSession) -> User:
    """从 X-User-Id 头获取用户（向后兼容）"""
    logger.warning(
        "deprecated_auth_method",
        extra={"method": "X-User-Id", "user_id": x_user_id},
    )
    return await _load_user(x_user_id, db)


async def get_current_user(
    db: AsyncSession = Depends(get_db),
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> User:
    """
    获取当前用户（双模式认证）

    优先级：
    1. Authorization: Bearer <token> (JWT)
    2. X-User-Id: <uuid>
    """
    if authorization and authorization.startswith("Bearer "):
        return await _get_user_from_jwt(authorization[7:], db)

    if x_user_id and settings.ALLOW_USER_ID_HEADER:
        return await _get_user_from_header(x_user_id, db)

    raise _unauthorized("Missing authentication credentials")


async def get_current_active_user(
    user: User = Depends(get_current_user),
) -> User:
    """确保用户已激活"""
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is not active",
        )
    return user


async def get_permission_snapshot(
    user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> PermissionSnapshot:
    return await EffectivePermissionService(db).get_snapshot(user.id)


def require_permission(module: SystemModule, action: ModuleAction) -> Callable:
    """
    生成 FastAPI 依赖，校验当前用户在当前分支下是否拥有 (module, action)。
    """

    async def _dep(
        user: User = Depends(get_current_active_user),
        snapshot: PermissionSnapshot = Depends(get_permission_snapshot),
    ) -> User:
        branch_id = await ActiveScopeSessionService.get_active_branch_id(user.id)
        if has_permission(snapshot, module, action, branch_id):
            return user

        logger.warning(
            "permission_denied",
            extra={
                "user_id": str(user.id),
                "required": f"{module.value}.{action.value}",
                "branch_id": str(branch_id) if branch_id else None,
            },
        )
        raise ForbiddenError(f"Missing permission: {module.value}.{action.value}")

    return _dep


def require_any_permission(pairs: Iterable[tuple[SystemModule, ModuleAction]]) -> Callable:
    """任意一个 (module, action) 满足即放行"""
    required = tuple(pairs)

    async def _dep(
        user: User = Depends(get_current_active_user),
        snapshot: PermissionSnapshot = Depends(get_permission_snapshot),
    ) -> User:
        branch_id = await ActiveScopeSessionService.get_active_branch_id(user.id)
        if has_any_permission(snapshot, required, branch_id):
            return user

        codes = [f"{m.value}.{a.value}" for m, a in required]
        logger.warning(
            "permission_denied",
            extra={
                "user_id": str(user.id),
                "required_any": codes,
                "branch_id": str(branch_id) if branch_id else None,
            },
        )
        raise ForbiddenError(f"Missing permissions, need one of: {', '.join(codes)}")

    return _dep
