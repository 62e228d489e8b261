"""
会话作用域 API 路由 (/api/v1/session)

端点:
- GET /session - 打开会话（无当前分支时落到默认分支）
- PATCH /session/active-branch - 切换当前分支（须在访问登记内）
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.deps.auth import get_current_active_user
from app.models import User
from app.schemas.session import ActiveBranchUpdate, SessionRead
from app.services.authz import ActiveScopeSessionService, SessionState

router = APIRouter(prefix="/session", tags=["Session"])


def _to_read(user: User, state: SessionState) -> SessionRead:
    return SessionRead(
        user_id=user.id,
        username=user.username,
        full_name=user.full_name,
        active_branch_id=state.active_branch_id,
        default_branch_id=state.default_branch_id,
        allowed_branch_ids=state.allowed_branch_ids,
        unrestricted=state.unrestricted,
        primary_role=state.primary_role,
        is_admin=state.is_admin,
    )


@router.get("", response_model=SessionRead)
async def get_session(
    user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> SessionRead:
    service = ActiveScopeSessionService(db)
    return _to_read(user, await service.open_session(user))


@router.patch("/active-branch", response_model=SessionRead)
async def switch_active_branch(
    payload: ActiveBranchUpdate,
    user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> SessionRead:
    """
    切换当前分支

    - 403: 分支不在访问登记内
    - 404: 分支不存在或已停用
    """
    service = ActiveScopeSessionService(db)
    return _to_read(user, await service.switch_branch(user, payload.branch_id))
