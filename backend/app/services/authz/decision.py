"""
授权判定引擎

纯函数：输入显式传入的快照，输出 bool。不读全局状态、不做 I/O、不抛异常。

判定顺序：
1. 角色集合含 admin -> 放行（硬绕过，不查授权表）
2. 指定了分支且用户受限、该分支不在访问登记内 -> 拒绝
3. 主角色为 viewer -> 仅 action=view 且授权中存在 (module, view) 时放行
4. 其余 -> (module, action) 在生效授权并集中即放行
未知模块/动作、无快照、无分配一律拒绝（fail-closed）。
"""
from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from app.constants.permissions import (
    VIEWER_ROLE,
    ModuleAction,
    SystemModule,
    parse_action,
    parse_module,
)

from .snapshot import PermissionSnapshot

ModuleLike = SystemModule | str
ActionLike = ModuleAction | str


def _coerce_branch(branch_id: UUID | str | None) -> tuple[bool, UUID | None]:
    if branch_id is None or isinstance(branch_id, UUID):
        return True, branch_id
    try:
        return True, UUID(str(branch_id))
    except ValueError:
        return False, None


def has_permission(
    snapshot: PermissionSnapshot | None,
    module: ModuleLike,
    action: ActionLike,
    branch_id: UUID | str | None = None,
) -> bool:
    if snapshot is None:
        return False
    parsed_module = parse_module(module)
    parsed_action = parse_action(action)
    if parsed_module is None or parsed_action is None:
        return False

    if snapshot.is_admin:
        return True

    ok, branch = _coerce_branch(branch_id)
    if not ok:
        return False
    if branch is not None and not snapshot.branch_access.allows(branch):
        return False

    grants = snapshot.grants_for(branch)
    if snapshot.primary_role == VIEWER_ROLE:
        return parsed_action is ModuleAction.VIEW and (parsed_module, ModuleAction.VIEW) in grants
    return (parsed_module, parsed_action) in grants


def has_any_permission(
    snapshot: PermissionSnapshot | None,
    pairs: Iterable[tuple[ModuleLike, ActionLike]],
    branch_id: UUID | str | None = None,
) -> bool:
    return any(has_permission(snapshot, m, a, branch_id) for m, a in pairs)


def can_view(snapshot: PermissionSnapshot | None, module: ModuleLike, branch_id: UUID | str | None = None) -> bool:
    return has_permission(snapshot, module, ModuleAction.VIEW, branch_id)


def can_create(snapshot: PermissionSnapshot | None, module: ModuleLike, branch_id: UUID | str | None = None) -> bool:
    return has_permission(snapshot, module, ModuleAction.CREATE, branch_id)


def can_edit(snapshot: PermissionSnapshot | None, module: ModuleLike, branch_id: UUID | str | None = None) -> bool:
    return has_permission(snapshot, module, ModuleAction.EDIT, branch_id)


def can_delete(snapshot: PermissionSnapshot | None, module: ModuleLike, branch_id: UUID | str | None = None) -> bool:
    return has_permission(snapshot, module, ModuleAction.DELETE, branch_id)


def can_approve(snapshot: PermissionSnapshot | None, module: ModuleLike, branch_id: UUID | str | None = None) -> bool:
    return has_permission(snapshot, module, ModuleAction.APPROVE, branch_id)


def can_export(snapshot: PermissionSnapshot | None, module: ModuleLike, branch_id: UUID | str | None = None) -> bool:
    return has_permission(snapshot, module, ModuleAction.EXPORT, branch_id)
