"""
有效权限快照（EffectivePermissionSet）

快照是不可变值对象：由解析器 + 授权表计算得到，可 pickle 进缓存，
判定函数只读取快照，不做任何 I/O。
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from app.constants.permissions import (
    ADMIN_ROLE,
    AssignmentScope,
    GrantScope,
    ModuleAction,
    PermissionPair,
    SystemModule,
)
from app.utils.time_utils import Datetime


@dataclass(frozen=True)
class BranchAccessSet:
    """用户的分支访问登记；没有任何登记行表示不受分支限制"""

    branch_ids: frozenset[UUID] = frozenset()
    default_branch_id: UUID | None = None

    @property
    def unrestricted(self) -> bool:
        return not self.branch_ids

    def allows(self, branch_id: UUID) -> bool:
        return self.unrestricted or branch_id in self.branch_ids


@dataclass(frozen=True)
class GrantSource:
    """单个生效分配贡献的授权，构建快照的输入"""

    role_slug: str
    scope_type: AssignmentScope
    branch_id: UUID | None
    grants: tuple[tuple[SystemModule, ModuleAction, GrantScope], ...]


@dataclass(frozen=True)
class PermissionSnapshot:
    user_id: UUID
    role_slugs: frozenset[str] = frozenset()
    primary_role: str | None = None
    # 全局 / 部门作用域分配带来的授权，任何分支下都有效
    grants: frozenset[PermissionPair] = frozenset()
    # 分支作用域分配带来的授权，仅在对应分支下有效
    branch_grants: Mapping[UUID, frozenset[PermissionPair]] = field(default_factory=dict)
    scopes: Mapping[PermissionPair, GrantScope] = field(default_factory=dict)
    branch_access: BranchAccessSet = field(default_factory=BranchAccessSet)
    computed_at: datetime = field(default_factory=Datetime.now)

    @property
    def is_admin(self) -> bool:
        return ADMIN_ROLE in self.role_slugs

    @property
    def has_roles(self) -> bool:
        return bool(self.role_slugs)

    @property
    def all_grants(self) -> frozenset[PermissionPair]:
        """不区分分支的全量并集"""
        combined = set(self.grants)
        for pairs in self.branch_grants.values():
            combined |= pairs
        return frozenset(combined)

    def grants_for(self, branch_id: UUID | None = None) -> frozenset[PermissionPair]:
        if branch_id is None:
            return self.all_grants
        return self.grants | self.branch_grants.get(branch_id, frozenset())

    def scope_for(self, module: SystemModule, action: ModuleAction) -> GrantScope | None:
        """跨角色取最宽的授权范围；管理员恒为 global"""
        if self.is_admin:
            return GrantScope.GLOBAL
        return self.scopes.get((module, action))

    def sorted_pairs(self) -> list[PermissionPair]:
        module_order = {m: i for i, m in enumerate(SystemModule)}
        action_order = {a: i for i, a in enumerate(ModuleAction)}
        return sorted(self.all_grants, key=lambda p: (module_order[p[0]], action_order[p[1]]))


def build_snapshot(
    user_id: UUID,
    sources: Iterable[GrantSource],
    primary_role: str | None,
    branch_access: BranchAccessSet,
) -> PermissionSnapshot:
    """把各生效分配的授权合并为快照（并集语义）"""
    role_slugs: set[str] = set()
    unscoped: set[PermissionPair] = set()
    per_branch: dict[UUID, set[PermissionPair]] = {}
    scopes: dict[PermissionPair, GrantScope] = {}

    for source in sources:
        role_slugs.add(source.role_slug)
        if source.scope_type is AssignmentScope.BRANCH and source.branch_id is not None:
            bucket = per_branch.setdefault(source.branch_id, set())
        else:
            bucket = unscoped
        for module, action, scope in source.grants:
            pair = (module, action)
            bucket.add(pair)
            current = scopes.get(pair)
            if current is None or scope.breadth > current.breadth:
                scopes[pair] = scope

    return PermissionSnapshot(
        user_id=user_id,
        role_slugs=frozenset(role_slugs),
        primary_role=primary_role,
        grants=frozenset(unscoped),
        branch_grants={bid: frozenset(pairs) for bid, pairs in per_branch.items()},
        scopes=scopes,
        branch_access=branch_access,
    )
