"""
权限注册表（单一真源）

模块与动作是封闭枚举，新增功能模块时仅需在此处维护，迁移/种子数据/前端权限清单都从这里导出。
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SystemModule(str, Enum):
    DASHBOARD = "dashboard"
    INVENTORY = "inventory"
    ASSET_TRANSFERS = "asset_transfers"
    CONSTRUCTION_PROJECTS = "construction_projects"
    CONSTRUCTION_WORK_ITEMS = "construction_work_items"
    CONTRACTORS = "contractors"
    CONTRACTS = "contracts"
    BUDGET_PLANNING = "budget_planning"
    PAYMENT_REQUESTS = "payment_requests"
    USERS = "users"
    REPORTS = "reports"
    OPERATIONS = "operations"
    PRODUCTION = "production"
    SHIFTS = "shifts"
    QUALITY_CONTROL = "quality_control"
    CASHIER_JOURNAL = "cashier_journal"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


class ModuleAction(str, Enum):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    APPROVE = "approve"
    EXPORT = "export"

    @property
    def label(self) -> str:
        return self.value.title()


class GrantScope(str, Enum):
    """角色授权的作用范围；判定只看有无，范围交给持有数据的模块收窄结果集"""

    OWN = "own"
    BRANCH = "branch"
    GLOBAL = "global"

    @property
    def breadth(self) -> int:
        return _SCOPE_BREADTH[self]


_SCOPE_BREADTH = {GrantScope.OWN: 0, GrantScope.BRANCH: 1, GrantScope.GLOBAL: 2}


class AssignmentScope(str, Enum):
    GLOBAL = "global"
    BRANCH = "branch"
    DEPARTMENT = "department"


PermissionPair = tuple[SystemModule, ModuleAction]


def parse_module(value: str | SystemModule | None) -> SystemModule | None:
    """未知模块返回 None，由调用方按拒绝处理"""
    if isinstance(value, SystemModule):
        return value
    try:
        return SystemModule(value)
    except ValueError:
        return None


def parse_action(value: str | ModuleAction | None) -> ModuleAction | None:
    if isinstance(value, ModuleAction):
        return value
    try:
        return ModuleAction(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class PermissionItem:
    module: SystemModule
    action: ModuleAction
    is_default: bool = False

    @property
    def name(self) -> str:
        return f"{self.module.label} - {self.action.label}"

    @property
    def code(self) -> str:
        return f"{self.module.value}.{self.action.value}"


# 新建角色自动获得的权限
DEFAULT_PERMISSIONS: frozenset[PermissionPair] = frozenset({(SystemModule.DASHBOARD, ModuleAction.VIEW)})

PERMISSION_REGISTRY: list[PermissionItem] = [
    PermissionItem(module, action, (module, action) in DEFAULT_PERMISSIONS)
    for module in SystemModule
    for action in ModuleAction
]


# ===== 系统角色 =====

ADMIN_ROLE = "admin"
VIEWER_ROLE = "viewer"


@dataclass(frozen=True)
class SystemRole:
    slug: str
    name: str
    hierarchy_level: int
    description: str


SYSTEM_ROLES: tuple[SystemRole, ...] = (
    SystemRole(ADMIN_ROLE, "Administrator", 0, "系统管理员，绕过权限查找直接放行"),
    SystemRole("branch_manager", "Branch Manager", 1, "分支经理，负责单个分支的运营"),
    SystemRole("dept_head", "Department Head", 2, "部门负责人"),
    SystemRole("supervisor", "Supervisor", 3, "班组主管"),
    SystemRole("employee", "Employee", 4, "普通员工"),
    SystemRole(VIEWER_ROLE, "Viewer", 5, "只读用户，任何授权都只放行 view"),
)

SYSTEM_ROLE_SLUGS: frozenset[str] = frozenset(r.slug for r in SYSTEM_ROLES)


# ===== 角色权限模板 =====

def _expand(spec: dict[SystemModule, tuple[ModuleAction, ...]]) -> frozenset[PermissionPair]:
    return frozenset((module, action) for module, actions in spec.items() for action in actions)


_V, _C, _E, _D, _A, _X = (
    ModuleAction.VIEW,
    ModuleAction.CREATE,
    ModuleAction.EDIT,
    ModuleAction.DELETE,
    ModuleAction.APPROVE,
    ModuleAction.EXPORT,
)

ROLE_PERMISSION_TEMPLATES: dict[str, frozenset[PermissionPair]] = {
    "admin": frozenset((p.module, p.action) for p in PERMISSION_REGISTRY),
    "employee": _expand({
        SystemModule.DASHBOARD: (_V, _X),
        SystemModule.INVENTORY: (_V, _C, _E, _X),
        SystemModule.ASSET_TRANSFERS: (_V, _C, _E, _X),
        SystemModule.CONSTRUCTION_PROJECTS: (_V, _C, _E, _X),
        SystemModule.CONSTRUCTION_WORK_ITEMS: (_V, _C, _E, _X),
        SystemModule.CONTRACTORS: (_V, _C, _E, _X),
        SystemModule.CONTRACTS: (_V, _C, _E, _X),
        SystemModule.BUDGET_PLANNING: (_V, _C, _E, _X),
        SystemModule.PAYMENT_REQUESTS: (_V, _C, _E, _X),
        SystemModule.REPORTS: (_V, _X),
    }),
    "viewer": frozenset(
        (module, _V) for module in SystemModule if module is not SystemModule.USERS
    ),
    "branch_manager": _expand({
        SystemModule.DASHBOARD: (_V, _X),
        SystemModule.OPERATIONS: (_V, _C, _E, _D),
        SystemModule.PRODUCTION: (_V, _C, _E),
        SystemModule.SHIFTS: (_V, _C, _E, _D),
        SystemModule.QUALITY_CONTROL: (_V, _C, _E),
        SystemModule.CASHIER_JOURNAL: (_V, _C, _E, _A),
        SystemModule.INVENTORY: (_V, _C, _E),
        SystemModule.ASSET_TRANSFERS: (_V, _C, _E),
        SystemModule.REPORTS: (_V, _X),
    }),
    "supervisor": _expand({
        SystemModule.DASHBOARD: (_V, _X),
        SystemModule.OPERATIONS: (_V, _C, _E),
        SystemModule.PRODUCTION: (_V,),
        SystemModule.SHIFTS: (_V, _C, _E),
        SystemModule.QUALITY_CONTROL: (_V,),
        SystemModule.CASHIER_JOURNAL: (_V, _A),
        SystemModule.INVENTORY: (_V,),
    }),
}

# 系统角色初始化时套用的模板；dept_head 沿用 supervisor 的权限面
SYSTEM_ROLE_TEMPLATES: dict[str, str] = {
    "admin": "admin",
    "branch_manager": "branch_manager",
    "dept_head": "supervisor",
    "supervisor": "supervisor",
    "employee": "employee",
    "viewer": "viewer",
}
