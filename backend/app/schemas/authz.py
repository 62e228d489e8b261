"""
授权相关 Pydantic Schema：权限目录、角色、授权、分配、分支访问、审计
"""
from datetime import date, datetime
from uuid import UUID

from pydantic import Field

from app.constants.permissions import AssignmentScope, GrantScope, ModuleAction, SystemModule
from app.schemas.base import BaseSchema, IDSchema, TimestampSchema


# ===== 权限目录 =====

class PermissionRead(IDSchema):
    module: SystemModule
    action: ModuleAction
    name: str
    description: str | None = None
    is_default: bool


class PermissionPairRead(BaseSchema):
    module: SystemModule
    action: ModuleAction
    scope: GrantScope | None = Field(None, description="跨角色最宽的授权范围")


class ModulePermissionsRead(BaseSchema):
    module: SystemModule
    actions: list[ModuleAction]


class MyPermissionsResponse(BaseSchema):
    """当前用户的有效权限（前端整会话缓存，逐项调用 can_xxx 判定）"""
    user_id: UUID
    primary_role: str | None = None
    roles: list[str] = Field(default_factory=list)
    is_admin: bool = False
    permissions: list[PermissionPairRead] = Field(default_factory=list)
    modules: list[ModulePermissionsRead] = Field(default_factory=list)
    allowed_branch_ids: list[UUID] = Field(default_factory=list)
    unrestricted: bool = Field(..., description="无分支访问登记，可访问全部分支")
    active_branch_id: UUID | None = None


class PermissionCheckResponse(BaseSchema):
    module: str
    action: str
    branch_id: UUID | None = None
    allowed: bool


# ===== 角色 =====

class RoleCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=100, description="角色名")
    slug: str = Field(..., min_length=1, max_length=50, description="机器标识，小写字母开头")
    hierarchy_level: int = Field(..., ge=0, le=100, description="层级，0 保留给管理员")
    description: str | None = Field(None, description="描述")


class RoleUpdate(BaseSchema):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = None
    hierarchy_level: int | None = Field(None, ge=0, le=100)


class RoleRead(IDSchema, TimestampSchema):
    name: str
    slug: str
    hierarchy_level: int
    description: str | None = None
    is_system_default: bool


class GrantCreate(BaseSchema):
    permission_id: UUID
    scope: GrantScope = GrantScope.GLOBAL


class GrantRead(IDSchema):
    role_id: UUID
    permission_id: UUID
    scope: GrantScope
    permission: PermissionRead


class TemplateApply(BaseSchema):
    template: str = Field(..., min_length=1, max_length=50, description="模板名")


# ===== 部门 =====

class DepartmentCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=200)
    code: str = Field(..., min_length=1, max_length=50)
    description: str | None = None


class DepartmentUpdate(BaseSchema):
    name: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = None
    is_active: bool | None = None


class DepartmentRead(IDSchema, TimestampSchema):
    name: str
    code: str
    description: str | None = None
    is_active: bool


# ===== 分配 =====

class AssignmentCreate(BaseSchema):
    role_id: UUID
    scope_type: AssignmentScope = AssignmentScope.GLOBAL
    branch_id: UUID | None = None
    department_id: UUID | None = None
    is_primary: bool | None = Field(None, description="缺省时：用户尚无主分配则设为主")
    start_date: date | None = None
    end_date: date | None = None


class AssignmentUpdate(BaseSchema):
    is_active: bool | None = None
    is_primary: bool | None = None
    end_date: date | None = None


class AssignmentRoleRead(BaseSchema):
    id: UUID
    slug: str
    name: str
    hierarchy_level: int


class AssignmentRead(IDSchema, TimestampSchema):
    user_id: UUID
    role_id: UUID
    role: AssignmentRoleRead
    scope_type: AssignmentScope
    branch_id: UUID | None = None
    department_id: UUID | None = None
    is_primary: bool
    is_active: bool
    start_date: date | None = None
    end_date: date | None = None


# ===== 分支访问 =====

class BranchAccessCreate(BaseSchema):
    branch_id: UUID
    access_level: str = Field("full", min_length=1, max_length=20)
    is_default: bool = False


class BranchRead(IDSchema):
    name: str
    code: str
    is_active: bool


class BranchAccessRead(IDSchema):
    user_id: UUID
    branch_id: UUID
    access_level: str
    is_default: bool
    branch: BranchRead


class BranchAccessListResponse(BaseSchema):
    items: list[BranchAccessRead]
    unrestricted: bool
    default_branch_id: UUID | None = None


# ===== 审计 =====

class AuditLogRead(IDSchema):
    changed_by_user_id: UUID | None = None
    target_user_id: UUID | None = None
    role_id: UUID | None = None
    action: str
    module: str | None = None
    old_value: dict | list | None = None
    new_value: dict | list | None = None
    template_applied: str | None = None
    created_at: datetime
