from .base import Base
from .rbac import (
    Department,
    Permission,
    PermissionAuditLog,
    Role,
    RolePermission,
    UserBranchAccess,
    UserRoleAssignment,
)
from .user import Branch, User

__all__ = [
    "Base",
    "Branch",
    "Department",
    "Permission",
    "PermissionAuditLog",
    "Role",
    "RolePermission",
    "User",
    "UserBranchAccess",
    "UserRoleAssignment",
]
