from .assignment_repository import AssignmentRepository
from .audit_repository import PermissionAuditRepository
from .base import BaseRepository
from .branch_access_repository import BranchAccessRepository
from .department_repository import DepartmentRepository
from .role_repository import PermissionRepository, RolePermissionRepository, RoleRepository
from .user_repository import BranchRepository, UserRepository

__all__ = [
    "AssignmentRepository",
    "BaseRepository",
    "BranchAccessRepository",
    "BranchRepository",
    "DepartmentRepository",
    "PermissionAuditRepository",
    "PermissionRepository",
    "RolePermissionRepository",
    "RoleRepository",
    "UserRepository",
]
