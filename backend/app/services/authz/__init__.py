"""
授权服务模块
"""
from app.services.authz.assignment_service import AssignmentService
from app.services.authz.audit_service import PermissionAuditService
from app.services.authz.branch_access_service import BranchAccessListing, BranchAccessService
from app.services.authz.catalog_service import RoleCatalogService
from app.services.authz.decision import (
    can_approve,
    can_create,
    can_delete,
    can_edit,
    can_export,
    can_view,
    has_any_permission,
    has_permission,
)
from app.services.authz.department_service import DepartmentService
from app.services.authz.grant_service import RoleGrantService
from app.services.authz.permission_snapshot_service import EffectivePermissionService
from app.services.authz.resolver import AssignmentResolver, ResolvedAssignments, resolve_assignments
from app.services.authz.seed import seed_reference_data
from app.services.authz.session_service import ActiveScopeSessionService, SessionState
from app.services.authz.snapshot import BranchAccessSet, PermissionSnapshot, build_snapshot

__all__ = [
    "ActiveScopeSessionService",
    "AssignmentResolver",
    "AssignmentService",
    "BranchAccessListing",
    "BranchAccessService",
    "BranchAccessSet",
    "DepartmentService",
    "EffectivePermissionService",
    "PermissionAuditService",
    "PermissionSnapshot",
    "ResolvedAssignments",
    "RoleCatalogService",
    "RoleGrantService",
    "SessionState",
    "build_snapshot",
    "can_approve",
    "can_create",
    "can_delete",
    "can_edit",
    "can_export",
    "can_view",
    "has_any_permission",
    "has_permission",
    "resolve_assignments",
    "seed_reference_data",
]
