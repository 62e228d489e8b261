"""
Admin API 路由包
"""
from app.api.v1.admin.audit_route import router as audit_router
from app.api.v1.admin.departments_route import router as departments_router
from app.api.v1.admin.roles_route import router as roles_router
from app.api.v1.admin.user_access_route import router as user_access_router

__all__ = [
    "audit_router",
    "departments_router",
    "roles_router",
    "user_access_router",
]
