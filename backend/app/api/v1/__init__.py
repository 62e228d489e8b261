"""
v1 路由聚合

api_routers 的顺序即 OpenAPI 文档中的分组顺序。
"""

from app.api.v1.admin import audit_router as admin_audit_router
from app.api.v1.admin import departments_router as admin_departments_router
from app.api.v1.admin import roles_router as admin_roles_router
from app.api.v1.admin import user_access_router as admin_user_access_router
from app.api.v1.permissions_route import router as permissions_router
from app.api.v1.session_route import router as session_router

api_routers = (
    permissions_router,
    session_router,
    admin_roles_router,
    admin_user_access_router,
    admin_departments_router,
    admin_audit_router,
)

__all__ = [
    "admin_audit_router",
    "admin_departments_router",
    "admin_roles_router",
    "admin_user_access_router",
    "api_routers",
    "permissions_router",
    "session_router",
]
