"""
授权审计查询
"""
from uuid import UUID

from fastapi_pagination import Page, Params
from fastapi_pagination.ext.sqlalchemy import apaginate
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import PermissionAuditLog
from app.repositories import PermissionAuditRepository
from app.schemas.authz import AuditLogRead


class PermissionAuditService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit_repo = PermissionAuditRepository(db)

    async def list_logs(
        self,
        *,
        params: Params,
        target_user_id: UUID | None = None,
        role_id: UUID | None = None,
    ) -> Page[AuditLogRead]:
        stmt = self.audit_repo.build_query(target_user_id=target_user_id, role_id=role_id)

        def _transform(rows: list[PermissionAuditLog]) -> list[AuditLogRead]:
            return [AuditLogRead.model_validate(row) for row in rows]

        return await apaginate(self.db, stmt, params=params, transformer=_transform)
