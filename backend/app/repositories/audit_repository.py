"""
PermissionAuditRepository: 授权变更审计

写入不单独提交，随所在业务事务一起落库，保证"变更成功 <=> 有审计记录"。
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import Select, select

from app.models import PermissionAuditLog

from .base import BaseRepository


class PermissionAuditRepository(BaseRepository[PermissionAuditLog]):
    model = PermissionAuditLog

    async def record(
        self,
        *,
        action: str,
        changed_by_user_id: UUID | None = None,
        target_user_id: UUID | None = None,
        role_id: UUID | None = None,
        module: str | None = None,
        old_value: Any = None,
        new_value: Any = None,
        template_applied: str | None = None,
    ) -> PermissionAuditLog:
        entry = PermissionAuditLog(
            action=action,
            changed_by_user_id=changed_by_user_id,
            target_user_id=target_user_id,
            role_id=role_id,
            module=module,
            old_value=old_value,
            new_value=new_value,
            template_applied=template_applied,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    def build_query(
        self,
        *,
        target_user_id: UUID | None = None,
        role_id: UUID | None = None,
    ) -> Select:
        stmt = select(PermissionAuditLog).order_by(
            PermissionAuditLog.created_at.desc(), PermissionAuditLog.id.desc()
        )
        if target_user_id is not None:
            stmt = stmt.where(PermissionAuditLog.target_user_id == target_user_id)
        if role_id is not None:
            stmt = stmt.where(PermissionAuditLog.role_id == role_id)
        return stmt
