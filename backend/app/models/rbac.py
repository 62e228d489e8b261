import uuid
from datetime import date

from sqlalchemy import UUID as SA_UUID
from sqlalchemy import JSON, Boolean, Date, ForeignKey, Index, Integer, String, Text, UniqueConstraint, text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.constants.permissions import AssignmentScope, GrantScope, ModuleAction, SystemModule
from app.utils.time_utils import Datetime

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from .user import Branch


def _enum_column(enum_cls: type, length: int) -> SAEnum:
    # 存储枚举值而非成员名，便于迁移与原生 SQL 直接比较
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [m.value for m in members],
    )


class Department(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "departments"

    name: Mapped[str] = mapped_column(String(200), nullable=False, comment="部门名称")
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, comment="部门编码")
    description: Mapped[str | None] = mapped_column(Text, nullable=True, comment="描述")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true", comment="是否启用")

    def __repr__(self) -> str:
        return f"<Department(code={self.code})>"


class Role(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(String(100), nullable=False, comment="角色名")
    slug: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True, comment="机器标识")
    hierarchy_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0", comment="层级，0 为最高权限")
    description: Mapped[str | None] = mapped_column(Text, nullable=True, comment="描述")
    is_system_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false", comment="系统内置角色，不可删除")

    def __repr__(self) -> str:
        return f"<Role(slug={self.slug})>"


class Permission(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "permissions"
    __table_args__ = (
        UniqueConstraint("module", "action", name="uq_permissions_module_action"),
    )

    module: Mapped[SystemModule] = mapped_column(_enum_column(SystemModule, 40), nullable=False, comment="功能模块")
    action: Mapped[ModuleAction] = mapped_column(_enum_column(ModuleAction, 20), nullable=False, comment="动作")
    name: Mapped[str] = mapped_column(String(120), nullable=False, comment="展示名")
    description: Mapped[str | None] = mapped_column(Text, nullable=True, comment="描述")
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false", comment="新建角色自动授予")

    def __repr__(self) -> str:
        return f"<Permission({self.module.value}.{self.action.value})>"


class RolePermission(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "role_permissions"
    __table_args__ = (
        UniqueConstraint("role_id", "permission_id", name="uq_role_permissions_role_permission"),
    )

    role_id: Mapped[uuid.UUID] = mapped_column(SA_UUID(as_uuid=True), ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    permission_id: Mapped[uuid.UUID] = mapped_column(SA_UUID(as_uuid=True), ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False)
    scope: Mapped[GrantScope] = mapped_column(
        _enum_column(GrantScope, 20),
        nullable=False,
        default=GrantScope.GLOBAL,
        server_default=GrantScope.GLOBAL.value,
        comment="授权范围 own/branch/global",
    )

    permission: Mapped[Permission] = relationship("Permission", lazy="joined")


class UserRoleAssignment(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "user_role_assignments"
    __table_args__ = (
        Index("ix_user_role_assignments_user_active", "user_id", "is_active"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(SA_UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role_id: Mapped[uuid.UUID] = mapped_column(SA_UUID(as_uuid=True), ForeignKey("roles.id", ondelete="RESTRICT"), nullable=False, index=True)
    scope_type: Mapped[AssignmentScope] = mapped_column(
        _enum_column(AssignmentScope, 20),
        nullable=False,
        default=AssignmentScope.GLOBAL,
        server_default=AssignmentScope.GLOBAL.value,
        comment="作用域 global/branch/department",
    )
    branch_id: Mapped[uuid.UUID | None] = mapped_column(SA_UUID(as_uuid=True), ForeignKey("branches.id", ondelete="CASCADE"), nullable=True)
    department_id: Mapped[uuid.UUID | None] = mapped_column(SA_UUID(as_uuid=True), ForeignKey("departments.id", ondelete="CASCADE"), nullable=True)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true", comment="主分配")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true", comment="是否生效")
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True, comment="生效日期（含）")
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True, comment="失效日期（含）")

    role: Mapped[Role] = relationship("Role", lazy="joined")

    def is_effective(self, as_of: date) -> bool:
        """is_active 且 as_of 落在有效期内（缺省边界视为开放）"""
        return self.is_active and Datetime.in_window(as_of, self.start_date, self.end_date)


class UserBranchAccess(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "user_branch_access"
    __table_args__ = (
        UniqueConstraint("user_id", "branch_id", name="uq_user_branch_access_user_branch"),
        # 每个用户最多一个默认分支
        Index(
            "uq_user_branch_access_default",
            "user_id",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default = 1"),
        ),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(SA_UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    branch_id: Mapped[uuid.UUID] = mapped_column(SA_UUID(as_uuid=True), ForeignKey("branches.id", ondelete="CASCADE"), nullable=False)
    access_level: Mapped[str] = mapped_column(String(20), nullable=False, default="full", server_default="full", comment="访问级别")
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false", comment="默认分支")

    branch: Mapped[Branch] = relationship("Branch", lazy="joined")


class PermissionAuditLog(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """授权变更审计"""
    __tablename__ = "permission_audit_logs"
    __table_args__ = (
        Index("ix_permission_audit_logs_target_user", "target_user_id"),
        Index("ix_permission_audit_logs_role", "role_id"),
    )

    changed_by_user_id: Mapped[uuid.UUID | None] = mapped_column(SA_UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    target_user_id: Mapped[uuid.UUID | None] = mapped_column(SA_UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    role_id: Mapped[uuid.UUID | None] = mapped_column(SA_UUID(as_uuid=True), ForeignKey("roles.id", ondelete="SET NULL"), nullable=True)
    action: Mapped[str] = mapped_column(String(40), nullable=False, comment="grant/revoke/apply_template/assign/unassign/...")
    module: Mapped[str | None] = mapped_column(String(40), nullable=True, comment="涉及的功能模块")
    old_value: Mapped[dict | list | None] = mapped_column(JSON, nullable=True)
    new_value: Mapped[dict | list | None] = mapped_column(JSON, nullable=True)
    template_applied: Mapped[str | None] = mapped_column(String(50), nullable=True)
