from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """
    用户（身份由外部认证服务维护，这里只保留授权判定需要的字段）
    """
    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True, comment="登录名")
    full_name: Mapped[str | None] = mapped_column(String(200), nullable=True, comment="展示名")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true", comment="是否启用")

    def __repr__(self) -> str:
        return f"<User(username={self.username})>"


class Branch(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """分支（门店/站点），业务数据由外部模块维护"""
    __tablename__ = "branches"

    name: Mapped[str] = mapped_column(String(200), nullable=False, comment="分支名称")
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, comment="分支编码")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true", comment="是否启用")

    def __repr__(self) -> str:
        return f"<Branch(code={self.code})>"
