import uuid
from datetime import datetime

from sqlalchemy import UUID as SA_UUID
from sqlalchemy import DateTime, MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from app.utils.time_utils import Datetime


class Base(DeclarativeBase):
    # 约束命名与 migrations/versions 中手写的名称保持一致
    metadata = MetaData(
        naming_convention={
            "ix": "ix_%(column_0_label)s",
            "uq": "uq_%(table_name)s_%(column_0_name)s",
            "ck": "ck_%(table_name)s_%(constraint_name)s",
            "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
            "pk": "pk_%(table_name)s",
        }
    )


class UUIDPrimaryKeyMixin:
    id: Mapped[uuid.UUID] = mapped_column(SA_UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, comment="主键 ID")


class TimestampMixin:
    """
    created_at 同时是多主分配排序的次级键，写入时统一取 UTC
    """
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=Datetime.now, nullable=False, comment="创建时间"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=Datetime.now, onupdate=Datetime.now, nullable=False, comment="更新时间"
    )
