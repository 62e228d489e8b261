from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """
    基础 Schema
    - from_attributes=True: 允许直接从 ORM 对象构造响应
    - extra="ignore": 请求体多余字段忽略
    """
    model_config = ConfigDict(from_attributes=True, strict=False, populate_by_name=True, extra="ignore")


class IDSchema(BaseSchema):
    id: UUID


class TimestampSchema(BaseSchema):
    created_at: datetime
    updated_at: datetime


class MessageResponse(BaseSchema):
    message: str
