"""
JWT 校验工具

令牌由上游认证服务签发（HS256，sub=用户 ID，type=access），本服务只负责解码校验。
create_access_token 供内部调用与测试签发同构令牌。
"""
import secrets
from datetime import timedelta
from typing import Any
from uuid import UUID

from jose import JWTError, jwt

from app.core.config import settings
from app.utils.time_utils import Datetime


def create_access_token(user_id: UUID, expires_minutes: int | None = None) -> str:
    """签发 access token"""
    expire = Datetime.now() + timedelta(minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        "sub": str(user_id),
        "jti": secrets.token_urlsafe(16),
        "type": "access",
        "exp": expire,
        "iat": Datetime.now(),
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict[str, Any]:
    """解码并验证 JWT token，返回 payload"""
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        raise ValueError(f"Invalid token: {e}") from e
