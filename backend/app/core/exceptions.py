"""
授权域异常

所有异常都继承 HTTPException，服务层直接抛出即可由 FastAPI 渲染为 {"detail": ...}：
- ValidationError: 输入不合法（重复 slug、作用域字段缺失等） -> 400
- NotFoundError: 引用的角色/权限/用户/分支不存在 -> 404
- ConflictError: 操作会破坏不变量（移除唯一默认分支、删除被引用角色等） -> 409
- ForbiddenError: 调用方无权执行，或切换到不在允许集合内的分支 -> 403
- CacheUnavailableError: 快照失效或当前分支写入 Redis 失败 -> 503

注意：授权判定本身（has_permission）永不抛异常，未知输入一律返回 False。
"""
from fastapi import HTTPException, status


class AuthzError(HTTPException):
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str, status_code: int | None = None):
        super().__init__(status_code=status_code or self.status_code, detail=detail)


class ValidationError(AuthzError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(AuthzError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AuthzError):
    status_code = status.HTTP_409_CONFLICT


class ForbiddenError(AuthzError):
    status_code = status.HTTP_403_FORBIDDEN


class CacheUnavailableError(AuthzError):
    """授权缓存写入失败：变更无法保证立即生效，不能向调用方报告成功"""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
