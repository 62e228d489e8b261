from .auth import (
    get_current_active_user,
    get_current_user,
    get_permission_snapshot,
    require_any_permission,
    require_permission,
)

__all__ = [
    "get_current_user",
    "get_current_active_user",
    "get_permission_snapshot",
    "require_permission",
    "require_any_permission",
]
