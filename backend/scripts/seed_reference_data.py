"""
初始化授权参考数据：权限目录、系统角色及其模板授权（可重复执行）

用法:
    python scripts/seed_reference_data.py
    python scripts/seed_reference_data.py --admin-username root --admin-name "System Admin"

指定 --admin-username 时会确保该用户存在并持有全局 admin 主分配。
"""
import argparse
import asyncio
import os
import sys

# 将 backend 目录添加到 sys.path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.constants.permissions import ADMIN_ROLE, AssignmentScope  # noqa: E402
from app.core.database import AsyncSessionLocal  # noqa: E402
from app.core.logging import logger, setup_logging  # noqa: E402
from app.models import User  # noqa: E402
from app.repositories import AssignmentRepository, RoleRepository, UserRepository  # noqa: E402
from app.services.authz import AssignmentService, seed_reference_data  # noqa: E402


async def ensure_admin(session, username: str, full_name: str | None) -> None:
    user_repo = UserRepository(session)
    user = await user_repo.get_by_username(username)
    if not user:
        user = await user_repo.create({"username": username, "full_name": full_name, "is_active": True})
        logger.info("admin_user_created", extra={"username": username})

    admin_role = await RoleRepository(session).get_by_slug(ADMIN_ROLE)
    assignments = await AssignmentRepository(session).list_for_user(user.id)
    if any(a.role_id == admin_role.id and a.is_active for a in assignments):
        return
    await AssignmentService(session).add_assignment(
        user.id,
        role_id=admin_role.id,
        scope_type=AssignmentScope.GLOBAL,
        is_primary=True,
    )


async def main(admin_username: str | None, admin_name: str | None) -> None:
    async with AsyncSessionLocal() as session:
        summary = await seed_reference_data(session)
        print(f"permissions created: {summary['permissions']}, roles created: {summary['roles']}")
        if admin_username:
            await ensure_admin(session, admin_username, admin_name)
            print(f"admin assignment ensured for '{admin_username}'")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed authorization reference data")
    parser.add_argument("--admin-username", default=None, help="确保该用户持有全局 admin 角色")
    parser.add_argument("--admin-name", default=None, help="新建管理员用户时的展示名")
    args = parser.parse_args()

    setup_logging()
    asyncio.run(main(args.admin_username, args.admin_name))
