"""
角色授权测试：幂等、审计、模板、快照失效
"""
import pytest
from redis.exceptions import RedisError
from sqlalchemy import func, select

from app.constants.permissions import (
    ROLE_PERMISSION_TEMPLATES,
    AssignmentScope,
    GrantScope,
    ModuleAction,
    SystemModule,
)
from app.core.exceptions import CacheUnavailableError, NotFoundError, ValidationError
from app.models import PermissionAuditLog
from app.repositories import PermissionRepository, RoleRepository
from app.services.authz import (
    AssignmentService,
    EffectivePermissionService,
    RoleCatalogService,
    RoleGrantService,
    can_edit,
    can_view,
)


async def _permission(db, module, action):
    return await PermissionRepository(db).get_by_pair(module, action)


async def _audit_count(db, action: str) -> int:
    stmt = select(func.count()).select_from(PermissionAuditLog).where(PermissionAuditLog.action == action)
    return (await db.execute(stmt)).scalar_one()


@pytest.mark.asyncio
async def test_grant_is_idempotent(db_session):
    role = await RoleCatalogService(db_session).create_role(name="Auditor", slug="auditor", hierarchy_level=3)
    permission = await _permission(db_session, SystemModule.REPORTS, ModuleAction.EXPORT)
    service = RoleGrantService(db_session)

    first = await service.grant(role.id, permission.id, GrantScope.BRANCH)
    second = await service.grant(role.id, permission.id, GrantScope.GLOBAL)

    assert first.id == second.id
    # 已存在时不改动
    assert second.scope is GrantScope.BRANCH
    grants = await service.list_grants(role.id)
    assert sum(1 for g in grants if g.permission_id == permission.id) == 1
    assert await _audit_count(db_session, "grant") == 1


@pytest.mark.asyncio
async def test_revoke_absent_grant_is_noop(db_session):
    role = await RoleCatalogService(db_session).create_role(name="Auditor", slug="auditor", hierarchy_level=3)
    permission = await _permission(db_session, SystemModule.REPORTS, ModuleAction.EXPORT)
    service = RoleGrantService(db_session)

    assert await service.revoke(role.id, permission.id) is False

    await service.grant(role.id, permission.id)
    assert await service.revoke(role.id, permission.id) is True
    assert await service.revoke(role.id, permission.id) is False
    assert await _audit_count(db_session, "revoke") == 1


@pytest.mark.asyncio
async def test_grant_validates_inputs(db_session):
    role = await RoleCatalogService(db_session).create_role(name="Auditor", slug="auditor", hierarchy_level=3)
    permission = await _permission(db_session, SystemModule.REPORTS, ModuleAction.VIEW)
    service = RoleGrantService(db_session)

    with pytest.raises(ValidationError):
        await service.grant(role.id, permission.id, "department")
    with pytest.raises(NotFoundError):
        await service.grant(role.id, role.id)
    with pytest.raises(NotFoundError):
        await service.grant(permission.id, permission.id)


@pytest.mark.asyncio
async def test_grant_invalidates_holders_before_returning(db_session, make_user):
    role = await RoleCatalogService(db_session).create_role(name="Auditor", slug="auditor", hierarchy_level=3)
    user = await make_user()
    await AssignmentService(db_session).add_assignment(user.id, role_id=role.id, scope_type=AssignmentScope.GLOBAL)

    snapshots = EffectivePermissionService(db_session)
    before = await snapshots.get_snapshot(user.id)
    assert can_edit(before, SystemModule.CONTRACTS) is False

    permission = await _permission(db_session, SystemModule.CONTRACTS, ModuleAction.EDIT)
    await RoleGrantService(db_session).grant(role.id, permission.id)
    assert can_edit(await snapshots.get_snapshot(user.id), SystemModule.CONTRACTS) is True

    await RoleGrantService(db_session).revoke(role.id, permission.id)
    assert can_edit(await snapshots.get_snapshot(user.id), SystemModule.CONTRACTS) is False


@pytest.mark.asyncio
async def test_apply_template_replaces_grant_set(db_session, make_user):
    role = await RoleCatalogService(db_session).create_role(name="Night Shift", slug="night_shift", hierarchy_level=3)
    service = RoleGrantService(db_session)

    grants = await service.apply_template(role.id, "supervisor")

    pairs = {(g.permission.module, g.permission.action) for g in grants}
    assert pairs == ROLE_PERMISSION_TEMPLATES["supervisor"]

    logs = (
        await db_session.execute(select(PermissionAuditLog).where(PermissionAuditLog.action == "apply_template"))
    ).scalars().all()
    assert len(logs) == 1
    assert logs[0].template_applied == "supervisor"
    assert logs[0].old_value == ["dashboard.view"]

    grants = await service.apply_template(role.id, "viewer")
    assert {(g.permission.module, g.permission.action) for g in grants} == ROLE_PERMISSION_TEMPLATES["viewer"]


@pytest.mark.asyncio
async def test_apply_unknown_template(db_session):
    viewer = await RoleRepository(db_session).get_by_slug("viewer")
    with pytest.raises(ValidationError):
        await RoleGrantService(db_session).apply_template(viewer.id, "superuser")


@pytest.mark.asyncio
async def test_system_role_templates_seeded(db_session, make_user):
    user = await make_user()
    employee = await RoleRepository(db_session).get_by_slug("employee")
    await AssignmentService(db_session).add_assignment(user.id, role_id=employee.id)

    snapshot = await EffectivePermissionService(db_session).get_snapshot(user.id)
    assert can_edit(snapshot, SystemModule.INVENTORY) is True
    assert can_view(snapshot, SystemModule.USERS) is False
    assert snapshot.primary_role == "employee"


@pytest.mark.asyncio
async def test_revoke_rolls_back_when_invalidation_fails(db_session, make_user, dummy_redis, monkeypatch):
    role = await RoleCatalogService(db_session).create_role(name="Stock Keeper", slug="stock_keeper", hierarchy_level=3)
    permission = await _permission(db_session, SystemModule.INVENTORY, ModuleAction.EDIT)
    service = RoleGrantService(db_session)
    await service.grant(role.id, permission.id)
    user = await make_user()
    await AssignmentService(db_session).add_assignment(user.id, role_id=role.id)
    snapshots = EffectivePermissionService(db_session)
    assert can_edit(await snapshots.get_snapshot(user.id), SystemModule.INVENTORY) is True

    async def _redis_down(*args, **kwargs):
        raise RedisError("connection refused")

    monkeypatch.setattr(dummy_redis, "incr", _redis_down)

    with pytest.raises(CacheUnavailableError) as exc_info:
        await service.revoke(role.id, permission.id)
    assert exc_info.value.status_code == 503

    # 未报告成功的撤销不落库，缓存中的快照仍与数据库一致
    grants = await service.list_grants(role.id)
    assert any(g.permission_id == permission.id for g in grants)
    assert await _audit_count(db_session, "revoke") == 0

    monkeypatch.undo()
    assert await service.revoke(role.id, permission.id) is True
    assert can_edit(await snapshots.get_snapshot(user.id), SystemModule.INVENTORY) is False
