"""
权限目录与角色存储测试
"""
import pytest
from sqlalchemy import select

from app.constants.permissions import (
    PERMISSION_REGISTRY,
    SYSTEM_ROLES,
    AssignmentScope,
    ModuleAction,
    SystemModule,
)
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import PermissionAuditLog
from app.repositories import RoleRepository
from app.services.authz import AssignmentService, RoleCatalogService, RoleGrantService, seed_reference_data


@pytest.mark.asyncio
async def test_catalog_is_full_cross_product(db_session):
    service = RoleCatalogService(db_session)
    permissions = await service.list_permissions()

    assert len(permissions) == len(SystemModule) * len(ModuleAction) == len(PERMISSION_REGISTRY)
    defaults = [(p.module, p.action) for p in permissions if p.is_default]
    assert defaults == [(SystemModule.DASHBOARD, ModuleAction.VIEW)]


@pytest.mark.asyncio
async def test_list_permissions_by_module(db_session):
    permissions = await RoleCatalogService(db_session).list_permissions(SystemModule.SHIFTS)
    assert [p.action for p in permissions] == list(ModuleAction)
    assert all(p.module is SystemModule.SHIFTS for p in permissions)


@pytest.mark.asyncio
async def test_seed_is_idempotent(db_session):
    summary = await seed_reference_data(db_session)
    assert summary == {"permissions": 0, "roles": 0}

    roles = await RoleCatalogService(db_session).list_roles()
    assert [r.slug for r in roles] == [r.slug for r in SYSTEM_ROLES]
    assert all(r.is_system_default for r in roles)


@pytest.mark.asyncio
async def test_create_role_grants_defaults_and_audits(db_session, make_user):
    actor = await make_user("auditor")
    service = RoleCatalogService(db_session)

    role = await service.create_role(
        name="Warehouse Clerk",
        slug="warehouse_clerk",
        hierarchy_level=4,
        description="Handles stock movements",
        actor_id=actor.id,
    )

    assert role.is_system_default is False
    grants = await RoleGrantService(db_session).list_grants(role.id)
    assert [(g.permission.module, g.permission.action) for g in grants] == [
        (SystemModule.DASHBOARD, ModuleAction.VIEW)
    ]

    logs = (await db_session.execute(select(PermissionAuditLog).where(PermissionAuditLog.role_id == role.id))).scalars().all()
    assert [log.action for log in logs] == ["create_role"]
    assert logs[0].changed_by_user_id == actor.id


@pytest.mark.asyncio
@pytest.mark.parametrize("slug", ["Bad", "1role", "a", "has-dash", "with space", "x" * 51])
async def test_create_role_rejects_malformed_slug(db_session, slug):
    with pytest.raises(ValidationError):
        await RoleCatalogService(db_session).create_role(name="Bad", slug=slug, hierarchy_level=3)


@pytest.mark.asyncio
async def test_create_role_rejects_duplicate_and_reserved_slugs(db_session):
    service = RoleCatalogService(db_session)
    await service.create_role(name="Auditor", slug="auditor", hierarchy_level=3)

    with pytest.raises(ValidationError):
        await service.create_role(name="Auditor 2", slug="auditor", hierarchy_level=3)
    with pytest.raises(ValidationError):
        await service.create_role(name="Another viewer", slug="viewer", hierarchy_level=5)


@pytest.mark.asyncio
async def test_create_role_rejects_admin_hierarchy_level(db_session):
    with pytest.raises(ValidationError):
        await RoleCatalogService(db_session).create_role(name="Root", slug="root", hierarchy_level=0)


@pytest.mark.asyncio
async def test_update_role(db_session):
    service = RoleCatalogService(db_session)
    role = await service.create_role(name="Auditor", slug="auditor", hierarchy_level=3)

    updated = await service.update_role(role.id, name="Senior Auditor", hierarchy_level=2)

    assert updated.name == "Senior Auditor"
    assert updated.hierarchy_level == 2
    assert updated.slug == "auditor"


@pytest.mark.asyncio
async def test_system_roles_are_immutable(db_session):
    service = RoleCatalogService(db_session)
    viewer = await RoleRepository(db_session).get_by_slug("viewer")

    with pytest.raises(ConflictError):
        await service.update_role(viewer.id, name="Reader")
    with pytest.raises(ConflictError):
        await service.delete_role(viewer.id)


@pytest.mark.asyncio
async def test_referenced_role_cannot_change_or_be_deleted(db_session, make_user):
    service = RoleCatalogService(db_session)
    role = await service.create_role(name="Auditor", slug="auditor", hierarchy_level=3)
    user = await make_user()
    await AssignmentService(db_session).add_assignment(user.id, role_id=role.id, scope_type=AssignmentScope.GLOBAL)

    with pytest.raises(ConflictError):
        await service.update_role(role.id, name="Renamed")
    with pytest.raises(ConflictError):
        await service.delete_role(role.id)

    # 权限集合仍可调整
    permissions = await service.list_permissions(SystemModule.REPORTS)
    grant = await RoleGrantService(db_session).grant(role.id, permissions[0].id)
    assert grant.role_id == role.id


@pytest.mark.asyncio
async def test_delete_role_removes_grants(db_session):
    service = RoleCatalogService(db_session)
    role = await service.create_role(name="Temp", slug="temp_role", hierarchy_level=6)

    await service.delete_role(role.id)

    with pytest.raises(NotFoundError):
        await service.get_role(role.id)
    with pytest.raises(NotFoundError):
        await RoleGrantService(db_session).list_grants(role.id)
