"""
权限查询接口测试
"""
from uuid import uuid4

import pytest

from app.constants.permissions import ModuleAction, SystemModule


@pytest.mark.asyncio
async def test_missing_credentials_is_401(client):
    resp = await client.get("/api/v1/permissions/me")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_invalid_token_is_401(client):
    resp = await client.get("/api/v1/permissions/me", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_inactive_user_is_401(client, make_user):
    from app.utils.security import create_access_token

    user = await make_user("disabled", is_active=False)
    resp = await client.get(
        "/api/v1/permissions/me",
        headers={"Authorization": f"Bearer {create_access_token(user.id)}"},
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_legacy_user_id_header(client, employee):
    resp = await client.get("/api/v1/permissions/me", headers={"X-User-Id": str(employee.user.id)})
    assert resp.status_code == 200
    assert resp.json()["primary_role"] == "employee"


@pytest.mark.asyncio
async def test_my_permissions_for_employee(client, employee):
    resp = await client.get("/api/v1/permissions/me", headers=employee.headers)
    assert resp.status_code == 200
    body = resp.json()

    assert body["user_id"] == str(employee.user.id)
    assert body["primary_role"] == "employee"
    assert body["roles"] == ["employee"]
    assert body["is_admin"] is False
    assert body["unrestricted"] is True
    assert body["allowed_branch_ids"] == []
    pairs = {(p["module"], p["action"]) for p in body["permissions"]}
    assert ("inventory", "edit") in pairs
    assert ("users", "view") not in pairs
    assert all(p["scope"] == "global" for p in body["permissions"])
    modules = {m["module"]: m["actions"] for m in body["modules"]}
    assert modules["dashboard"] == ["view", "export"]


@pytest.mark.asyncio
async def test_my_permissions_for_admin_lists_full_catalog(client, admin):
    resp = await client.get("/api/v1/permissions/me", headers=admin.headers)
    body = resp.json()
    assert body["is_admin"] is True
    assert len(body["permissions"]) == len(SystemModule) * len(ModuleAction)


@pytest.mark.asyncio
async def test_my_permissions_for_viewer_only_view(client, viewer):
    resp = await client.get("/api/v1/permissions/me", headers=viewer.headers)
    body = resp.json()
    assert body["primary_role"] == "viewer"
    assert body["permissions"]
    assert {p["action"] for p in body["permissions"]} == {"view"}


@pytest.mark.asyncio
async def test_my_permissions_without_assignments(client, make_actor):
    nobody = await make_actor(None, "nobody")
    resp = await client.get("/api/v1/permissions/me", headers=nobody.headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["permissions"] == []
    assert body["primary_role"] is None


@pytest.mark.asyncio
async def test_check_never_errors_for_unknown_names(client, employee):
    resp = await client.get(
        "/api/v1/permissions/check",
        params={"module": "payroll", "action": "view"},
        headers=employee.headers,
    )
    assert resp.status_code == 200
    assert resp.json()["allowed"] is False

    resp = await client.get(
        "/api/v1/permissions/check",
        params={"module": "inventory", "action": "create"},
        headers=employee.headers,
    )
    assert resp.json()["allowed"] is True


@pytest.mark.asyncio
async def test_check_with_branch_outside_access_set(client, admin, employee, make_branch):
    home = await make_branch()
    await client.post(
        f"/api/v1/users/{employee.user.id}/branches",
        json={"branch_id": str(home.id), "is_default": True},
        headers=admin.headers,
    )

    resp = await client.get(
        "/api/v1/permissions/check",
        params={"module": "inventory", "action": "view", "branch_id": str(uuid4())},
        headers=employee.headers,
    )
    assert resp.json()["allowed"] is False

    resp = await client.get(
        "/api/v1/permissions/check",
        params={"module": "inventory", "action": "view", "branch_id": str(home.id)},
        headers=employee.headers,
    )
    assert resp.json()["allowed"] is True


@pytest.mark.asyncio
async def test_catalog_listing_requires_users_view(client, admin, employee):
    resp = await client.get("/api/v1/permissions", headers=employee.headers)
    assert resp.status_code == 403

    resp = await client.get("/api/v1/permissions", params={"module": "reports"}, headers=admin.headers)
    assert resp.status_code == 200
    assert [p["action"] for p in resp.json()] == [a.value for a in ModuleAction]
