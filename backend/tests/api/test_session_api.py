"""
会话作用域接口测试
"""
from uuid import uuid4

import pytest


async def _grant_branch(client, admin, user_id, branch_id, is_default=False):
    resp = await client.post(
        f"/api/v1/users/{user_id}/branches",
        json={"branch_id": str(branch_id), "is_default": is_default},
        headers=admin.headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.asyncio
async def test_open_session_uses_default_branch(client, admin, employee, make_branch):
    branch = await make_branch()
    await _grant_branch(client, admin, employee.user.id, branch.id, is_default=True)

    resp = await client.get("/api/v1/session", headers=employee.headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["username"] == "employee"
    assert body["active_branch_id"] == str(branch.id)
    assert body["allowed_branch_ids"] == [str(branch.id)]
    assert body["unrestricted"] is False


@pytest.mark.asyncio
async def test_switch_branch(client, admin, employee, make_branch):
    home = await make_branch()
    second = await make_branch()
    outside = await make_branch()
    await _grant_branch(client, admin, employee.user.id, home.id, is_default=True)
    await _grant_branch(client, admin, employee.user.id, second.id)

    resp = await client.patch(
        "/api/v1/session/active-branch", json={"branch_id": str(second.id)}, headers=employee.headers
    )
    assert resp.status_code == 200
    assert resp.json()["active_branch_id"] == str(second.id)

    resp = await client.patch(
        "/api/v1/session/active-branch", json={"branch_id": str(outside.id)}, headers=employee.headers
    )
    assert resp.status_code == 403

    resp = await client.get("/api/v1/session", headers=employee.headers)
    assert resp.json()["active_branch_id"] == str(second.id)


@pytest.mark.asyncio
async def test_switch_branch_validation(client, employee):
    resp = await client.patch("/api/v1/session/active-branch", json={}, headers=employee.headers)
    assert resp.status_code == 422

    resp = await client.patch(
        "/api/v1/session/active-branch", json={"branch_id": str(uuid4())}, headers=employee.headers
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_active_branch_drives_enforcement(client, admin, make_actor, make_branch):
    """分支作用域的 users.view 只在该分支为当前分支时放行"""
    manager = await make_actor("viewer", "scoped_manager")
    branch_a = await make_branch()
    branch_b = await make_branch()

    resp = await client.post(
        "/api/v1/roles",
        json={"name": "User Auditor", "slug": "user_auditor", "hierarchy_level": 3},
        headers=admin.headers,
    )
    role_id = resp.json()["id"]
    perms = (await client.get("/api/v1/permissions", params={"module": "users"}, headers=admin.headers)).json()
    users_view = next(p for p in perms if p["action"] == "view")
    await client.post(
        f"/api/v1/roles/{role_id}/permissions",
        json={"permission_id": users_view["id"]},
        headers=admin.headers,
    )
    resp = await client.post(
        f"/api/v1/users/{manager.user.id}/assignments",
        json={"role_id": role_id, "scope_type": "branch", "branch_id": str(branch_a.id), "is_primary": True},
        headers=admin.headers,
    )
    assert resp.status_code == 201, resp.text

    await client.patch("/api/v1/session/active-branch", json={"branch_id": str(branch_b.id)}, headers=manager.headers)
    assert (await client.get("/api/v1/roles", headers=manager.headers)).status_code == 403

    await client.patch("/api/v1/session/active-branch", json={"branch_id": str(branch_a.id)}, headers=manager.headers)
    assert (await client.get("/api/v1/roles", headers=manager.headers)).status_code == 200


@pytest.mark.asyncio
async def test_my_permissions_follow_active_branch(client, admin, make_actor, make_branch):
    """/permissions/me 与服务端判定使用同一个当前分支"""
    manager = await make_actor(None, "branch_a_manager")
    branch_a = await make_branch()
    branch_b = await make_branch()
    roles = (await client.get("/api/v1/roles", headers=admin.headers)).json()
    role = next(r for r in roles if r["slug"] == "branch_manager")
    resp = await client.post(
        f"/api/v1/users/{manager.user.id}/assignments",
        json={"role_id": role["id"], "scope_type": "branch", "branch_id": str(branch_a.id)},
        headers=admin.headers,
    )
    assert resp.status_code == 201, resp.text

    async def _shift_actions() -> set[str]:
        body = (await client.get("/api/v1/permissions/me", headers=manager.headers)).json()
        return {p["action"] for p in body["permissions"] if p["module"] == "shifts"}

    async def _check_delete() -> bool:
        resp = await client.get(
            "/api/v1/permissions/check",
            params={"module": "shifts", "action": "delete"},
            headers=manager.headers,
        )
        return resp.json()["allowed"]

    await client.patch("/api/v1/session/active-branch", json={"branch_id": str(branch_b.id)}, headers=manager.headers)
    assert "delete" not in await _shift_actions()
    assert await _check_delete() is False

    await client.patch("/api/v1/session/active-branch", json={"branch_id": str(branch_a.id)}, headers=manager.headers)
    assert "delete" in await _shift_actions()
    assert await _check_delete() is True
