from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from redis.exceptions import RedisError

from app.core.cache import cache
from app.core.cache_invalidation import CacheInvalidator
from app.core.cache_keys import CacheKeys


@pytest.mark.asyncio
async def test_user_access_changed_bumps_version_and_deletes_snapshot(dummy_redis):
    invalidator = CacheInvalidator()
    user_id = uuid4()
    await cache.set(CacheKeys.effective_permissions(user_id), {"v": 0, "data": "old"})

    await invalidator.on_user_access_changed(user_id)

    assert await cache.get_counter(CacheKeys.permission_version(user_id)) == 1
    assert await cache.get(CacheKeys.effective_permissions(user_id)) is None


@pytest.mark.asyncio
async def test_role_grants_changed_invalidates_every_holder_once(monkeypatch):
    invalidator = CacheInvalidator()
    handler = AsyncMock()
    monkeypatch.setattr(invalidator, "on_user_access_changed", handler)
    a, b = uuid4(), uuid4()

    await invalidator.on_role_grants_changed([a, b, a])

    assert handler.await_count == 2
    assert {call.args[0] for call in handler.await_args_list} == {str(a), str(b)}


@pytest.mark.asyncio
async def test_role_grants_changed_without_holders_is_noop(monkeypatch):
    invalidator = CacheInvalidator()
    handler = AsyncMock()
    monkeypatch.setattr(invalidator, "on_user_access_changed", handler)

    await invalidator.on_role_grants_changed([])

    handler.assert_not_awaited()


@pytest.mark.asyncio
async def test_branch_switched_clears_only_old_branch_prefix(dummy_redis):
    invalidator = CacheInvalidator()
    user_id, old_branch, new_branch = uuid4(), uuid4(), uuid4()
    old_key = CacheKeys.branch_scoped_prefix(user_id, old_branch) + "stats"
    new_key = CacheKeys.branch_scoped_prefix(user_id, new_branch) + "stats"
    await cache.set(old_key, 1)
    await cache.set(new_key, 2)

    await invalidator.on_branch_switched(user_id, old_branch)

    assert await cache.get(old_key) is None
    assert await cache.get(new_key) == 2


@pytest.mark.asyncio
async def test_invalidate_dispatches_events(monkeypatch):
    invalidator = CacheInvalidator()
    user_handler = AsyncMock()
    branch_handler = AsyncMock()
    monkeypatch.setattr(invalidator, "on_user_access_changed", user_handler)
    monkeypatch.setattr(invalidator, "on_branch_switched", branch_handler)
    user_id, branch_id = uuid4(), uuid4()

    await invalidator.invalidate(
        [
            ("user_access_changed", {"user_id": user_id}),
            ("branch_switched", {"user_id": user_id, "old_branch_id": branch_id}),
            ("unknown_event", {}),
        ]
    )

    user_handler.assert_awaited_once_with(user_id=user_id)
    branch_handler.assert_awaited_once_with(user_id=user_id, old_branch_id=branch_id)


@pytest.mark.asyncio
async def test_invalidation_without_redis_is_safe():
    cache._redis = None
    invalidator = CacheInvalidator()
    await invalidator.on_user_access_changed(uuid4())
    await invalidator.on_branch_switched(uuid4(), uuid4())


@pytest.mark.asyncio
async def test_user_access_changed_propagates_redis_errors(dummy_redis, monkeypatch):
    async def _broken_incr(*args, **kwargs):
        raise RedisError("connection reset")

    monkeypatch.setattr(dummy_redis, "incr", _broken_incr)

    with pytest.raises(RedisError):
        await CacheInvalidator().on_user_access_changed(uuid4())


@pytest.mark.asyncio
async def test_branch_switched_cleanup_stays_best_effort(dummy_redis, monkeypatch):
    async def _broken_keys(*args, **kwargs):
        raise RedisError("connection reset")

    monkeypatch.setattr(dummy_redis, "keys", _broken_keys)

    await CacheInvalidator().on_branch_switched(uuid4(), uuid4())
