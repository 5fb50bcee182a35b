from __future__ import annotations

import asyncio

import pytest

from modules.workspace.errors import ConfigurationLookupError, RoleCacheNotPopulated
from modules.workspace.models import RemoteRole
from modules.workspace.role_cache import RoleCache, RoleSnapshot, shared_role_cache
from shared.testing.platform import FakePlatform


def test_reading_before_refresh_raises(role_cache):
    assert not role_cache.populated
    with pytest.raises(RoleCacheNotPopulated):
        asyncio.run(role_cache.read())


def test_refresh_replaces_the_cached_list(role_cache, platform):
    async def runner():
        first = await role_cache.refresh(platform)
        platform.add_role("Staff")
        second = await role_cache.refresh(platform)
        return first, second, await role_cache.read()

    first, second, roles = asyncio.run(runner())

    assert [role.name for role in first.roles] == ["@everyone"]
    assert [role.name for role in second.roles] == ["@everyone", "Staff"]
    assert [role.name for role in roles] == ["@everyone", "Staff"]
    assert role_cache.populated


def test_read_returns_a_copy(role_cache, platform):
    async def runner():
        await role_cache.refresh(platform)
        roles = await role_cache.read()
        roles.clear()
        return await role_cache.read()

    assert len(asyncio.run(runner())) == 1


def test_lookups_by_name_and_id(role_cache, platform):
    staff = platform.add_role("Staff")

    async def runner():
        await role_cache.refresh(platform)
        return (
            await role_cache.find_by_name("Staff"),
            await role_cache.find_by_id(staff.id),
            await role_cache.find_by_id(1),
        )

    by_name, by_id, missing = asyncio.run(runner())

    assert by_name == [staff]
    assert by_id == staff
    assert missing is None


def test_snapshot_require_needs_exactly_one_role():
    snapshot = RoleSnapshot.of(
        [RemoteRole(id=1, name="Staff"), RemoteRole(id=2, name="team"), RemoteRole(id=3, name="team")]
    )

    assert snapshot.require("Staff").id == 1
    assert [role.id for role in snapshot.require_all("team")] == [2, 3]
    with pytest.raises(ConfigurationLookupError):
        snapshot.require("team")
    with pytest.raises(ConfigurationLookupError):
        snapshot.require("missing")
    with pytest.raises(ConfigurationLookupError):
        snapshot.require_all("missing")


def test_concurrent_readers_see_whole_snapshots(role_cache):
    platform = FakePlatform()
    for index in range(5):
        platform.add_role(f"role-{index}")

    async def reader():
        seen = []
        for _ in range(20):
            seen.append(len(await role_cache.read()))
            await asyncio.sleep(0)
        return seen

    async def writer():
        for _ in range(10):
            await role_cache.refresh(platform)
            platform.add_role("extra")
            await asyncio.sleep(0)

    async def runner():
        await role_cache.refresh(platform)
        results = await asyncio.gather(reader(), reader(), writer())
        return results[0] + results[1]

    counts = asyncio.run(runner())

    assert all(5 <= count <= 15 for count in counts)


def test_shared_role_cache_is_a_singleton():
    assert shared_role_cache() is shared_role_cache()
