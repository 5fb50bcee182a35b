from __future__ import annotations

import asyncio

import pytest

from modules.workspace.models import (
    ALL_KINDS,
    CATEGORY_KINDS,
    LEAF_KINDS,
    ChannelDefinition,
    ChannelKind,
    PermissionOverwrite,
)
from modules.workspace.reconcile import ChannelReconciler, delete_all_channels, keep_first_match
from shared.testing.platform import FakePlatform

OVERWRITES = (
    PermissionOverwrite(subject=1, allow=1024),
    PermissionOverwrite(subject=2, deny=2048),
    PermissionOverwrite(subject=3, allow=64, deny=8),
)


def _reconcile(platform: FakePlatform, definitions, kinds, **kwargs):
    async def runner():
        channels = await platform.list_channels()
        return await ChannelReconciler(platform, **kwargs).reconcile(definitions, channels, kinds=kinds)

    return asyncio.run(runner())


def _category(name: str, permissions=()) -> ChannelDefinition:
    return ChannelDefinition(name=name, kind=ChannelKind.CATEGORY, permissions=permissions)


def test_categories_are_created_from_empty_and_then_left_alone():
    platform = FakePlatform()
    definitions = [_category("General"), _category("team-01", OVERWRITES)]

    first = _reconcile(platform, definitions, CATEGORY_KINDS)
    platform.reset_calls()
    second = _reconcile(platform, definitions, CATEGORY_KINDS)

    assert first.counts["created"] == 2
    assert platform.mutations == []
    assert second.counts["unchanged"] == 2
    assert [channel.name for channel in second.results] == ["General", "team-01"]


def test_overwrite_order_from_the_platform_does_not_cause_edits():
    platform = FakePlatform()
    platform.add_channel("team-01", ChannelKind.CATEGORY, permission_overwrites=OVERWRITES)

    _reconcile(platform, [_category("team-01", reversed(OVERWRITES))], CATEGORY_KINDS)

    assert platform.mutations == []


def test_changed_overwrites_are_edited_in_place():
    platform = FakePlatform()
    existing = platform.add_channel("team-01", ChannelKind.CATEGORY, permission_overwrites=OVERWRITES[:1])

    report = _reconcile(platform, [_category("team-01", OVERWRITES)], CATEGORY_KINDS)

    assert platform.mutations == [("edit_channel", "team-01", "category")]
    assert set(platform.channels[existing.id].permission_overwrites) == set(OVERWRITES)
    assert report.results[0].id == existing.id


def test_leaf_channels_with_the_same_name_live_under_different_categories():
    platform = FakePlatform()
    a = platform.add_channel("team-01", ChannelKind.CATEGORY)
    b = platform.add_channel("team-02", ChannelKind.CATEGORY)
    definitions = [
        ChannelDefinition(name="text", kind=ChannelKind.TEXT, category=a.id),
        ChannelDefinition(name="text", kind=ChannelKind.TEXT, category=b.id),
    ]

    _reconcile(platform, definitions, LEAF_KINDS)
    platform.reset_calls()
    _reconcile(platform, definitions, LEAF_KINDS)

    assert sorted(channel.parent_id for channel in platform.channels_named("text")) == [a.id, b.id]
    assert platform.mutations == []


def test_topic_change_is_an_edit():
    platform = FakePlatform()
    parent = platform.add_channel("team-01", ChannelKind.CATEGORY)
    existing = platform.add_channel("text", ChannelKind.TEXT, parent_id=parent.id, topic="old")

    _reconcile(
        platform,
        [ChannelDefinition(name="text", kind=ChannelKind.TEXT, category=parent.id, topic="new")],
        LEAF_KINDS,
    )

    assert platform.mutations == [("edit_channel", "text", "text")]
    assert platform.channels[existing.id].topic == "new"


def test_single_match_of_the_wrong_kind_is_recreated():
    platform = FakePlatform()
    parent = platform.add_channel("team-01", ChannelKind.CATEGORY)
    platform.add_channel("voice", ChannelKind.TEXT, parent_id=parent.id)

    _reconcile(
        platform,
        [ChannelDefinition(name="voice", kind=ChannelKind.VOICE, category=parent.id)],
        LEAF_KINDS,
    )

    assert platform.mutations == [
        ("delete_channel", "voice"),
        ("create_channel", "voice", "voice"),
    ]
    assert [channel.kind for channel in platform.channels_named("voice")] == [ChannelKind.VOICE]


def test_duplicate_channels_are_all_deleted_then_recreated():
    platform = FakePlatform()
    parent = platform.add_channel("General", ChannelKind.CATEGORY)
    platform.add_channel("help", ChannelKind.TEXT, parent_id=parent.id)
    platform.add_channel("help", ChannelKind.TEXT, parent_id=parent.id)

    _reconcile(
        platform,
        [ChannelDefinition(name="help", kind=ChannelKind.TEXT, category=parent.id)],
        LEAF_KINDS,
    )

    assert platform.mutations == [
        ("delete_channel", "help"),
        ("delete_channel", "help"),
        ("create_channel", "help", "text"),
    ]
    assert len(platform.channels_named("help")) == 1


def test_keep_first_policy_keeps_one_duplicate_channel():
    platform = FakePlatform()
    parent = platform.add_channel("General", ChannelKind.CATEGORY)
    first = platform.add_channel("help", ChannelKind.TEXT, parent_id=parent.id)
    platform.add_channel("help", ChannelKind.TEXT, parent_id=parent.id)

    _reconcile(
        platform,
        [ChannelDefinition(name="help", kind=ChannelKind.TEXT, category=parent.id)],
        LEAF_KINDS,
        resolve=keep_first_match,
    )

    assert platform.mutations == [("delete_channel", "help")]
    assert [channel.id for channel in platform.channels_named("help")] == [first.id]


def test_cleanup_only_touches_the_requested_tier():
    platform = FakePlatform()
    kept = platform.add_channel("General", ChannelKind.CATEGORY)
    platform.add_channel("Old", ChannelKind.CATEGORY)
    leaf = platform.add_channel("stray", ChannelKind.TEXT, parent_id=kept.id)
    forum = platform.add_channel("forum", None)

    _reconcile(platform, [_category("General")], CATEGORY_KINDS)

    assert platform.mutations == [("delete_channel", "Old")]
    assert leaf.id in platform.channels
    assert forum.id in platform.channels


def test_leaf_cleanup_removes_channels_not_desired():
    platform = FakePlatform()
    parent = platform.add_channel("General", ChannelKind.CATEGORY)
    platform.add_channel("help", ChannelKind.TEXT, parent_id=parent.id)
    platform.add_channel("lobby", ChannelKind.VOICE, parent_id=parent.id)
    platform.add_channel("help", ChannelKind.TEXT)

    _reconcile(
        platform,
        [ChannelDefinition(name="help", kind=ChannelKind.TEXT, category=parent.id)],
        LEAF_KINDS,
    )

    assert sorted(platform.mutations) == [("delete_channel", "help"), ("delete_channel", "lobby")]
    assert [channel.parent_id for channel in platform.channels_named("help")] == [parent.id]


def test_definitions_outside_the_tier_are_rejected():
    with pytest.raises(ValueError):
        _reconcile(FakePlatform(), [_category("General")], LEAF_KINDS)


def test_duplicate_keys_are_rejected():
    with pytest.raises(ValueError):
        _reconcile(FakePlatform(), [_category("General"), _category("General")], CATEGORY_KINDS)


def test_delete_all_channels_removes_every_kind():
    platform = FakePlatform()
    parent = platform.add_channel("General", ChannelKind.CATEGORY)
    platform.add_channel("help", ChannelKind.TEXT, parent_id=parent.id)
    platform.add_channel("voice", ChannelKind.VOICE, parent_id=parent.id)
    platform.add_channel("forum", None)

    async def runner():
        return await delete_all_channels(platform, await platform.list_channels())

    report = asyncio.run(runner())

    assert platform.channels == {}
    assert report.counts["deleted"] == 4
    assert platform.mutations[-1] == ("delete_channel", "General")


def test_all_kinds_cover_every_managed_kind():
    assert ALL_KINDS == CATEGORY_KINDS | LEAF_KINDS == set(ChannelKind)
