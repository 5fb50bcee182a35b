from __future__ import annotations

import pytest

from modules.workspace.models import (
    ChannelDefinition,
    ChannelKind,
    PermissionOverwrite,
    RemoteChannel,
    RemoteRole,
    RoleDefinition,
    overwrites_equal,
)


def test_overwrites_equal_ignores_order_and_duplicates():
    a = PermissionOverwrite(subject=1, allow=3)
    b = PermissionOverwrite(subject=2, deny=4)

    assert overwrites_equal([a, b], [b, a])
    assert overwrites_equal([a, b, a], [b, a])
    assert overwrites_equal([], [])


def test_overwrites_equal_detects_missing_or_changed_entries():
    a = PermissionOverwrite(subject=1, allow=3)
    b = PermissionOverwrite(subject=2, deny=4)

    assert not overwrites_equal([a], [a, b])
    assert not overwrites_equal([a, b], [a])
    assert not overwrites_equal([a], [PermissionOverwrite(subject=1, allow=7)])


def test_channel_definition_coerces_permissions_to_frozenset():
    overwrite = PermissionOverwrite(subject=1, allow=1)
    definition = ChannelDefinition(name="text", kind=ChannelKind.TEXT, permissions=[overwrite, overwrite])

    assert definition.permissions == frozenset({overwrite})
    assert definition.key == ("text", None)


def test_category_definition_rejects_parent():
    with pytest.raises(ValueError):
        ChannelDefinition(name="General", kind=ChannelKind.CATEGORY, category=10)


def test_topic_only_allowed_on_text_channels():
    with pytest.raises(ValueError):
        ChannelDefinition(name="voice", kind=ChannelKind.VOICE, topic="nope")


def test_remote_channel_matches_compares_every_field():
    overwrites = (PermissionOverwrite(subject=1, allow=1), PermissionOverwrite(subject=2, deny=2))
    remote = RemoteChannel(
        id=5,
        name="text",
        kind=ChannelKind.TEXT,
        parent_id=10,
        topic="hello",
        permission_overwrites=overwrites,
    )
    definition = ChannelDefinition(
        name="text",
        kind=ChannelKind.TEXT,
        category=10,
        topic="hello",
        permissions=reversed(overwrites),
    )

    assert remote.matches(definition)
    assert not remote.matches(ChannelDefinition(name="text", kind=ChannelKind.VOICE, category=10))
    assert not remote.matches(
        ChannelDefinition(name="text", kind=ChannelKind.TEXT, category=11, topic="hello", permissions=overwrites)
    )
    assert not remote.matches(
        ChannelDefinition(name="text", kind=ChannelKind.TEXT, category=10, topic="bye", permissions=overwrites)
    )
    assert not remote.matches(
        ChannelDefinition(name="text", kind=ChannelKind.TEXT, category=10, topic="hello", permissions=overwrites[:1])
    )


def test_empty_topic_matches_missing_topic():
    remote = RemoteChannel(id=5, name="help", kind=ChannelKind.TEXT, topic="")

    assert remote.matches(ChannelDefinition(name="help", kind=ChannelKind.TEXT))


def test_remote_role_matches_ignores_identity_fields():
    remote = RemoteRole(id=9, name="Staff", permissions=8, colour=1, hoist=True, mentionable=True, managed=True)

    assert remote.matches(RoleDefinition(name="Staff", permissions=8, colour=1, hoist=True, mentionable=True))
    assert not remote.matches(RoleDefinition(name="Staff", permissions=8, colour=1, hoist=False, mentionable=True))
