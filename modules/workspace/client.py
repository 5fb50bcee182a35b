"""Remote platform access for the reconciler.

``PlatformClient`` is the capability surface the reconcilers depend on.
``DiscordPlatformClient`` implements it on top of discord.py for a single
guild; discord.py's HTTP layer already waits out rate limits.
"""

from __future__ import annotations

import contextlib
import logging
from typing import AsyncIterator, Dict, Iterable, Protocol

import discord

from .errors import RemotePlatformError, WorkspaceError
from .models import (
    ChannelDefinition,
    ChannelKind,
    PermissionOverwrite,
    RemoteChannel,
    RemoteRole,
    RoleDefinition,
)

__all__ = [
    "PlatformClient",
    "DiscordPlatformClient",
    "remote_role_from_discord",
    "remote_channel_from_discord",
    "overwrites_to_discord",
]

log = logging.getLogger("contest.workspace.client")

AUDIT_REASON = "contest workspace sync"

_KIND_BY_DISCORD_TYPE = {
    discord.ChannelType.category: ChannelKind.CATEGORY,
    discord.ChannelType.text: ChannelKind.TEXT,
    discord.ChannelType.voice: ChannelKind.VOICE,
}


class PlatformClient(Protocol):
    """Role and channel operations against one guild."""

    async def list_roles(self) -> list[RemoteRole]: ...

    async def create_role(self, definition: RoleDefinition) -> RemoteRole: ...

    async def edit_role(self, role_id: int, definition: RoleDefinition) -> RemoteRole: ...

    async def delete_role(self, role_id: int) -> None: ...

    async def list_channels(self) -> list[RemoteChannel]: ...

    async def create_channel(self, definition: ChannelDefinition) -> RemoteChannel: ...

    async def edit_channel(
        self, channel_id: int, definition: ChannelDefinition
    ) -> RemoteChannel: ...

    async def delete_channel(self, channel_id: int) -> None: ...


def remote_role_from_discord(role: discord.Role) -> RemoteRole:
    return RemoteRole(
        id=role.id,
        name=role.name,
        permissions=role.permissions.value,
        colour=role.colour.value,
        hoist=role.hoist,
        mentionable=role.mentionable,
        managed=role.managed,
        is_default=role.is_default(),
    )


def remote_channel_from_discord(channel: discord.abc.GuildChannel) -> RemoteChannel:
    overwrites = []
    for target, overwrite in channel.overwrites.items():
        allow, deny = overwrite.pair()
        overwrites.append(
            PermissionOverwrite(subject=target.id, allow=allow.value, deny=deny.value)
        )
    return RemoteChannel(
        id=channel.id,
        name=channel.name,
        kind=_KIND_BY_DISCORD_TYPE.get(channel.type),
        parent_id=getattr(channel, "category_id", None),
        topic=getattr(channel, "topic", None),
        permission_overwrites=tuple(overwrites),
    )


def overwrites_to_discord(
    overwrites: Iterable[PermissionOverwrite],
) -> Dict[discord.Object, discord.PermissionOverwrite]:
    """Translate overwrites into the mapping discord.py expects for edits."""

    payload: Dict[discord.Object, discord.PermissionOverwrite] = {}
    for entry in overwrites:
        target = discord.Object(id=entry.subject, type=discord.Role)
        payload[target] = discord.PermissionOverwrite.from_pair(
            discord.Permissions(entry.allow), discord.Permissions(entry.deny)
        )
    return payload


@contextlib.asynccontextmanager
async def _remote_call(operation: str) -> AsyncIterator[None]:
    try:
        yield
    except discord.HTTPException as exc:
        log.error("remote call failed", extra={"operation": operation, "status": exc.status})
        raise RemotePlatformError(operation, exc) from exc


class DiscordPlatformClient:
    """``PlatformClient`` bound to a single :class:`discord.Guild`.

    The guild may come from the gateway cache or from ``Client.fetch_guild``;
    only REST calls are issued. The discord.py objects returned by list and
    create calls are kept by id so later edits and deletes can reuse them.
    """

    def __init__(self, guild: discord.Guild, *, reason: str = AUDIT_REASON) -> None:
        self.guild = guild
        self.reason = reason
        self._roles: Dict[int, discord.Role] = {}
        self._channels: Dict[int, discord.abc.GuildChannel] = {}

    def _role(self, role_id: int) -> discord.Role:
        role = self._roles.get(role_id) or self.guild.get_role(role_id)
        if role is None:
            raise WorkspaceError(f"role {role_id} has not been listed by this client")
        return role

    def _channel(self, channel_id: int) -> discord.abc.GuildChannel:
        channel = self._channels.get(channel_id) or self.guild.get_channel(channel_id)
        if channel is None:
            raise WorkspaceError(f"channel {channel_id} has not been listed by this client")
        return channel

    def _remember_role(self, role: discord.Role) -> RemoteRole:
        self._roles[role.id] = role
        return remote_role_from_discord(role)

    def _remember_channel(self, channel: discord.abc.GuildChannel) -> RemoteChannel:
        self._channels[channel.id] = channel
        return remote_channel_from_discord(channel)

    async def list_roles(self) -> list[RemoteRole]:
        async with _remote_call("list roles"):
            roles = await self.guild.fetch_roles()
        self._roles = {}
        return [self._remember_role(role) for role in roles]

    async def create_role(self, definition: RoleDefinition) -> RemoteRole:
        async with _remote_call(f"create role {definition.name!r}"):
            role = await self.guild.create_role(
                name=definition.name,
                permissions=discord.Permissions(definition.permissions),
                colour=discord.Colour(definition.colour),
                hoist=definition.hoist,
                mentionable=definition.mentionable,
                reason=self.reason,
            )
        return self._remember_role(role)

    async def edit_role(self, role_id: int, definition: RoleDefinition) -> RemoteRole:
        role = self._role(role_id)
        fields = {
            "permissions": discord.Permissions(definition.permissions),
            "colour": discord.Colour(definition.colour),
            "hoist": definition.hoist,
            "mentionable": definition.mentionable,
        }
        # @everyone cannot be renamed.
        if not role.is_default():
            fields["name"] = definition.name
        async with _remote_call(f"edit role {role.name!r}"):
            edited = await role.edit(reason=self.reason, **fields)
        return self._remember_role(edited or role)

    async def delete_role(self, role_id: int) -> None:
        role = self._role(role_id)
        async with _remote_call(f"delete role {role.name!r}"):
            await role.delete(reason=self.reason)
        self._roles.pop(role_id, None)

    async def list_channels(self) -> list[RemoteChannel]:
        async with _remote_call("list channels"):
            channels = await self.guild.fetch_channels()
        self._channels = {}
        return [self._remember_channel(channel) for channel in channels]

    async def create_channel(self, definition: ChannelDefinition) -> RemoteChannel:
        overwrites = overwrites_to_discord(definition.permissions)
        parent = (
            discord.Object(id=definition.category, type=discord.CategoryChannel)
            if definition.category is not None
            else None
        )
        async with _remote_call(f"create {definition.kind.value} channel {definition.name!r}"):
            if definition.kind is ChannelKind.CATEGORY:
                channel = await self.guild.create_category(
                    definition.name, overwrites=overwrites, reason=self.reason
                )
            elif definition.kind is ChannelKind.TEXT:
                extra = {"topic": definition.topic} if definition.topic is not None else {}
                channel = await self.guild.create_text_channel(
                    definition.name,
                    category=parent,
                    overwrites=overwrites,
                    reason=self.reason,
                    **extra,
                )
            else:
                channel = await self.guild.create_voice_channel(
                    definition.name,
                    category=parent,
                    overwrites=overwrites,
                    reason=self.reason,
                )
        return self._remember_channel(channel)

    async def edit_channel(
        self, channel_id: int, definition: ChannelDefinition
    ) -> RemoteChannel:
        channel = self._channel(channel_id)
        if _KIND_BY_DISCORD_TYPE.get(channel.type) is not definition.kind:
            raise WorkspaceError(
                f"channel {channel.name!r} is {channel.type}, cannot edit it into "
                f"a {definition.kind.value} channel"
            )
        fields: dict = {
            "name": definition.name,
            "overwrites": overwrites_to_discord(definition.permissions),
            "reason": self.reason,
        }
        if definition.kind is not ChannelKind.CATEGORY:
            fields["category"] = (
                discord.Object(id=definition.category, type=discord.CategoryChannel)
                if definition.category is not None
                else None
            )
        if definition.kind is ChannelKind.TEXT:
            fields["topic"] = definition.topic or ""
        async with _remote_call(f"edit channel {channel.name!r}"):
            edited = await channel.edit(**fields)
        return self._remember_channel(edited or channel)

    async def delete_channel(self, channel_id: int) -> None:
        channel = self._channel(channel_id)
        async with _remote_call(f"delete channel {channel.name!r}"):
            await channel.delete(reason=self.reason)
        self._channels.pop(channel_id, None)
