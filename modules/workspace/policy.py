"""Permission policy for the contest guild.

Role-level capability sets are deliberately small; teams are granted access
per channel through overwrites instead. Every function here is pure: the
overwrite builders take the pass's :class:`RoleSnapshot` explicitly.
"""

from __future__ import annotations

from typing import Dict, Iterable, List

import discord

from shared.config import TeamConfig

from .models import PermissionOverwrite
from .role_cache import RoleSnapshot

__all__ = [
    "EVERYONE_ROLE_NAME",
    "READONLY_MEMBER_MATRIX",
    "CHANNEL_MEMBER_MATRIX",
    "TEAM_CHANNEL_MEMBER_MATRIX",
    "STAFF_DENY_IN_TEAM_CHANNEL_MATRIX",
    "permissions_for_everyone",
    "permissions_for_staff",
    "permissions_for_team",
    "permissions_for_readonly_channel_member",
    "permissions_for_channel_member",
    "permissions_for_team_channel_member",
    "deny_for_staff_in_team_channel",
    "overwrites_for_help_channel",
    "overwrites_for_announce_channel",
    "overwrites_for_random_channel",
    "overwrites_for_team_channel",
]

EVERYONE_ROLE_NAME = "@everyone"

READONLY_MEMBER_MATRIX: Dict[str, bool] = {
    "view_channel": True,
    "read_message_history": True,
    "add_reactions": True,
}

CHANNEL_MEMBER_MATRIX: Dict[str, bool] = {
    **READONLY_MEMBER_MATRIX,
    "send_messages": True,
    "embed_links": True,
    "use_external_emojis": True,
    "use_external_stickers": True,
}

TEAM_CHANNEL_MEMBER_MATRIX: Dict[str, bool] = {
    **CHANNEL_MEMBER_MATRIX,
    "stream": True,
    "attach_files": True,
    "connect": True,
    "speak": True,
    "mute_members": True,
    "deafen_members": True,
    "use_voice_activation": True,
    "use_application_commands": True,
    "send_messages_in_threads": True,
}

# Staff talk to teams through threads only and stay out of team voice.
STAFF_DENY_IN_TEAM_CHANNEL_MATRIX: Dict[str, bool] = {
    "send_messages": True,
    "connect": True,
}


def _bits(matrix: Dict[str, bool]) -> int:
    return discord.Permissions(**matrix).value


def permissions_for_everyone() -> int:
    return discord.Permissions(change_nickname=True).value


def permissions_for_staff() -> int:
    """Everything except administrator."""

    permissions = discord.Permissions.all()
    permissions.administrator = False
    return permissions.value


def permissions_for_team() -> int:
    return discord.Permissions.none().value


def permissions_for_readonly_channel_member() -> int:
    return _bits(READONLY_MEMBER_MATRIX)


def permissions_for_channel_member() -> int:
    return _bits(CHANNEL_MEMBER_MATRIX)


def permissions_for_team_channel_member() -> int:
    return _bits(TEAM_CHANNEL_MEMBER_MATRIX)


def deny_for_staff_in_team_channel() -> int:
    return _bits(STAFF_DENY_IN_TEAM_CHANNEL_MATRIX)


def overwrites_for_help_channel(roles: RoleSnapshot) -> List[PermissionOverwrite]:
    """Everyone may read the help channel."""

    everyone = roles.require(EVERYONE_ROLE_NAME)
    return [
        PermissionOverwrite(
            subject=everyone.id, allow=permissions_for_readonly_channel_member()
        )
    ]


def _per_team(
    roles: RoleSnapshot, teams: Iterable[TeamConfig], allow: int
) -> List[PermissionOverwrite]:
    overwrites: List[PermissionOverwrite] = []
    for team in teams:
        role = roles.require(team.role_name)
        overwrites.append(PermissionOverwrite(subject=role.id, allow=allow))
    return overwrites


def overwrites_for_announce_channel(
    roles: RoleSnapshot, teams: Iterable[TeamConfig]
) -> List[PermissionOverwrite]:
    """Every team can read announcements."""

    return _per_team(roles, teams, permissions_for_readonly_channel_member())


def overwrites_for_random_channel(
    roles: RoleSnapshot, teams: Iterable[TeamConfig]
) -> List[PermissionOverwrite]:
    """Every team can chat in the random channel."""

    return _per_team(roles, teams, permissions_for_channel_member())


def overwrites_for_team_channel(
    roles: RoleSnapshot, team: TeamConfig, *, staff_role_name: str
) -> List[PermissionOverwrite]:
    overwrites: List[PermissionOverwrite] = []
    for staff_role in roles.require_all(staff_role_name):
        overwrites.append(
            PermissionOverwrite(subject=staff_role.id, deny=deny_for_staff_in_team_channel())
        )
    for team_role in roles.require_all(team.role_name):
        overwrites.append(
            PermissionOverwrite(subject=team_role.id, allow=permissions_for_team_channel_member())
        )
    return overwrites
