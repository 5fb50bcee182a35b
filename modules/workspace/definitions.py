"""Desired-state builders for the contest guild.

Roles are built from the event configuration alone. Categories also need the
role snapshot (team categories carry team overwrites). Leaf channels need
both the snapshot and a :class:`CategoryIndex`, which only exists once the
category tier has been reconciled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping

from shared.config import ConfigError, EventConfig, TeamConfig

from . import policy
from .errors import ConfigurationLookupError
from .models import ChannelDefinition, ChannelKind, RemoteChannel, RoleDefinition
from .role_cache import RoleSnapshot

__all__ = [
    "EVERYONE_ROLE_NAME",
    "STAFF_ROLE_COLOUR",
    "TEAM_TEXT_CHANNEL_NAME",
    "TEAM_VOICE_CHANNEL_NAME",
    "CategoryIndex",
    "build_role_definitions",
    "build_category_definitions",
    "build_channel_definitions",
    "render_team_topic",
]

log = logging.getLogger("contest.workspace.definitions")

EVERYONE_ROLE_NAME = policy.EVERYONE_ROLE_NAME
STAFF_ROLE_COLOUR = 0xE40046
TEAM_TEXT_CHANNEL_NAME = "text"
TEAM_VOICE_CHANNEL_NAME = "voice"


def build_role_definitions(event: EventConfig) -> List[RoleDefinition]:
    definitions = [
        RoleDefinition(
            name=EVERYONE_ROLE_NAME,
            permissions=policy.permissions_for_everyone(),
            mentionable=True,
        ),
        RoleDefinition(
            name=event.staff.role_name,
            permissions=policy.permissions_for_staff(),
            colour=STAFF_ROLE_COLOUR,
            hoist=True,
            mentionable=True,
        ),
    ]
    for team in event.teams:
        definitions.append(
            RoleDefinition(
                name=team.role_name,
                permissions=policy.permissions_for_team(),
                hoist=True,
                mentionable=True,
            )
        )
    return definitions


def build_category_definitions(event: EventConfig, roles: RoleSnapshot) -> List[ChannelDefinition]:
    definitions = [
        ChannelDefinition(name=event.public.category_name, kind=ChannelKind.CATEGORY),
        ChannelDefinition(name=event.staff.category_name, kind=ChannelKind.CATEGORY),
    ]
    for team in event.teams:
        definitions.append(
            ChannelDefinition(
                name=team.category,
                kind=ChannelKind.CATEGORY,
                permissions=policy.overwrites_for_team_channel(
                    roles, team, staff_role_name=event.staff.role_name
                ),
            )
        )
    return definitions


@dataclass(frozen=True, slots=True)
class CategoryIndex:
    """Category ids resolved by the category pass, looked up by name."""

    ids: Mapping[str, List[int]]

    @classmethod
    def from_channels(cls, channels: Iterable[RemoteChannel]) -> "CategoryIndex":
        ids: Dict[str, List[int]] = {}
        for channel in channels:
            if channel.kind is ChannelKind.CATEGORY:
                ids.setdefault(channel.name, []).append(channel.id)
        return cls(ids=ids)

    def require(self, name: str) -> int:
        found = self.ids.get(name) or []
        if not found:
            raise ConfigurationLookupError("category", name)
        if len(found) > 1:
            raise ConfigurationLookupError("category", name, f"{len(found)} categories share this name")
        return found[0]


def render_team_topic(template: str, team: TeamConfig) -> str:
    try:
        return template.format(
            team_id=team.id,
            role_name=team.role_name,
            invitation_code=team.invitation_code,
            user_group_id=team.user_group_id,
        )
    except (KeyError, IndexError, ValueError) as exc:
        raise ConfigError(f"team_channel_topic cannot be rendered: {exc}") from exc


def build_channel_definitions(
    event: EventConfig, roles: RoleSnapshot, categories: CategoryIndex
) -> List[ChannelDefinition]:
    """Leaf text and voice channels under the already-reconciled categories."""

    public_id = categories.require(event.public.category_name)
    staff_id = categories.require(event.staff.category_name)

    definitions = [
        ChannelDefinition(
            name=event.public.help_channel,
            kind=ChannelKind.TEXT,
            category=public_id,
            permissions=policy.overwrites_for_help_channel(roles),
        ),
        ChannelDefinition(
            name=event.public.announce_channel,
            kind=ChannelKind.TEXT,
            category=public_id,
            permissions=policy.overwrites_for_announce_channel(roles, event.teams),
        ),
        ChannelDefinition(
            name=event.public.random_channel,
            kind=ChannelKind.TEXT,
            category=public_id,
            permissions=policy.overwrites_for_random_channel(roles, event.teams),
        ),
        ChannelDefinition(name=TEAM_TEXT_CHANNEL_NAME, kind=ChannelKind.TEXT, category=staff_id),
        ChannelDefinition(name=TEAM_VOICE_CHANNEL_NAME, kind=ChannelKind.VOICE, category=staff_id),
    ]

    for team in event.teams:
        category_id = categories.require(team.category)
        overwrites = policy.overwrites_for_team_channel(
            roles, team, staff_role_name=event.staff.role_name
        )
        topic = (
            render_team_topic(event.team_channel_topic, team)
            if event.configure_channel_topics
            else None
        )
        definitions.append(
            ChannelDefinition(
                name=TEAM_TEXT_CHANNEL_NAME,
                kind=ChannelKind.TEXT,
                category=category_id,
                topic=topic,
                permissions=overwrites,
            )
        )
        definitions.append(
            ChannelDefinition(
                name=TEAM_VOICE_CHANNEL_NAME,
                kind=ChannelKind.VOICE,
                category=category_id,
                permissions=overwrites,
            )
        )

    log.debug("built channel definitions", extra={"channels": len(definitions)})
    return definitions
