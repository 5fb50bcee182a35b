"""Desired and observed state for guild roles and channels."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Tuple

__all__ = [
    "ChannelKind",
    "CATEGORY_KINDS",
    "LEAF_KINDS",
    "ALL_KINDS",
    "PermissionOverwrite",
    "overwrites_equal",
    "RoleDefinition",
    "RemoteRole",
    "ChannelDefinition",
    "RemoteChannel",
    "ChannelKey",
]


class ChannelKind(str, Enum):
    CATEGORY = "category"
    TEXT = "text"
    VOICE = "voice"


CATEGORY_KINDS = frozenset({ChannelKind.CATEGORY})
LEAF_KINDS = frozenset({ChannelKind.TEXT, ChannelKind.VOICE})
ALL_KINDS = CATEGORY_KINDS | LEAF_KINDS

# (name, parent category id); categories always carry ``None`` as parent.
ChannelKey = Tuple[str, Optional[int]]


@dataclass(frozen=True, slots=True)
class PermissionOverwrite:
    """Per-channel allow/deny override for a single role."""

    subject: int
    allow: int = 0
    deny: int = 0


def overwrites_equal(
    left: Iterable[PermissionOverwrite], right: Iterable[PermissionOverwrite]
) -> bool:
    """Return ``True`` when both collections hold the same overwrites.

    The platform does not preserve overwrite order, so the comparison is
    mutual inclusion: order and duplicates are ignored.
    """

    left_set = set(left)
    right_set = set(right)
    return left_set <= right_set and right_set <= left_set


@dataclass(frozen=True, slots=True)
class RoleDefinition:
    """Desired state for one guild role, keyed by ``name``."""

    name: str
    permissions: int
    colour: int = 0
    hoist: bool = False
    mentionable: bool = False


@dataclass(frozen=True, slots=True)
class RemoteRole:
    """A role as reported by the remote platform."""

    id: int
    name: str
    permissions: int = 0
    colour: int = 0
    hoist: bool = False
    mentionable: bool = False
    managed: bool = False
    is_default: bool = False

    def matches(self, definition: RoleDefinition) -> bool:
        return (
            self.name == definition.name
            and self.permissions == definition.permissions
            and self.colour == definition.colour
            and self.hoist == definition.hoist
            and self.mentionable == definition.mentionable
        )


@dataclass(frozen=True, slots=True)
class ChannelDefinition:
    """Desired state for one category, text channel or voice channel."""

    name: str
    kind: ChannelKind
    category: Optional[int] = None
    topic: Optional[str] = None
    permissions: frozenset[PermissionOverwrite] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if not isinstance(self.permissions, frozenset):
            object.__setattr__(self, "permissions", frozenset(self.permissions))
        if self.kind is ChannelKind.CATEGORY and self.category is not None:
            raise ValueError(f"category {self.name!r} cannot have a parent category")
        if self.topic is not None and self.kind is not ChannelKind.TEXT:
            raise ValueError(f"{self.kind.value} channel {self.name!r} cannot have a topic")

    @property
    def key(self) -> ChannelKey:
        return (self.name, self.category)


@dataclass(frozen=True, slots=True)
class RemoteChannel:
    """A guild channel as reported by the remote platform.

    ``kind`` is ``None`` for channel types the reconciler does not manage
    (forums, stages, announcement channels and so on).
    """

    id: int
    name: str
    kind: Optional[ChannelKind]
    parent_id: Optional[int] = None
    topic: Optional[str] = None
    permission_overwrites: Tuple[PermissionOverwrite, ...] = ()

    @property
    def key(self) -> ChannelKey:
        return (self.name, self.parent_id)

    def matches(self, definition: ChannelDefinition) -> bool:
        if self.kind is not definition.kind:
            return False
        if self.name != definition.name or self.parent_id != definition.category:
            return False
        # An empty topic and a missing topic are the same thing remotely.
        if self.kind is ChannelKind.TEXT and (self.topic or None) != (definition.topic or None):
            return False
        return overwrites_equal(self.permission_overwrites, definition.permissions)
