"""Converge remote roles and channels onto their desired definitions.

Both reconcilers walk the definitions in order and, for each one, look up the
remote entities sharing its key:

* exactly one match is compared field by field and edited in place when it
  differs;
* zero or several matches are handed to the ambiguity policy, which decides
  which (if any) to keep and which to delete; a definition with nothing kept
  is created fresh.

A cleanup pass then deletes every remote entity in scope whose key is not
desired. Nothing is retried: the first remote failure propagates and aborts
the pass, and re-running the pass resumes from whatever state was reached.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Collection, Iterable, List, NamedTuple, Optional, Sequence

from .client import PlatformClient
from .models import (
    ChannelDefinition,
    ChannelKind,
    RemoteChannel,
    RemoteRole,
    RoleDefinition,
)
from .policy import EVERYONE_ROLE_NAME

__all__ = [
    "Resolution",
    "AmbiguityPolicy",
    "resolve_ambiguous_matches",
    "keep_first_match",
    "ReconcileReport",
    "is_protected_role",
    "RoleReconciler",
    "ChannelReconciler",
    "delete_all_channels",
]

log = logging.getLogger("contest.workspace.reconcile")


class Resolution(NamedTuple):
    """Outcome of the ambiguity policy for one definition."""

    keep: Optional[Any]
    discard: List[Any]


AmbiguityPolicy = Callable[[Sequence[Any]], Resolution]


def resolve_ambiguous_matches(matches: Sequence[Any]) -> Resolution:
    """Delete every match so a single fresh entity can be created.

    Used for zero or several matches. Duplicates are treated as drift, never
    as something an administrator is in the middle of editing.
    """

    return Resolution(keep=None, discard=list(matches))


def keep_first_match(matches: Sequence[Any]) -> Resolution:
    """Keep the first match (edited in place as needed) and drop the rest."""

    if not matches:
        return Resolution(keep=None, discard=[])
    return Resolution(keep=matches[0], discard=list(matches[1:]))


@dataclass(slots=True)
class ReconcileReport:
    """What a reconciler call did, plus the remote entities it converged to.

    ``results`` holds one remote entity per definition, in definition order.
    """

    resource: str
    counts: Counter[str] = field(default_factory=Counter)
    results: list = field(default_factory=list)

    @property
    def mutations(self) -> int:
        return self.counts["created"] + self.counts["updated"] + self.counts["deleted"]

    def summary(self) -> dict[str, int]:
        keys = ("created", "updated", "deleted", "unchanged", "skipped_protected")
        return {key: self.counts[key] for key in keys}

    def describe(self) -> str:
        return " ".join(f"{key}={value}" for key, value in self.summary().items())


def is_protected_role(role: RemoteRole) -> bool:
    """``@everyone`` and integration-managed roles are never deleted."""

    return role.is_default or role.name == EVERYONE_ROLE_NAME or role.managed


def _ensure_unique(keys: Iterable[Any], what: str) -> None:
    seen = set()
    for key in keys:
        if key in seen:
            raise ValueError(f"duplicate {what} in desired definitions: {key!r}")
        seen.add(key)


class RoleReconciler:
    def __init__(
        self,
        client: PlatformClient,
        *,
        resolve: AmbiguityPolicy = resolve_ambiguous_matches,
    ) -> None:
        self.client = client
        self.resolve = resolve

    async def reconcile(
        self, definitions: Sequence[RoleDefinition], roles: Sequence[RemoteRole]
    ) -> ReconcileReport:
        """Converge ``roles`` (the remote list) onto ``definitions``."""

        _ensure_unique((definition.name for definition in definitions), "role name")
        report = ReconcileReport(resource="roles")
        handled: set[int] = set()

        for definition in definitions:
            matches = [role for role in roles if role.name == definition.name]
            handled.update(role.id for role in matches)
            result = await self._converge(definition, matches, report)
            report.results.append(result)

        desired = {definition.name for definition in definitions}
        for role in roles:
            if role.id in handled or role.name in desired:
                continue
            if is_protected_role(role):
                report.counts["skipped_protected"] += 1
                log.debug("keeping protected role", extra={"role": role.name, "role_id": role.id})
                continue
            log.debug("deleting undesired role", extra={"role": role.name, "role_id": role.id})
            await self.client.delete_role(role.id)
            report.counts["deleted"] += 1

        return report

    async def _converge(
        self, definition: RoleDefinition, matches: List[RemoteRole], report: ReconcileReport
    ) -> RemoteRole:
        # Only the real default role and integration roles are untouchable here;
        # a stray role merely named "@everyone" is an ordinary duplicate.
        pinned = [role for role in matches if role.is_default or role.managed]
        if pinned:
            keep: Optional[RemoteRole] = pinned[0]
            discard = [role for role in matches if not (role.is_default or role.managed)]
        elif len(matches) == 1:
            keep, discard = matches[0], []
        else:
            keep, discard = self.resolve(matches)

        for role in discard:
            log.debug(
                "deleting ambiguous role",
                extra={"role": role.name, "role_id": role.id, "matches": len(matches)},
            )
            await self.client.delete_role(role.id)
            report.counts["deleted"] += 1

        if keep is None:
            log.debug("creating role", extra={"role": definition.name})
            created = await self.client.create_role(definition)
            report.counts["created"] += 1
            return created

        if keep.matches(definition):
            report.counts["unchanged"] += 1
            return keep
        if keep.managed:
            log.warning(
                "managed role differs from its definition; leaving it alone",
                extra={"role": keep.name, "role_id": keep.id},
            )
            report.counts["skipped_protected"] += 1
            return keep

        log.debug("editing role", extra={"role": definition.name, "role_id": keep.id})
        edited = await self.client.edit_role(keep.id, definition)
        report.counts["updated"] += 1
        return edited


class ChannelReconciler:
    """Reconcile one tier of channels, selected by a set of kinds.

    Categories have no parent, so keying every channel on ``(name, parent)``
    matches categories by name and leaf channels by name within their
    category.
    """

    def __init__(
        self,
        client: PlatformClient,
        *,
        resolve: AmbiguityPolicy = resolve_ambiguous_matches,
    ) -> None:
        self.client = client
        self.resolve = resolve

    async def reconcile(
        self,
        definitions: Sequence[ChannelDefinition],
        channels: Sequence[RemoteChannel],
        *,
        kinds: Collection[ChannelKind],
    ) -> ReconcileReport:
        kinds = frozenset(kinds)
        for definition in definitions:
            if definition.kind not in kinds:
                raise ValueError(
                    f"{definition.kind.value} channel {definition.name!r} is outside this tier"
                )
        _ensure_unique((definition.key for definition in definitions), "channel key")

        in_scope = [channel for channel in channels if channel.kind in kinds]
        report = ReconcileReport(resource="channels")
        handled: set[int] = set()

        for definition in definitions:
            matches = [channel for channel in in_scope if channel.key == definition.key]
            handled.update(channel.id for channel in matches)
            result = await self._converge(definition, matches, report)
            report.results.append(result)

        desired = {definition.key for definition in definitions}
        for channel in in_scope:
            if channel.id in handled or channel.key in desired:
                continue
            log.debug(
                "deleting undesired channel",
                extra={"channel": channel.name, "channel_id": channel.id},
            )
            await self.client.delete_channel(channel.id)
            report.counts["deleted"] += 1

        return report

    async def _converge(
        self,
        definition: ChannelDefinition,
        matches: List[RemoteChannel],
        report: ReconcileReport,
    ) -> RemoteChannel:
        if len(matches) == 1:
            keep: Optional[RemoteChannel] = matches[0]
            discard: List[RemoteChannel] = []
        else:
            keep, discard = self.resolve(matches)

        # A text channel cannot be edited into a voice channel (or back).
        if keep is not None and keep.kind is not definition.kind:
            discard = [*discard, keep]
            keep = None

        for channel in discard:
            log.debug(
                "deleting ambiguous channel",
                extra={"channel": channel.name, "channel_id": channel.id, "matches": len(matches)},
            )
            await self.client.delete_channel(channel.id)
            report.counts["deleted"] += 1

        if keep is None:
            log.debug(
                "creating channel",
                extra={"channel": definition.name, "kind": definition.kind.value},
            )
            created = await self.client.create_channel(definition)
            report.counts["created"] += 1
            return created

        if keep.matches(definition):
            report.counts["unchanged"] += 1
            return keep

        log.debug("editing channel", extra={"channel": definition.name, "channel_id": keep.id})
        edited = await self.client.edit_channel(keep.id, definition)
        report.counts["updated"] += 1
        return edited


async def delete_all_channels(
    client: PlatformClient, channels: Sequence[RemoteChannel]
) -> ReconcileReport:
    """Delete every channel, of every kind, leaf channels before categories."""

    report = ReconcileReport(resource="channels")
    ordered = sorted(channels, key=lambda channel: channel.kind is ChannelKind.CATEGORY)
    for channel in ordered:
        log.debug("deleting channel", extra={"channel": channel.name, "channel_id": channel.id})
        await client.delete_channel(channel.id)
        report.counts["deleted"] += 1
    return report
