"""Entry points used by the CLI and the bot runtime."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from shared.config import EventConfig
from shared.logging import set_trace_id

from .client import PlatformClient
from .definitions import (
    CategoryIndex,
    build_category_definitions,
    build_channel_definitions,
    build_role_definitions,
)
from .models import CATEGORY_KINDS, LEAF_KINDS
from .reconcile import (
    AmbiguityPolicy,
    ChannelReconciler,
    ReconcileReport,
    RoleReconciler,
    delete_all_channels,
    resolve_ambiguous_matches,
)
from .role_cache import RoleCache, RoleSnapshot, shared_role_cache

__all__ = ["ChannelSyncReport", "WorkspaceService"]

log = logging.getLogger("contest.workspace.service")


@dataclass(slots=True)
class ChannelSyncReport:
    categories: ReconcileReport
    channels: ReconcileReport

    @property
    def mutations(self) -> int:
        return self.categories.mutations + self.channels.mutations


class WorkspaceService:
    """Run reconciliation passes for one guild and one event configuration."""

    def __init__(
        self,
        client: PlatformClient,
        event: EventConfig,
        *,
        role_cache: Optional[RoleCache] = None,
        resolve: AmbiguityPolicy = resolve_ambiguous_matches,
    ) -> None:
        self.client = client
        self.event = event
        self.role_cache = role_cache if role_cache is not None else shared_role_cache()
        self.roles = RoleReconciler(client, resolve=resolve)
        self.channels = ChannelReconciler(client, resolve=resolve)

    async def refresh_roles(self) -> RoleSnapshot:
        return await self.role_cache.refresh(self.client)

    async def sync_roles(self) -> ReconcileReport:
        trace = set_trace_id()
        snapshot = await self.refresh_roles()
        log.info("role sync started", extra={"trace": trace, "remote_roles": len(snapshot.roles)})
        report = await self.roles.reconcile(build_role_definitions(self.event), snapshot.roles)
        await self.refresh_roles()
        log.info("role sync finished: %s", report.describe(), extra={"trace": trace})
        return report

    async def delete_roles(self) -> ReconcileReport:
        trace = set_trace_id()
        snapshot = await self.refresh_roles()
        log.info("role deletion started", extra={"trace": trace, "remote_roles": len(snapshot.roles)})
        report = await self.roles.reconcile([], snapshot.roles)
        await self.refresh_roles()
        log.info("role deletion finished: %s", report.describe(), extra={"trace": trace})
        return report

    async def sync_channels(self) -> ChannelSyncReport:
        """Reconcile categories, then the text and voice channels inside them.

        Leaf definitions are built from the ids the category pass produced,
        so a category that failed to converge stops the pass before any leaf
        channel is touched.
        """

        trace = set_trace_id()
        snapshot = await self.refresh_roles()
        remote = await self.client.list_channels()
        log.info("channel sync started", extra={"trace": trace, "remote_channels": len(remote)})

        categories = await self.channels.reconcile(
            build_category_definitions(self.event, snapshot),
            remote,
            kinds=CATEGORY_KINDS,
        )
        log.info("categories reconciled: %s", categories.describe(), extra={"trace": trace})

        index = CategoryIndex.from_channels(categories.results)
        remote = await self.client.list_channels()
        leaves = await self.channels.reconcile(
            build_channel_definitions(self.event, snapshot, index),
            remote,
            kinds=LEAF_KINDS,
        )
        log.info("channels reconciled: %s", leaves.describe(), extra={"trace": trace})
        return ChannelSyncReport(categories=categories, channels=leaves)

    async def delete_channels(self) -> ReconcileReport:
        trace = set_trace_id()
        remote = await self.client.list_channels()
        log.info("channel deletion started", extra={"trace": trace, "remote_channels": len(remote)})
        report = await delete_all_channels(self.client, remote)
        log.info("channel deletion finished: %s", report.describe(), extra={"trace": trace})
        return report

    async def sync_all(self) -> tuple[ReconcileReport, ChannelSyncReport]:
        roles = await self.sync_roles()
        channels = await self.sync_channels()
        return roles, channels
