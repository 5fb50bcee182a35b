"""Shared cache of the guild's role list."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Iterable, Optional, Tuple

from .client import PlatformClient
from .errors import ConfigurationLookupError, RoleCacheNotPopulated
from .models import RemoteRole

__all__ = ["RoleSnapshot", "RoleCache", "shared_role_cache"]

log = logging.getLogger("contest.workspace.role_cache")


@dataclass(frozen=True, slots=True)
class RoleSnapshot:
    """Immutable view of the role list captured by a single refresh.

    A reconciliation pass takes one snapshot and hands it to every policy
    and builder that needs role ids, so all of them see the same roles.
    """

    roles: Tuple[RemoteRole, ...]

    @classmethod
    def of(cls, roles: Iterable[RemoteRole]) -> "RoleSnapshot":
        return cls(roles=tuple(roles))

    def by_name(self, name: str) -> list[RemoteRole]:
        return [role for role in self.roles if role.name == name]

    def by_id(self, role_id: int) -> Optional[RemoteRole]:
        for role in self.roles:
            if role.id == role_id:
                return role
        return None

    def require(self, name: str) -> RemoteRole:
        """Return the single role called ``name``."""

        matches = self.by_name(name)
        if not matches:
            raise ConfigurationLookupError("role", name)
        if len(matches) > 1:
            raise ConfigurationLookupError("role", name, f"{len(matches)} roles share this name")
        return matches[0]

    def require_all(self, name: str) -> list[RemoteRole]:
        """Return every role called ``name``; at least one must exist."""

        matches = self.by_name(name)
        if not matches:
            raise ConfigurationLookupError("role", name)
        return matches


class _ReadWriteLock:
    """asyncio lock admitting many readers or a single writer."""

    def __init__(self) -> None:
        self._condition = asyncio.Condition()
        self._readers = 0
        self._writing = False

    @contextlib.asynccontextmanager
    async def reading(self) -> AsyncIterator[None]:
        async with self._condition:
            await self._condition.wait_for(lambda: not self._writing)
            self._readers += 1
        try:
            yield
        finally:
            async with self._condition:
                self._readers -= 1
                self._condition.notify_all()

    @contextlib.asynccontextmanager
    async def writing(self) -> AsyncIterator[None]:
        async with self._condition:
            await self._condition.wait_for(lambda: not self._writing and self._readers == 0)
            self._writing = True
        try:
            yield
        finally:
            async with self._condition:
                self._writing = False
                self._condition.notify_all()


class RoleCache:
    """Process-wide role list, replaced wholesale on every refresh."""

    def __init__(self) -> None:
        self._lock = _ReadWriteLock()
        self._snapshot: Optional[RoleSnapshot] = None

    @property
    def populated(self) -> bool:
        return self._snapshot is not None

    async def refresh(self, client: PlatformClient) -> RoleSnapshot:
        """Fetch every role and replace the cached list (last writer wins)."""

        roles = await client.list_roles()
        snapshot = RoleSnapshot.of(roles)
        async with self._lock.writing():
            self._snapshot = snapshot
        log.debug("role cache refreshed", extra={"roles": len(snapshot.roles)})
        return snapshot

    async def snapshot(self) -> RoleSnapshot:
        async with self._lock.reading():
            if self._snapshot is None:
                raise RoleCacheNotPopulated()
            return self._snapshot

    async def read(self) -> list[RemoteRole]:
        """Return a copy of the cached roles."""

        snapshot = await self.snapshot()
        return list(snapshot.roles)

    async def find_by_name(self, name: str) -> list[RemoteRole]:
        snapshot = await self.snapshot()
        return snapshot.by_name(name)

    async def find_by_id(self, role_id: int) -> Optional[RemoteRole]:
        snapshot = await self.snapshot()
        return snapshot.by_id(role_id)


_SHARED_CACHE: Optional[RoleCache] = None


def shared_role_cache() -> RoleCache:
    """Return the cache shared by the reconciler and command handlers."""

    global _SHARED_CACHE
    if _SHARED_CACHE is None:
        _SHARED_CACHE = RoleCache()
    return _SHARED_CACHE
