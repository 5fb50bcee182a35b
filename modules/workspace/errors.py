"""Error taxonomy for workspace reconciliation."""

from __future__ import annotations

__all__ = [
    "WorkspaceError",
    "RemotePlatformError",
    "RoleCacheNotPopulated",
    "ConfigurationLookupError",
]


class WorkspaceError(RuntimeError):
    """Base class for every failure raised by the workspace package."""


class RemotePlatformError(WorkspaceError):
    """A call against the remote platform failed.

    The original exception is kept on ``cause`` (and chained as ``__cause__``)
    so callers can inspect the HTTP status when they need to.
    """

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{operation} failed{detail}")


class RoleCacheNotPopulated(WorkspaceError):
    """The role cache was read before the first refresh."""

    def __init__(self) -> None:
        super().__init__("role cache is not populated; refresh it first")


class ConfigurationLookupError(WorkspaceError):
    """A role or category that must exist after reconciliation is missing."""

    def __init__(self, kind: str, name: str, detail: str | None = None) -> None:
        self.kind = kind
        self.name = name
        message = f"no such {kind}: {name}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
