"""Declarative reconciliation of the contest guild's roles and channels."""

from __future__ import annotations

__all__ = [
    "client",
    "definitions",
    "errors",
    "models",
    "policy",
    "reconcile",
    "role_cache",
    "service",
]
