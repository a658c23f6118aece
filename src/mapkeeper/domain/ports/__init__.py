"""Ports consumed by the reconciliation core."""

from __future__ import annotations

from .library import LibraryStore, WriteContext
from .remote import (
    AuthenticationError,
    LookupCachePort,
    RemoteAuthority,
    RemoteAuthorityError,
)

__all__ = [
    "AuthenticationError",
    "LibraryStore",
    "LookupCachePort",
    "RemoteAuthority",
    "RemoteAuthorityError",
    "WriteContext",
]
