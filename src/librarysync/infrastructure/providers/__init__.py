"""Sync provider implementations.

    domain/ports/__init__.py   <- ISyncProvider interface
    infrastructure/providers/  <- PersistentSyncProvider + SyncProviderRegistry
"""

from librarysync.infrastructure.providers.persistent_provider import (
    PersistentSyncProvider,
    merge_by_id,
    remove_by_id,
)
from librarysync.infrastructure.providers.registry import (
    FanOutErrors,
    SyncProviderRegistry,
)

__all__ = [
    "FanOutErrors",
    "PersistentSyncProvider",
    "SyncProviderRegistry",
    "merge_by_id",
    "remove_by_id",
]
