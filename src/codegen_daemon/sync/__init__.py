"""Sync coordination and source storage."""

from .coordinator import ALL_SOURCES_KEY, SyncCoordinator, SyncRecord, SyncState
from .operations import OperationsService
from .sources import SourceStore

__all__ = [
    "ALL_SOURCES_KEY",
    "OperationsService",
    "SourceStore",
    "SyncCoordinator",
    "SyncRecord",
    "SyncState",
]
