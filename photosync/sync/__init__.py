"""
Backup, restore and remote sync for the photo catalog.
"""

from photosync.sync.exceptions import (
    BackupFolderError,
    RemoteUnavailableError,
    SnapshotCorruptError,
    SnapshotNotFoundError,
    SyncCancelledError,
    SyncError,
    TransferError,
    UnsupportedSchemaError,
)

__all__ = [
    "SyncError",
    "BackupFolderError",
    "SnapshotNotFoundError",
    "SnapshotCorruptError",
    "UnsupportedSchemaError",
    "RemoteUnavailableError",
    "TransferError",
    "SyncCancelledError",
]
