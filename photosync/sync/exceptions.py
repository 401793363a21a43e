"""
Exceptions for backup, restore and sync operations.
"""


class SyncError(Exception):
    """Base exception for backup and sync operations."""

    pass


class BackupFolderError(SyncError):
    """Chosen backup folder is missing or not a directory."""

    pass


class SnapshotNotFoundError(SyncError):
    """No snapshot file in the backup folder."""

    pass


class SnapshotCorruptError(SyncError):
    """Snapshot file could not be read or parsed."""

    pass


class UnsupportedSchemaError(SyncError):
    """Snapshot was written with a schema version this engine can't read."""

    def __init__(self, found: int, supported: int):
        self.found = found
        self.supported = supported
        super().__init__(
            f"Unsupported backup schema version {found} (supported: {supported})"
        )


class RemoteUnavailableError(SyncError):
    """Remote store can't be reached or isn't authenticated."""

    pass


class TransferError(SyncError):
    """Failed to upload or download a single media file."""

    pass


class SyncCancelledError(SyncError):
    """Operation was cancelled through its cancellation token."""

    pass
