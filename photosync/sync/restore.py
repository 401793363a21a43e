"""
Restore the catalog from the latest remote snapshot.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from photosync.catalog import CatalogStore
    from photosync.providers.base import RemoteObjectStore
    from photosync.storage import MediaStorage
    from photosync.sync.snapshot import SnapshotPhoto

from photosync.sync.exceptions import SnapshotCorruptError, TransferError
from photosync.sync.reconcile import ImportMode, LocalMedia, ReconcileAction, Reconciler
from photosync.sync.results import BatchOutcome, ItemResult, ProgressCallback, RestoreReport
from photosync.sync.snapshot import SNAPSHOT_FILENAME, SnapshotModel

logger = logging.getLogger(__name__)


class RemoteRestoreEngine:
    """
    Pulls ``backup.json`` and the referenced originals from the remote store
    and reconciles them into the local catalog.

    Snapshot download and parsing are fatal on failure; after that every
    album and photo is handled on its own and failures are recorded on the
    report. Photo downloads run one at a time.
    """

    def __init__(
        self,
        catalog: CatalogStore,
        storage: MediaStorage,
        remote: RemoteObjectStore,
    ):
        self.catalog = catalog
        self.storage = storage
        self.remote = remote

    def restore_latest(
        self,
        mode: ImportMode = ImportMode.MERGE_LATEST_WINS,
        on_progress: ProgressCallback | None = None,
    ) -> RestoreReport:
        """
        Restore from the most recent remote snapshot.

        Args:
            mode: Merge by latest ``updated_at`` or replace the whole catalog
            on_progress: Optional ``(step, done, total)`` callback

        Returns:
            RestoreReport; empty when no remote snapshot exists
        """
        progress = on_progress or (lambda step, done, total: None)

        progress("Checking for backup...", 0, 1)
        latest = self.remote.find_latest_by_name(SNAPSHOT_FILENAME)
        if latest is None:
            logger.info("No remote snapshot found, nothing to restore")
            return RestoreReport()

        progress("Downloading backup...", 0, 1)
        snapshot = self._download_snapshot(latest.id)
        progress("Parsing backup data...", 1, 1)

        logger.info(
            f"Restoring {len(snapshot.albums)} albums and {len(snapshot.photos)} photos "
            f"(mode={mode.value})"
        )

        if mode == ImportMode.REPLACE_ALL:
            progress("Clearing existing data...", 0, 1)
            self.catalog.clear_all()

        reconciler = Reconciler(self.catalog, mode)

        albums = BatchOutcome()
        total = len(snapshot.albums)
        for index, album in enumerate(snapshot.albums, start=1):
            try:
                albums.add(ItemResult.success(f"album:{album.id}", reconciler.reconcile_album(album)))
            except Exception as e:
                logger.warning(f"Failed to restore album {album.id}: {e}", exc_info=True)
                albums.add(ItemResult.failure(f"album:{album.id}", e))
            progress("Restoring albums...", index, total)

        photos = BatchOutcome()
        files_missing = 0
        total = len(snapshot.photos)
        for index, photo in enumerate(snapshot.photos, start=1):
            key = f"photo:{photo.id}"
            try:
                media, file_ok = self._restore_media(reconciler, photo)
                if not file_ok:
                    files_missing += 1
                photos.add(ItemResult.success(key, reconciler.reconcile_photo(photo, media)))
            except Exception as e:
                logger.warning(f"Failed to restore photo {photo.id}: {e}", exc_info=True)
                photos.add(ItemResult.failure(key, e))
            progress("Restoring photos & downloading files", index, total)

        report = RestoreReport(
            albums_inserted=albums.count(ReconcileAction.INSERTED),
            albums_updated=albums.count(ReconcileAction.UPDATED),
            photos_inserted=photos.count(ReconcileAction.INSERTED),
            photos_updated=photos.count(ReconcileAction.UPDATED),
            files_missing=files_missing,
            failures=albums.failed + photos.failed,
        )
        logger.info(
            f"Restore completed: {report.albums_affected} albums, "
            f"{report.photos_affected} photos, {report.files_missing} files missing, "
            f"{len(report.failures)} failed"
        )
        return report

    def _download_snapshot(self, object_id: str) -> SnapshotModel:
        tmp_path = self.storage.new_temp_path(suffix=".json")
        try:
            if not self.remote.download(object_id, tmp_path):
                raise TransferError(f"Failed to download {SNAPSHOT_FILENAME}")
            try:
                data = tmp_path.read_bytes()
            except OSError as e:
                raise SnapshotCorruptError(f"Failed to read downloaded snapshot: {e}") from e
            return SnapshotModel.from_json(data)
        finally:
            tmp_path.unlink(missing_ok=True)

    def _restore_media(self, reconciler: Reconciler, photo: SnapshotPhoto) -> tuple[LocalMedia, bool]:
        """
        Fetch a photo's original when this restore will need it.

        The file is downloaded only if the row is about to be written or
        the local copy is missing. Thumbnails are not stored remotely and
        are regenerated locally.

        Returns:
            The LocalMedia to reconcile with and whether the original is
            available locally
        """
        local_photo = self.storage.photo_file(photo.album_id, photo.id)
        media = LocalMedia(path=str(local_photo))

        action = reconciler.plan_photo(photo)
        if action == ReconcileAction.SKIPPED and local_photo.is_file():
            return media, True

        if self._download_original(photo, local_photo):
            media.size_bytes = local_photo.stat().st_size
            return media, True

        logger.warning(f"Restoring photo {photo.id} without its file")
        return media, False

    def _download_original(self, photo: SnapshotPhoto, target: Path) -> bool:
        tmp_path = self.storage.new_temp_path()
        try:
            remote = self.remote.find_latest_by_name(photo.relative_path)
            if remote is None:
                logger.debug(f"No remote object {photo.relative_path}")
                return False
            if not self.remote.download(remote.id, tmp_path):
                return False
            self.storage.install(tmp_path, target)
            return True
        except Exception as e:
            logger.warning(f"Download of {photo.relative_path} failed: {e}")
            return False
        finally:
            tmp_path.unlink(missing_ok=True)
