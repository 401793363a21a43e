"""
Export to and import from a user-chosen backup folder.

Folder layout:
    <folder>/
        backup.json                            - Snapshot
        media/photos/<album_id>/<photo_id>.jpg - Originals
        media/thumbs/<album_id>/<photo_id>.jpg - Thumbnails (optional)
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from photosync.catalog import CatalogStore
    from photosync.storage import MediaStorage
    from photosync.sync.builder import SnapshotBuilder

from photosync.sync.exceptions import (
    BackupFolderError,
    SnapshotCorruptError,
    SnapshotNotFoundError,
)
from photosync.sync.paths import export_photo_path, export_thumb_path
from photosync.sync.reconcile import ImportMode, LocalMedia, ReconcileAction, Reconciler
from photosync.sync.results import (
    BatchOutcome,
    ExportReport,
    ImportReport,
    ItemResult,
    ProgressCallback,
)
from photosync.sync.snapshot import SNAPSHOT_FILENAME, SnapshotModel

logger = logging.getLogger(__name__)


def _write_atomic(target: Path, data: bytes) -> None:
    """Write bytes next to ``target`` and rename into place."""
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=target.parent, prefix=".backup_", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, target)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def _copy_atomic(source: Path, target: Path) -> int:
    """Copy ``source`` to ``target`` through a temp file. Returns bytes copied."""
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=target.parent, prefix=".backup_", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as dst, open(source, "rb") as src:
            shutil.copyfileobj(src, dst)
        os.replace(tmp_path, target)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return target.stat().st_size


class LocalBackupEngine:
    """
    Writes and reads snapshot + media folders.

    Fatal conditions (bad folder, missing or unreadable snapshot, schema
    mismatch) raise before anything is written to the catalog. Everything
    after that is per item: a bad album or photo is recorded on the report
    and the batch goes on.
    """

    def __init__(
        self,
        catalog: CatalogStore,
        storage: MediaStorage,
        builder: SnapshotBuilder,
    ):
        self.catalog = catalog
        self.storage = storage
        self.builder = builder

    # Export

    def export_albums(
        self,
        target_folder: Path | str,
        album_ids: Iterable[int],
        on_progress: ProgressCallback | None = None,
    ) -> ExportReport:
        """
        Export albums, their photos and the user settings to a folder.

        Args:
            target_folder: Existing directory to write into
            album_ids: Albums to include; unknown ids are ignored
            on_progress: Optional ``(step, done, total)`` callback

        Returns:
            ExportReport with album/photo counts and file copy results

        Raises:
            BackupFolderError: If the folder doesn't exist or isn't a directory
        """
        folder = Path(target_folder)
        if not folder.is_dir():
            raise BackupFolderError(f"Backup folder not found: {folder}")

        snapshot_path = folder / SNAPSHOT_FILENAME
        if snapshot_path.exists():
            snapshot_path.unlink()
            logger.debug(f"Removed previous snapshot {snapshot_path}")

        snapshot = self.builder.build(album_ids=list(album_ids))
        _write_atomic(snapshot_path, snapshot.to_bytes())

        logger.info(
            f"Exporting {len(snapshot.albums)} albums and {len(snapshot.photos)} photos to {folder}"
        )

        files_copied = 0
        files_missing = 0
        total = len(snapshot.photos)

        for index, photo in enumerate(snapshot.photos, start=1):
            target = folder / export_photo_path(photo.album_id, photo.id)
            if self._export_file(photo.path, target):
                files_copied += 1
            else:
                files_missing += 1
                logger.warning(f"Original missing for photo {photo.id}: {photo.path!r}")

            if photo.thumb_path:
                thumb_target = folder / export_thumb_path(photo.album_id, photo.id)
                if not self._export_file(photo.thumb_path, thumb_target):
                    logger.debug(f"Thumbnail missing for photo {photo.id}")

            if on_progress:
                on_progress("Copying photos", index, total)

        report = ExportReport(
            albums=len(snapshot.albums),
            photos=len(snapshot.photos),
            files_copied=files_copied,
            files_missing=files_missing,
            snapshot_path=snapshot_path,
        )
        logger.info(
            f"Export completed: {report.albums} albums, {report.photos} photos, "
            f"{report.files_copied} copied, {report.files_missing} missing"
        )
        return report

    def _export_file(self, recorded_path: str, target: Path) -> bool:
        if not recorded_path:
            return False
        source = Path(recorded_path)
        if not source.is_file():
            return False
        try:
            _copy_atomic(source, target)
            return True
        except OSError as e:
            logger.warning(f"Failed to copy {source} to {target}: {e}")
            return False

    # Import

    def read_snapshot(self, source_folder: Path | str) -> SnapshotModel:
        """
        Locate and parse the snapshot in a backup folder.

        Raises:
            BackupFolderError: If the folder doesn't exist
            SnapshotNotFoundError: If there is no backup.json
            SnapshotCorruptError: If backup.json can't be read or parsed
            UnsupportedSchemaError: If the schema version doesn't match
        """
        folder = Path(source_folder)
        if not folder.is_dir():
            raise BackupFolderError(f"Backup folder not found: {folder}")

        snapshot_path = folder / SNAPSHOT_FILENAME
        if not snapshot_path.is_file():
            raise SnapshotNotFoundError(f"No {SNAPSHOT_FILENAME} in {folder}")

        try:
            data = snapshot_path.read_bytes()
        except OSError as e:
            raise SnapshotCorruptError(f"Failed to read {snapshot_path}: {e}") from e

        return SnapshotModel.from_json(data)

    def import_from_folder(
        self,
        source_folder: Path | str,
        mode: ImportMode = ImportMode.MERGE_LATEST_WINS,
        on_progress: ProgressCallback | None = None,
    ) -> ImportReport:
        """
        Import a backup folder into the catalog.

        Args:
            source_folder: Folder previously written by ``export_albums``
            mode: Merge by latest ``updated_at`` or replace the whole catalog
            on_progress: Optional ``(step, done, total)`` callback

        Returns:
            ImportReport with insert/update counts and per-item failures
        """
        folder = Path(source_folder)
        snapshot = self.read_snapshot(folder)

        orphans = snapshot.orphan_photos()
        if orphans:
            logger.info(f"{len(orphans)} photos reference albums not in the backup")

        if mode == ImportMode.REPLACE_ALL:
            self.catalog.clear_all()

        reconciler = Reconciler(self.catalog, mode)

        albums = BatchOutcome()
        total = len(snapshot.albums)
        for index, album in enumerate(snapshot.albums, start=1):
            try:
                albums.add(ItemResult.success(f"album:{album.id}", reconciler.reconcile_album(album)))
            except Exception as e:
                logger.warning(f"Failed to import album {album.id}: {e}", exc_info=True)
                albums.add(ItemResult.failure(f"album:{album.id}", e))
            if on_progress:
                on_progress("Importing albums", index, total)

        photos = BatchOutcome()
        missing_files = 0
        total = len(snapshot.photos)
        for index, photo in enumerate(snapshot.photos, start=1):
            key = f"photo:{photo.id}"
            try:
                media, file_present = self._import_media(folder, photo.album_id, photo.id)
                if not file_present:
                    missing_files += 1
                    logger.warning(f"Backup has no file for photo {photo.id}")
                photos.add(ItemResult.success(key, reconciler.reconcile_photo(photo, media)))
            except Exception as e:
                logger.warning(f"Failed to import photo {photo.id}: {e}", exc_info=True)
                photos.add(ItemResult.failure(key, e))
            if on_progress:
                on_progress("Importing photos", index, total)

        report = ImportReport(
            albums_inserted=albums.count(ReconcileAction.INSERTED),
            albums_updated=albums.count(ReconcileAction.UPDATED),
            photos_inserted=photos.count(ReconcileAction.INSERTED),
            photos_updated=photos.count(ReconcileAction.UPDATED),
            photos_skipped_missing_file=missing_files,
            failures=albums.failed + photos.failed,
        )
        logger.info(
            f"Import completed: albums +{report.albums_inserted}/{report.albums_updated}, "
            f"photos +{report.photos_inserted}/{report.photos_updated}, "
            f"missing={report.photos_skipped_missing_file}, failed={len(report.failures)}"
        )
        return report

    def _import_media(self, folder: Path, album_id: int, photo_id: int) -> tuple[LocalMedia, bool]:
        """
        Copy a photo's original and thumbnail from the backup into storage.

        Returns:
            The resulting LocalMedia and whether the original was present
        """
        local_photo = self.storage.photo_file(album_id, photo_id)
        media = LocalMedia(path=str(local_photo))

        source = folder / export_photo_path(album_id, photo_id)
        file_present = source.is_file()
        if file_present:
            try:
                media.size_bytes = self.storage.copy_into(source, local_photo)
            except OSError as e:
                logger.warning(f"Failed to copy original for photo {photo_id}: {e}")
                media.size_bytes = None
                file_present = False

        thumb_source = folder / export_thumb_path(album_id, photo_id)
        if thumb_source.is_file():
            local_thumb = self.storage.thumb_file(album_id, photo_id)
            try:
                self.storage.copy_into(thumb_source, local_thumb)
                media.thumb_path = str(local_thumb)
            except OSError as e:
                logger.debug(f"Failed to copy thumbnail for photo {photo_id}: {e}")

        return media, file_present
