"""
The background remote sync job.

One run uploads a fresh full snapshot and every photo original changed
since the last successful run, then moves the sync watermark forward.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from django.utils import timezone

if TYPE_CHECKING:
    from photosync.catalog import CatalogStore
    from photosync.models import Photo
    from photosync.preferences import SyncStateStore
    from photosync.providers.base import RemoteObjectStore
    from photosync.storage import MediaStorage
    from photosync.sync.builder import SnapshotBuilder
    from photosync.sync.cancellation import CancellationToken
    from photosync.sync.coordinator import RemoteSyncCoordinator

from photosync.models import now_millis
from photosync.sync.exceptions import SyncCancelledError, TransferError
from photosync.sync.models import SyncEvent, SyncSession
from photosync.sync.paths import photo_relative_path
from photosync.sync.results import ItemResult, UploadSummary
from photosync.sync.scheduling import JobResult
from photosync.sync.snapshot import SNAPSHOT_FILENAME, SNAPSHOT_MIME_TYPE

logger = logging.getLogger(__name__)

PHOTO_MIME_TYPE = "image/jpeg"


@dataclass
class _Upload:
    remote_name: str
    remote_id: str | None = None
    missing: bool = False


class RemoteSyncJob:
    """
    Uploads the catalog snapshot and changed originals to the remote store.

    Media uploads run on a bounded thread pool, ``concurrency`` at a time.
    All database work stays on the calling thread.
    """

    def __init__(
        self,
        catalog: CatalogStore,
        storage: MediaStorage,
        builder: SnapshotBuilder,
        state_store: SyncStateStore,
        coordinator: RemoteSyncCoordinator,
        remote_factory: Callable[[], RemoteObjectStore | None],
        concurrency: int = 3,
    ):
        self.catalog = catalog
        self.storage = storage
        self.builder = builder
        self.state_store = state_store
        self.coordinator = coordinator
        self.remote_factory = remote_factory
        self.concurrency = max(1, concurrency)
        self.session: SyncSession | None = None

    def run(self, token: CancellationToken, reason: str = "") -> JobResult:
        """
        Execute one sync run.

        Returns:
            SUCCESS when everything reachable was uploaded, RETRY when the
            remote store is unavailable or the run failed unexpectedly,
            FAILURE when the run was cancelled
        """
        try:
            token.raise_if_cancelled()

            remote = self.remote_factory()
            if remote is None:
                logger.warning("Remote store not available, retrying later")
                return JobResult.RETRY

            self.session = SyncSession.objects.create(
                reason=reason[:100],
                start_watermark=self.state_store.get_last_synced_at(),
            )
            logger.info(f"Starting remote sync (session {self.session.id})")

            token.raise_if_cancelled()
            self._upload_snapshot(remote)

            token.raise_if_cancelled()
            watermark, summary = self._upload_changed_photos(remote, token)

            token.raise_if_cancelled()
            self.state_store.advance_last_synced_at(watermark)

            self._finish("partial" if summary.failed else "completed", summary, watermark)
            logger.info(
                f"Remote sync completed: {summary.uploaded} uploaded, "
                f"{summary.failed} failed, {summary.missing} missing"
            )

            self.coordinator.on_worker_finished(True)
            return JobResult.SUCCESS

        except SyncCancelledError:
            logger.info("Remote sync cancelled")
            self._record("cancelled", message="Cancelled")
            self._finish("cancelled")
            self.coordinator.on_worker_finished(False)
            return JobResult.FAILURE

        except Exception as e:
            logger.error(f"Remote sync failed: {e}", exc_info=True)
            self._record("error", message=str(e))
            self._finish("failed", error_message=str(e))
            self.coordinator.on_worker_finished(False)
            return JobResult.RETRY

    def _upload_snapshot(self, remote: RemoteObjectStore) -> None:
        snapshot = self.builder.build()
        data = snapshot.to_bytes()
        logger.debug(f"Uploading {SNAPSHOT_FILENAME} ({len(data)} bytes)")

        remote_id = remote.create_or_update(SNAPSHOT_FILENAME, data, SNAPSHOT_MIME_TYPE)

        self.session.snapshot_uploaded = True
        self.session.save(update_fields=["snapshot_uploaded"])
        self._record(
            "snapshot_uploaded",
            remote_name=SNAPSHOT_FILENAME,
            remote_id=remote_id,
            message=f"{len(snapshot.albums)} albums, {len(snapshot.photos)} photos",
        )

    def _upload_changed_photos(
        self, remote: RemoteObjectStore, token: CancellationToken
    ) -> tuple[int, UploadSummary]:
        """
        Upload originals of photos changed since the last run.

        Returns:
            The watermark to persist and the upload summary. The watermark
            is the time the change query ran, held back below the oldest
            failed photo so it is picked up again next run.
        """
        since = self.state_store.get_last_synced_at()
        watermark = now_millis()
        changed = self.catalog.get_changed_since(since)
        logger.info(f"{len(changed)} photos changed since {since}")

        summary = UploadSummary()
        if not changed:
            return watermark, summary

        chunks = [changed[i:i + self.concurrency] for i in range(0, len(changed), self.concurrency)]

        with ThreadPoolExecutor(max_workers=self.concurrency) as executor:
            for chunk in chunks:
                token.raise_if_cancelled()

                futures = [
                    (photo, executor.submit(self._upload_photo, remote, token, photo, self._source_file(photo)))
                    for photo in chunk
                ]

                cancelled = None
                for photo, future in futures:
                    try:
                        upload = future.result()
                    except SyncCancelledError as e:
                        cancelled = e
                        continue
                    except Exception as e:
                        logger.warning(f"Failed to upload photo {photo.id}: {e}")
                        summary.failed += 1
                        summary.failures.append(ItemResult.failure(f"photo:{photo.id}", e))
                        watermark = min(watermark, photo.updated_at - 1)
                        self._record(
                            "photo_failed",
                            photo_id=photo.id,
                            remote_name=photo_relative_path(photo.album_id, photo.id),
                            message=str(e),
                        )
                        continue

                    if upload.missing:
                        summary.missing += 1
                        self._record("photo_missing", photo_id=photo.id, remote_name=upload.remote_name)
                    else:
                        summary.uploaded += 1
                        self._record(
                            "photo_uploaded",
                            photo_id=photo.id,
                            remote_name=upload.remote_name,
                            remote_id=upload.remote_id or "",
                        )

                if cancelled is not None:
                    raise cancelled

        return watermark, summary

    def _source_file(self, photo: Photo) -> Path | None:
        """Local original for a photo: the storage convention path, else its recorded path."""
        conventional = self.storage.photo_file(photo.album_id, photo.id)
        if conventional.is_file():
            return conventional
        if photo.path and Path(photo.path).is_file():
            return Path(photo.path)
        return None

    def _upload_photo(
        self,
        remote: RemoteObjectStore,
        token: CancellationToken,
        photo: Photo,
        source: Path | None,
    ) -> _Upload:
        """Runs on a worker thread; must not touch the database."""
        upload = _Upload(remote_name=photo_relative_path(photo.album_id, photo.id))

        token.raise_if_cancelled()

        if source is None:
            logger.warning(f"Photo file not found for {photo.id}, skipping upload")
            upload.missing = True
            return upload

        logger.debug(f"Uploading {upload.remote_name}")
        try:
            upload.remote_id = remote.create_or_update(upload.remote_name, source, PHOTO_MIME_TYPE)
        except Exception as e:
            raise TransferError(f"Upload of {upload.remote_name} failed: {e}") from e

        token.raise_if_cancelled()
        return upload

    def _record(self, event_type: str, photo_id: int | None = None, remote_name: str = "",
                remote_id: str = "", message: str = "") -> None:
        if self.session is None:
            return
        SyncEvent.objects.create(
            session=self.session,
            event_type=event_type,
            photo_id=photo_id,
            remote_name=remote_name,
            remote_id=remote_id,
            message=message,
        )

    def _finish(
        self,
        status: str,
        summary: UploadSummary | None = None,
        watermark: int | None = None,
        error_message: str = "",
    ) -> None:
        if self.session is None:
            return
        self.session.status = status
        self.session.completed_at = timezone.now()
        self.session.error_message = error_message
        if summary is not None:
            self.session.photos_uploaded = summary.uploaded
            self.session.photos_failed = summary.failed
            self.session.photos_missing = summary.missing
        if watermark is not None:
            self.session.end_watermark = watermark
        self.session.save()
