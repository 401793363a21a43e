"""
Composition root.

Builds the stores and engines once, at app startup, and hands them out
as explicit dependencies. Nothing else in the package constructs its own
collaborators.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from django.apps import apps
from django.conf import settings

if TYPE_CHECKING:
    from photosync.providers.base import RemoteObjectStore
    from photosync.sync.scheduling import JobRunner

from photosync.catalog import CatalogStore
from photosync.preferences import SyncStateStore, UserPreferences
from photosync.storage import MediaStorage
from photosync.sync.builder import SnapshotBuilder
from photosync.sync.coordinator import RemoteSyncCoordinator
from photosync.sync.exceptions import RemoteUnavailableError
from photosync.sync.job import RemoteSyncJob
from photosync.sync.local_backup import LocalBackupEngine
from photosync.sync.restore import RemoteRestoreEngine


@dataclass
class Services:
    catalog: CatalogStore
    storage: MediaStorage
    preferences: UserPreferences
    state_store: SyncStateStore
    builder: SnapshotBuilder
    coordinator: RemoteSyncCoordinator
    remote_factory: Callable[[], RemoteObjectStore | None]
    upload_concurrency: int = 3

    def require_remote(self) -> RemoteObjectStore:
        """
        Raises:
            RemoteUnavailableError: If Google Drive isn't connected
        """
        remote = self.remote_factory()
        if remote is None:
            raise RemoteUnavailableError("Google Drive is not connected. Run connect_drive first.")
        return remote

    def local_backup(self) -> LocalBackupEngine:
        return LocalBackupEngine(self.catalog, self.storage, self.builder)

    def restore_engine(self, remote: RemoteObjectStore) -> RemoteRestoreEngine:
        return RemoteRestoreEngine(self.catalog, self.storage, remote)

    def sync_job(self) -> RemoteSyncJob:
        return RemoteSyncJob(
            catalog=self.catalog,
            storage=self.storage,
            builder=self.builder,
            state_store=self.state_store,
            coordinator=self.coordinator,
            remote_factory=self.remote_factory,
            concurrency=self.upload_concurrency,
        )


def build_services(
    job_runner: JobRunner | None = None,
    remote_factory: Callable[[], RemoteObjectStore | None] | None = None,
) -> Services:
    """
    Wire up the default object graph from Django settings.

    Args:
        job_runner: Runner for remote sync jobs (default: Celery)
        remote_factory: Returns an authenticated remote store or None
            (default: Google Drive appDataFolder)
    """
    if job_runner is None:
        from photosync.tasks import CeleryJobRunner

        job_runner = CeleryJobRunner()

    if remote_factory is None:
        from photosync.providers.google_drive import get_remote_store

        remote_factory = get_remote_store

    catalog = CatalogStore()
    preferences = UserPreferences()
    state_store = SyncStateStore()

    return Services(
        catalog=catalog,
        storage=MediaStorage(settings.MEDIA_STORE_ROOT),
        preferences=preferences,
        state_store=state_store,
        builder=SnapshotBuilder(catalog, preferences, settings.PHOTOSYNC_APP_VERSION),
        coordinator=RemoteSyncCoordinator(
            job_runner=job_runner,
            state_store=state_store,
            preferences=preferences,
            debounce_seconds=settings.SYNC_DEBOUNCE_SECONDS,
            backoff_initial_seconds=settings.SYNC_BACKOFF_INITIAL_SECONDS,
            backoff_max_seconds=settings.SYNC_BACKOFF_MAX_SECONDS,
        ),
        remote_factory=remote_factory,
        upload_concurrency=settings.SYNC_UPLOAD_CONCURRENCY,
    )


def get_services() -> Services:
    """The services built when the photosync app became ready."""
    return apps.get_app_config("photosync").services
