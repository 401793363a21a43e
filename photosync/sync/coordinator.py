"""
Debounced scheduling of remote sync jobs and the sync status they drive.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from photosync.preferences import SyncStateStore, UserPreferences

from photosync.models import SyncStatus, now_millis
from photosync.sync.scheduling import (
    BackoffKind,
    BackoffPolicy,
    JobConstraints,
    JobRunner,
    NetworkType,
)

logger = logging.getLogger(__name__)

SYNC_JOB_NAME = "drive_sync_once"


class RemoteSyncCoordinator:
    """
    Turns catalog mutations into at most one pending remote sync job.

    Status moves ``idle -> syncing -> done|error -> idle``; the last step
    is the caller's (``reset_to_idle``). Status and the debounce timestamp
    live in the database so the web and worker processes agree on them.
    """

    def __init__(
        self,
        job_runner: JobRunner,
        state_store: SyncStateStore,
        preferences: UserPreferences,
        debounce_seconds: float = 2,
        backoff_initial_seconds: int = 30,
        backoff_max_seconds: int = 5 * 60 * 60,
        clock: Callable[[], int] = now_millis,
    ):
        self.job_runner = job_runner
        self.state_store = state_store
        self.preferences = preferences
        self.debounce_ms = int(debounce_seconds * 1000)
        self.backoff = BackoffPolicy(
            kind=BackoffKind.EXPONENTIAL,
            initial_seconds=backoff_initial_seconds,
            max_seconds=backoff_max_seconds,
        )
        self.clock = clock

    @property
    def state(self) -> SyncStatus:
        return self.state_store.get_status()

    def request_sync(self, reason: str) -> bool:
        """
        Ask for a remote sync after a local change.

        Requests arriving within the debounce window of the last accepted
        one are dropped.

        Returns:
            True if a job was scheduled
        """
        if not self.state_store.try_accept_request(self.clock(), self.debounce_ms):
            logger.debug(f"Sync request debounced: {reason}")
            return False

        constraints = JobConstraints(
            network=NetworkType.UNMETERED if self._wifi_only() else NetworkType.CONNECTED,
            requires_battery_not_low=True,
        )

        try:
            job_id = self.job_runner.enqueue_unique(
                SYNC_JOB_NAME,
                replace_existing=True,
                constraints=constraints,
                backoff=self.backoff,
            )
        except Exception as e:
            logger.error(f"Failed to schedule sync ({reason}): {e}", exc_info=True)
            self.state_store.set_status(SyncStatus.ERROR)
            return False

        self.state_store.set_status(SyncStatus.SYNCING)
        logger.info(f"Sync requested: {reason} (job {job_id}, network={constraints.network.value})")
        return True

    def _wifi_only(self) -> bool:
        try:
            return self.preferences.wifi_only()
        except Exception as e:
            logger.warning(f"Could not read Wi-Fi preference, assuming Wi-Fi only: {e}")
            return True

    def on_worker_finished(self, success: bool) -> None:
        self.state_store.set_status(SyncStatus.DONE if success else SyncStatus.ERROR)

    def reset_to_idle(self) -> None:
        self.state_store.set_status(SyncStatus.IDLE)

    def cancel(self) -> bool:
        """Ask the runner to stop the pending or running sync job."""
        cancelled = self.job_runner.cancel_unique(SYNC_JOB_NAME)
        if cancelled:
            logger.info("Sync cancellation requested")
        return cancelled
