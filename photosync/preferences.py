"""
User preferences and remote sync bookkeeping.

Both live in single-row tables. The two engine-owned timestamps
(``last_synced_at`` and ``last_request_at``) are changed only through
conditional ``UPDATE`` statements so concurrent callers cannot both win a
read-modify-write race.
"""

from __future__ import annotations

import logging

from django.utils import timezone

from photosync.models import SortMode, SyncState, SyncStatus, ThemeMode, UserSettings

logger = logging.getLogger(__name__)


class UserPreferences:
    """Read/write access to the user's settings row."""

    def load(self) -> UserSettings:
        return UserSettings.load()

    def wifi_only(self) -> bool:
        return self.load().wifi_only

    def set_wifi_only(self, value: bool) -> None:
        UserSettings.load()
        UserSettings.objects.filter(pk=1).update(wifi_only=value)

    def update(
        self,
        theme_mode: str | None = None,
        default_sort: str | None = None,
        last_search_query: str | None = None,
    ) -> UserSettings:
        settings = self.load()
        if theme_mode is not None:
            settings.theme_mode = ThemeMode(theme_mode)
        if default_sort is not None:
            settings.default_sort = SortMode(default_sort)
        if last_search_query is not None:
            settings.last_search_query = last_search_query
        settings.save()
        return settings


class SyncStateStore:
    """Persisted sync status, sync watermark and debounce timestamp."""

    def load(self) -> SyncState:
        return SyncState.load()

    def get_status(self) -> SyncStatus:
        return SyncStatus(self.load().status)

    def set_status(self, status: SyncStatus) -> None:
        SyncState.load()
        SyncState.objects.filter(pk=1).update(
            status=status, status_changed_at=timezone.now()
        )

    def get_last_synced_at(self) -> int:
        return self.load().last_synced_at

    def advance_last_synced_at(self, value: int) -> bool:
        """
        Move the sync watermark forward to ``value``.

        Never moves it backwards, so an older job finishing late cannot
        undo a newer job's progress.

        Returns:
            True if the watermark changed
        """
        SyncState.load()
        updated = SyncState.objects.filter(pk=1, last_synced_at__lt=value).update(
            last_synced_at=value
        )
        if updated:
            logger.debug(f"Advanced last_synced_at to {value}")
        return bool(updated)

    def try_accept_request(self, now: int, min_interval_ms: int) -> bool:
        """
        Record a sync request unless one was accepted less than
        ``min_interval_ms`` ago.

        The check and the write are a single compare-and-swap on the row.

        Returns:
            True if this request was accepted
        """
        SyncState.load()
        updated = SyncState.objects.filter(
            pk=1, last_request_at__lte=now - min_interval_ms
        ).update(last_request_at=now)
        return bool(updated)
