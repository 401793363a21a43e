import time

from django.db import models


def now_millis() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


class ThemeMode(models.TextChoices):
    SYSTEM = "system", "System"
    LIGHT = "light", "Light"
    DARK = "dark", "Dark"


class SortMode(models.TextChoices):
    NAME_ASC = "name_asc", "Name (A-Z)"
    NAME_DESC = "name_desc", "Name (Z-A)"
    DATE_NEW = "date_new", "Newest first"
    DATE_OLD = "date_old", "Oldest first"
    FAV_FIRST = "fav_first", "Favorites first"


class SyncStatus(models.TextChoices):
    IDLE = "idle", "Idle"
    SYNCING = "syncing", "Syncing"
    DONE = "done", "Done"
    ERROR = "error", "Error"


class Album(models.Model):
    """
    A photo album.

    ``updated_at`` is epoch milliseconds and is the only key used when
    reconciling an album against a snapshot copy.
    """

    name = models.CharField(max_length=255)
    cover_photo_id = models.BigIntegerField(null=True, blank=True)
    photo_count = models.PositiveIntegerField(default=0)
    favorite = models.BooleanField(default=False)
    emoji = models.CharField(max_length=32, null=True, blank=True)
    updated_at = models.BigIntegerField(default=now_millis)

    class Meta:
        indexes = [
            models.Index(fields=["name"]),
            models.Index(fields=["updated_at"]),
        ]

    def __str__(self):
        return f"{self.name} ({self.id})"


class Photo(models.Model):
    """
    A photo and the local location of its original and thumbnail.

    ``album_id`` is a plain column rather than a foreign key: snapshots may
    carry photos whose album was not exported, and those are kept.
    """

    album_id = models.BigIntegerField(db_index=True)
    filename = models.CharField(max_length=255)
    path = models.TextField(blank=True)
    thumb_path = models.TextField(blank=True)
    width = models.PositiveIntegerField(default=0)
    height = models.PositiveIntegerField(default=0)
    size_bytes = models.BigIntegerField(default=0)
    caption = models.TextField(blank=True, default="")
    tags = models.JSONField(default=list, blank=True)
    favorite = models.BooleanField(default=False)
    taken_at = models.BigIntegerField(default=now_millis)
    created_at = models.BigIntegerField(default=now_millis)
    updated_at = models.BigIntegerField(default=now_millis)

    class Meta:
        indexes = [
            models.Index(fields=["album_id", "created_at"]),
            models.Index(fields=["filename"]),
            models.Index(fields=["updated_at"]),
        ]

    def __str__(self):
        return f"{self.filename} (album {self.album_id})"


class UserSettings(models.Model):
    """Single-row user preferences carried in every snapshot."""

    theme_mode = models.CharField(
        max_length=10, choices=ThemeMode.choices, default=ThemeMode.SYSTEM
    )
    default_sort = models.CharField(
        max_length=10, choices=SortMode.choices, default=SortMode.DATE_NEW
    )
    last_search_query = models.CharField(max_length=255, blank=True, default="")
    wifi_only = models.BooleanField(default=True)

    class Meta:
        verbose_name_plural = "User settings"

    def __str__(self):
        return f"Settings (theme={self.theme_mode}, sort={self.default_sort})"

    @classmethod
    def load(cls) -> "UserSettings":
        settings, _ = cls.objects.get_or_create(pk=1)
        return settings


class SyncState(models.Model):
    """
    Single-row remote sync bookkeeping.

    ``last_synced_at`` and ``last_request_at`` are only ever changed through
    conditional updates (see ``photosync.preferences.SyncStateStore``).
    """

    status = models.CharField(
        max_length=10, choices=SyncStatus.choices, default=SyncStatus.IDLE
    )
    last_synced_at = models.BigIntegerField(default=0)
    last_request_at = models.BigIntegerField(default=0)
    status_changed_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Sync {self.get_status_display()} (last synced {self.last_synced_at})"

    @classmethod
    def load(cls) -> "SyncState":
        state, _ = cls.objects.get_or_create(pk=1)
        return state


from photosync.sync.models import ScheduledJob, SyncEvent, SyncSession  # noqa: E402,F401
