"""
Models for tracking remote sync runs and events.
"""

from django.db import models


class SyncSession(models.Model):
    """
    Records each remote sync run for audit and debugging.

    Tracks the lifecycle of one job execution, the watermark it started
    from and the media upload counts.
    """

    started_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    reason = models.CharField(max_length=100, blank=True)

    # Watermarks (epoch ms)
    start_watermark = models.BigIntegerField(default=0)
    end_watermark = models.BigIntegerField(null=True, blank=True)

    status = models.CharField(
        max_length=20,
        choices=[
            ("running", "Running"),
            ("completed", "Completed"),
            ("partial", "Partial Success"),
            ("cancelled", "Cancelled"),
            ("failed", "Failed"),
        ],
        default="running",
    )

    # Statistics
    snapshot_uploaded = models.BooleanField(default=False)
    photos_uploaded = models.PositiveIntegerField(default=0)
    photos_failed = models.PositiveIntegerField(default=0)
    photos_missing = models.PositiveIntegerField(default=0)

    error_message = models.TextField(blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["-started_at"]),
            models.Index(fields=["status"]),
        ]
        ordering = ["-started_at"]

    def __str__(self):
        return f"Remote sync {self.started_at:%Y-%m-%d %H:%M} - {self.get_status_display()}"


class SyncEvent(models.Model):
    """
    Individual events during a sync session.
    """

    session = models.ForeignKey(
        SyncSession, on_delete=models.CASCADE, related_name="events"
    )
    timestamp = models.DateTimeField(auto_now_add=True)

    event_type = models.CharField(
        max_length=20,
        choices=[
            ("snapshot_uploaded", "Snapshot Uploaded"),
            ("photo_uploaded", "Photo Uploaded"),
            ("photo_failed", "Photo Upload Failed"),
            ("photo_missing", "Photo File Missing"),
            ("cancelled", "Cancelled"),
            ("error", "Error"),
        ],
    )

    photo_id = models.BigIntegerField(null=True, blank=True)
    remote_name = models.TextField(blank=True)
    remote_id = models.CharField(max_length=255, blank=True)
    message = models.TextField(blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["session", "timestamp"]),
            models.Index(fields=["event_type"]),
        ]
        ordering = ["timestamp"]

    def __str__(self):
        return f"{self.get_event_type_display()}: {self.remote_name or self.photo_id or 'N/A'}"


class ScheduledJob(models.Model):
    """
    The latest background task enqueued under a unique job name.

    Kept in the database so the web process, management commands and the
    Celery worker agree on which task is current and whether it was
    cancelled.
    """

    name = models.CharField(max_length=100, unique=True)
    task_id = models.CharField(max_length=255)
    cancel_requested = models.BooleanField(default=False)
    enqueued_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        state = "cancelled" if self.cancel_requested else "active"
        return f"{self.name} -> {self.task_id} ({state})"
