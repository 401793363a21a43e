"""
Django management command to show catalog, storage and remote sync status.
"""

import json
from datetime import datetime, timezone

from django.core.management.base import BaseCommand

from photosync import secrets
from photosync.services import get_services
from photosync.sync.models import SyncSession


class Command(BaseCommand):
    help = "Show catalog size, local storage usage and remote sync status"

    def add_arguments(self, parser):
        parser.add_argument(
            "--json",
            action="store_true",
            help="Output as JSON",
        )

    def handle(self, *args, **options):
        status = self._collect()

        if options["json"]:
            self.stdout.write(json.dumps(status, indent=2, default=str))
        else:
            self._output_table(status)

    def _collect(self) -> dict:
        services = get_services()
        state = services.state_store.load()
        last_session = SyncSession.objects.first()

        return {
            "catalog": services.catalog.count(),
            "storage": {
                **services.storage.get_storage_stats(),
                "free_bytes": services.storage.free_space_bytes(),
            },
            "drive_connected": secrets.has_tokens(),
            "sync": {
                "status": state.status,
                "last_synced_at": state.last_synced_at,
                "last_session": {
                    "started_at": last_session.started_at,
                    "status": last_session.status,
                    "photos_uploaded": last_session.photos_uploaded,
                    "photos_failed": last_session.photos_failed,
                }
                if last_session
                else None,
            },
        }

    def _output_table(self, status: dict):
        catalog = status["catalog"]
        storage = status["storage"]
        sync = status["sync"]

        self.stdout.write("\n" + "=" * 60)
        self.stdout.write(f"Albums: {catalog['albums']}    Photos: {catalog['photos']}")
        self.stdout.write(
            f"Stored originals: {storage['photo_count']}    Thumbnails: {storage['thumb_count']}"
        )
        self.stdout.write(
            f"Used: {storage['total_size_bytes']:,} bytes    Free: {storage['free_bytes']:,} bytes"
        )
        self.stdout.write("=" * 60)

        if status["drive_connected"]:
            self.stdout.write(self.style.SUCCESS("Google Drive: connected"))
        else:
            self.stdout.write(self.style.WARNING("Google Drive: not connected"))

        last_synced = "never"
        if sync["last_synced_at"]:
            last_synced = datetime.fromtimestamp(
                sync["last_synced_at"] / 1000, tz=timezone.utc
            ).strftime("%Y-%m-%d %H:%M")
        self.stdout.write(f"Sync status: {sync['status']}    Last synced: {last_synced}")

        session = sync["last_session"]
        if session:
            self.stdout.write(
                f"Last run: {session['started_at']:%Y-%m-%d %H:%M} {session['status']} "
                f"({session['photos_uploaded']} uploaded, {session['photos_failed']} failed)"
            )
