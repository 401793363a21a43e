"""
Django management command to export albums to a backup folder.
"""

from django.core.management.base import BaseCommand, CommandError

from photosync.services import get_services
from photosync.sync.exceptions import SyncError


class Command(BaseCommand):
    help = "Export albums, photos and settings to a local backup folder"

    def add_arguments(self, parser):
        parser.add_argument(
            "folder",
            help="Existing folder to write backup.json and media/ into",
        )
        parser.add_argument(
            "--album",
            type=int,
            action="append",
            dest="album_ids",
            help="Album ID to export (repeatable, default: all albums)",
        )

    def handle(self, *args, **options):
        services = get_services()

        album_ids = options["album_ids"]
        if not album_ids:
            album_ids = [album.id for album in services.catalog.get_all_albums()]

        if not album_ids:
            self.stdout.write(self.style.WARNING("No albums to export"))

        try:
            report = services.local_backup().export_albums(options["folder"], album_ids)
        except SyncError as e:
            raise CommandError(f"Export failed: {e}")

        self.stdout.write(
            self.style.SUCCESS(
                f"✓ Export completed:\n"
                f"  - Albums: {report.albums}\n"
                f"  - Photos: {report.photos}\n"
                f"  - Files copied: {report.files_copied}\n"
                f"  - Files missing: {report.files_missing}\n"
                f"  - Snapshot: {report.snapshot_path}"
            )
        )

        if report.files_missing:
            self.stdout.write(
                self.style.WARNING(f"⚠ {report.files_missing} photo file(s) could not be copied")
            )
