"""
Django management command to import a local backup folder.
"""

from django.core.management.base import BaseCommand, CommandError

from photosync.services import get_services
from photosync.sync.exceptions import SyncError
from photosync.sync.reconcile import ImportMode

MODES = {
    "merge": ImportMode.MERGE_LATEST_WINS,
    "replace": ImportMode.REPLACE_ALL,
}


class Command(BaseCommand):
    help = "Import a backup folder into the catalog"

    def add_arguments(self, parser):
        parser.add_argument(
            "folder",
            help="Folder containing backup.json",
        )
        parser.add_argument(
            "--mode",
            choices=sorted(MODES),
            default="merge",
            help="merge: keep the newer copy of each item; replace: clear the catalog first (default: merge)",
        )

    def handle(self, *args, **options):
        mode = MODES[options["mode"]]

        try:
            report = get_services().local_backup().import_from_folder(options["folder"], mode)
        except SyncError as e:
            raise CommandError(f"Import failed: {e}")

        self.stdout.write(
            self.style.SUCCESS(
                f"✓ Import completed:\n"
                f"  - Albums inserted: {report.albums_inserted}\n"
                f"  - Albums updated: {report.albums_updated}\n"
                f"  - Photos inserted: {report.photos_inserted}\n"
                f"  - Photos updated: {report.photos_updated}\n"
                f"  - Photos without file: {report.photos_skipped_missing_file}"
            )
        )

        if report.failures:
            self.stdout.write(
                self.style.WARNING(f"\n⚠ {len(report.failures)} item(s) failed to import")
            )
            for i, failure in enumerate(report.failures[:5], 1):
                self.stdout.write(f"  {i}. {failure.key}: {failure.error}")
            if len(report.failures) > 5:
                self.stdout.write(f"  ... and {len(report.failures) - 5} more")
