"""
Django management command to restore the catalog from Google Drive.
"""

from django.core.management.base import BaseCommand, CommandError

from photosync.management.commands.import_backup import MODES
from photosync.services import get_services
from photosync.sync.exceptions import RemoteUnavailableError, SyncError


class Command(BaseCommand):
    help = "Restore albums and photos from the latest Drive backup"

    def add_arguments(self, parser):
        parser.add_argument(
            "--mode",
            choices=sorted(MODES),
            default="merge",
            help="merge: keep the newer copy of each item; replace: clear the catalog first (default: merge)",
        )

    def handle(self, *args, **options):
        services = get_services()

        try:
            remote = services.require_remote()
        except RemoteUnavailableError as e:
            raise CommandError(str(e))

        verbosity = options["verbosity"]

        def on_progress(step, done, total):
            if verbosity > 1:
                self.stdout.write(f"  {step} {done}/{total}")

        try:
            report = services.restore_engine(remote).restore_latest(
                MODES[options["mode"]], on_progress=on_progress
            )
        except SyncError as e:
            raise CommandError(f"Restore failed: {e}")

        self.stdout.write(
            self.style.SUCCESS(
                f"✓ Restore completed:\n"
                f"  - Albums restored: {report.albums_affected}\n"
                f"  - Photos restored: {report.photos_affected}\n"
                f"  - Files missing: {report.files_missing}"
            )
        )

        if report.failures:
            self.stdout.write(
                self.style.WARNING(f"\n⚠ {len(report.failures)} item(s) failed to restore")
            )
