"""
Django management command to run a remote sync in the foreground.
"""

from django.core.management.base import BaseCommand, CommandError

from photosync.services import get_services
from photosync.sync.cancellation import CancellationToken
from photosync.sync.scheduling import JobResult


class Command(BaseCommand):
    help = "Upload the snapshot and changed photos to Google Drive now"

    def handle(self, *args, **options):
        job = get_services().sync_job()

        self.stdout.write("Syncing to Google Drive...")
        try:
            result = job.run(CancellationToken(), reason="sync_now")
        except KeyboardInterrupt:
            raise CommandError("Sync interrupted")

        if result == JobResult.SUCCESS:
            session = job.session
            self.stdout.write(
                self.style.SUCCESS(
                    f"✓ Sync completed:\n"
                    f"  - Photos uploaded: {session.photos_uploaded}\n"
                    f"  - Photos failed: {session.photos_failed}\n"
                    f"  - Photos missing: {session.photos_missing}"
                )
            )
        elif job.session is None:
            raise CommandError("Google Drive is not connected. Run connect_drive first.")
        else:
            raise CommandError(f"Sync failed: {job.session.error_message or result.value}")
