"""
Django management command to schedule a remote sync.
"""

from django.core.management.base import BaseCommand

from photosync.services import get_services


class Command(BaseCommand):
    help = "Schedule a background sync to Google Drive"

    def add_arguments(self, parser):
        parser.add_argument(
            "--reason",
            default="manual",
            help="Why the sync is requested (default: manual)",
        )
        parser.add_argument(
            "--cancel",
            action="store_true",
            help="Cancel the pending or running sync instead",
        )
        parser.add_argument(
            "--reset",
            action="store_true",
            help="Reset the sync status to idle",
        )

    def handle(self, *args, **options):
        coordinator = get_services().coordinator

        if options["reset"]:
            coordinator.reset_to_idle()
            self.stdout.write("Sync status reset to idle")
            return

        if options["cancel"]:
            if coordinator.cancel():
                self.stdout.write(self.style.SUCCESS("✓ Sync cancellation requested"))
            else:
                self.stdout.write("No sync job to cancel")
            return

        if coordinator.request_sync(options["reason"]):
            self.stdout.write(self.style.SUCCESS("✓ Sync scheduled"))
        else:
            self.stdout.write(self.style.WARNING("Sync not scheduled (debounced or failed)"))

        self.stdout.write(f"Status: {coordinator.state.label}")
