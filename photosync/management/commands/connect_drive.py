"""
Django management command to connect the Google Drive account via OAuth.
"""

from django.core.management.base import BaseCommand, CommandError

from photosync import secrets
from photosync.providers.google_drive import (
    DriveAppDataClient,
    exchange_code_for_tokens,
    get_authorization_url,
)


class Command(BaseCommand):
    help = "Connect Google Drive for remote sync"

    def add_arguments(self, parser):
        parser.add_argument(
            "--code",
            help="Authorization code returned by Google",
        )
        parser.add_argument(
            "--disconnect",
            action="store_true",
            help="Forget the stored Drive tokens",
        )

    def handle(self, *args, **options):
        if options["disconnect"]:
            if secrets.delete_tokens():
                self.stdout.write(self.style.SUCCESS("✓ Google Drive disconnected"))
            else:
                self.stdout.write("Google Drive was not connected")
            return

        if options["code"]:
            self._finish(options["code"])
        else:
            self._start()

    def _start(self):
        try:
            auth_url, _ = get_authorization_url()
        except Exception as e:
            raise CommandError(
                f"Google OAuth not configured: {e}\n"
                "Set GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET in settings,\n"
                "or add them to the credentials file under oauth_client"
            )

        self.stdout.write("\n" + "=" * 60)
        self.stdout.write(self.style.SUCCESS("Google Drive OAuth"))
        self.stdout.write("=" * 60)
        self.stdout.write("\n1. Open this URL in your browser:\n")
        self.stdout.write(self.style.WARNING(auth_url))
        self.stdout.write("\n2. Sign in and authorize the application")
        self.stdout.write("\n3. Run: manage.py connect_drive --code <CODE>\n")
        self.stdout.write("=" * 60)

    def _finish(self, code: str):
        try:
            tokens = exchange_code_for_tokens(code)
        except Exception as e:
            raise CommandError(f"Failed to exchange authorization code: {e}")

        if not tokens.get("refresh_token"):
            raise CommandError("Google returned no refresh token; revoke access and try again")

        secrets.set_tokens(
            access_token=tokens["access_token"],
            refresh_token=tokens["refresh_token"],
            expires_at=tokens.get("expires_at"),
            email=tokens.get("email"),
        )

        try:
            info = DriveAppDataClient().get_user_info()
        except Exception as e:
            raise CommandError(f"Tokens saved but connection test failed: {e}")

        self.stdout.write(
            self.style.SUCCESS(f"✓ Connected Google Drive for {info.get('email') or tokens.get('email')}")
        )
