"""Tests for the Google Drive appDataFolder client."""

import shutil
import tempfile
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock, patch

from django.test import TestCase, override_settings

from photosync import secrets
from photosync.providers.google_drive import (
    DriveAppDataClient,
    GoogleDriveError,
    TokenExpiredError,
    _escape_query_value,
    get_remote_store,
)


class FakeDownloader:
    """Stand-in for MediaIoBaseDownload writing fixed bytes in one chunk."""

    content = b"remote-bytes"

    def __init__(self, fh, request):
        self.fh = fh

    def next_chunk(self):
        self.fh.write(self.content)
        return None, True


class FailingDownloader(FakeDownloader):
    def next_chunk(self):
        self.fh.write(b"partial")
        raise IOError("connection reset")


class DriveAppDataClientTests(TestCase):
    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.secrets_file = self.temp_dir / "test_secrets.json"
        self.settings_override = override_settings(SECRETS_FILE=self.secrets_file)
        self.settings_override.enable()
        secrets.set_tokens(
            access_token="test_token",
            refresh_token="test_refresh",
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        )

        build_patcher = patch("photosync.providers.google_drive.build")
        self.mock_build = build_patcher.start()
        self.addCleanup(build_patcher.stop)
        self.service = MagicMock()
        self.mock_build.return_value = self.service

        self.client = DriveAppDataClient()

    def tearDown(self):
        self.settings_override.disable()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_get_credentials(self):
        creds = self.client._get_credentials()
        self.assertEqual(creds.token, "test_token")
        self.assertEqual(creds.refresh_token, "test_refresh")

    def test_missing_tokens(self):
        secrets.delete_tokens()
        with self.assertRaises(TokenExpiredError):
            DriveAppDataClient()._get_credentials()

    def test_fresh_token_is_not_refreshed(self):
        self.assertFalse(self.client.refresh_token_if_needed())

    @patch("photosync.providers.google_drive.Credentials.refresh")
    def test_expiring_token_is_refreshed_and_saved(self, mock_refresh):
        secrets.set_tokens(
            access_token="old",
            refresh_token="test_refresh",
            expires_at=datetime.now(timezone.utc) + timedelta(minutes=1),
        )
        client = DriveAppDataClient()

        self.assertTrue(client.refresh_token_if_needed())

        mock_refresh.assert_called_once()
        self.assertIsNotNone(secrets.get_tokens())

    @patch(
        "photosync.providers.google_drive.Credentials.refresh",
        side_effect=Exception("invalid_grant"),
    )
    def test_refresh_failure(self, mock_refresh):
        secrets.set_tokens(access_token="old", refresh_token="test_refresh")
        client = DriveAppDataClient()

        with self.assertRaises(TokenExpiredError):
            client.refresh_token_if_needed()

    def test_find_latest_by_name_queries_app_data(self):
        self.service.files().list().execute.return_value = {
            "files": [
                {"id": "abc", "name": "backup.json", "modifiedTime": "2024-01-15T10:30:00.000Z"}
            ]
        }

        found = self.client.find_latest_by_name("backup.json")

        self.assertEqual(found.id, "abc")
        self.assertEqual(found.modified_time.year, 2024)
        kwargs = self.service.files().list.call_args.kwargs
        self.assertEqual(kwargs["spaces"], "appDataFolder")
        self.assertEqual(kwargs["q"], "name = 'backup.json' and trashed = false")
        self.assertEqual(kwargs["orderBy"], "modifiedTime desc")

    def test_find_latest_by_name_none(self):
        self.service.files().list().execute.return_value = {"files": []}
        self.assertIsNone(self.client.find_latest_by_name("photos/1/2.jpg"))

    def test_escape_query_value(self):
        self.assertEqual(_escape_query_value("it's"), "it\\'s")

    @patch("photosync.providers.google_drive.MediaIoBaseUpload")
    def test_create_when_absent(self, mock_upload):
        self.service.files().list().execute.return_value = {"files": []}
        self.service.files().create().execute.return_value = {"id": "new-id"}

        object_id = self.client.create_or_update("backup.json", b"{}", "application/json")

        self.assertEqual(object_id, "new-id")
        body = self.service.files().create.call_args.kwargs["body"]
        self.assertEqual(body, {"name": "backup.json", "parents": ["appDataFolder"]})

    @patch("photosync.providers.google_drive.MediaFileUpload")
    def test_update_when_present(self, mock_upload):
        self.service.files().list().execute.return_value = {"files": [{"id": "old-id", "name": "photos/1/2.jpg"}]}
        self.service.files().update().execute.return_value = {"id": "old-id"}

        object_id = self.client.create_or_update("photos/1/2.jpg", self.temp_dir / "a.jpg", "image/jpeg")

        self.assertEqual(object_id, "old-id")
        kwargs = self.service.files().update.call_args.kwargs
        self.assertEqual(kwargs["fileId"], "old-id")
        self.assertNotIn("parents", kwargs["body"])
        mock_upload.assert_called_once_with(str(self.temp_dir / "a.jpg"), mimetype="image/jpeg", resumable=True)

    @patch("photosync.providers.google_drive.MediaIoBaseUpload")
    def test_upload_without_id(self, mock_upload):
        self.service.files().list().execute.return_value = {"files": []}
        self.service.files().create().execute.return_value = {}

        with self.assertRaises(GoogleDriveError):
            self.client.create_or_update("backup.json", b"{}", "application/json")

    @patch("photosync.providers.google_drive.MediaIoBaseDownload", FakeDownloader)
    def test_download(self):
        destination = self.temp_dir / "out" / "file.jpg"

        self.assertTrue(self.client.download("abc", destination))
        self.assertEqual(destination.read_bytes(), b"remote-bytes")

    @patch("photosync.providers.google_drive.MediaIoBaseDownload", FailingDownloader)
    def test_download_failure_removes_partial_file(self):
        destination = self.temp_dir / "file.jpg"

        self.assertFalse(self.client.download("abc", destination))
        self.assertFalse(destination.exists())

    def test_service_is_built_per_thread(self):
        self.client._get_service()
        self.client._get_service()
        self.assertEqual(self.mock_build.call_count, 1)

        thread = threading.Thread(target=self.client._get_service)
        thread.start()
        thread.join()

        self.assertEqual(self.mock_build.call_count, 2)


class GetRemoteStoreTests(TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.secrets_file = Path(self.temp_dir) / "test_secrets.json"

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_no_tokens(self):
        with override_settings(SECRETS_FILE=self.secrets_file):
            self.assertIsNone(get_remote_store())

    @patch.object(DriveAppDataClient, "refresh_token_if_needed", side_effect=TokenExpiredError("revoked"))
    def test_unrefreshable_tokens(self, mock_refresh):
        with override_settings(SECRETS_FILE=self.secrets_file):
            secrets.set_tokens(access_token="a", refresh_token="r")
            self.assertIsNone(get_remote_store())

    @patch.object(DriveAppDataClient, "refresh_token_if_needed", return_value=False)
    def test_connected(self, mock_refresh):
        with override_settings(SECRETS_FILE=self.secrets_file):
            secrets.set_tokens(access_token="a", refresh_token="r")
            self.assertIsInstance(get_remote_store(), DriveAppDataClient)
