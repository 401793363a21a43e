"""Tests for restoring from the remote snapshot."""

import shutil
import tempfile
from pathlib import Path

from django.test import TestCase

from photosync.catalog import CatalogStore
from photosync.models import Album, Photo
from photosync.preferences import UserPreferences
from photosync.storage import MediaStorage
from photosync.sync.builder import SnapshotBuilder
from photosync.sync.exceptions import SnapshotCorruptError, TransferError, UnsupportedSchemaError
from photosync.sync.reconcile import ImportMode
from photosync.sync.restore import RemoteRestoreEngine
from photosync.tests.fakes import FakeRemoteStore, make_album, make_photo


class RemoteRestoreTests(TestCase):
    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.catalog = CatalogStore()
        self.storage = MediaStorage(self.temp_dir / "store")
        self.remote = FakeRemoteStore()
        self.engine = RemoteRestoreEngine(self.catalog, self.storage, self.remote)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def publish_catalog(self):
        """Put a snapshot of two albums / three photos on the remote, then clear locally."""
        make_album(1, name="Trip", updated_at=100)
        make_album(2, name="Pets", updated_at=100)
        make_photo(11, 1, updated_at=100, size_bytes=999)
        make_photo(12, 1, updated_at=100)
        make_photo(21, 2, updated_at=100)

        snapshot = SnapshotBuilder(self.catalog, UserPreferences()).build()
        self.remote.put("backup.json", snapshot.to_bytes())
        self.remote.put("photos/1/11.jpg", b"one-one")
        self.remote.put("photos/1/12.jpg", b"one-two")
        # photos/2/21.jpg was never uploaded
        self.catalog.clear_all()

    def test_no_remote_snapshot(self):
        make_album(1, name="Local")

        report = self.engine.restore_latest(ImportMode.REPLACE_ALL)

        self.assertEqual(report.as_tuple(), (0, 0))
        self.assertTrue(Album.objects.filter(pk=1).exists())

    def test_restore_into_empty_catalog(self):
        self.publish_catalog()

        report = self.engine.restore_latest(ImportMode.MERGE_LATEST_WINS)

        self.assertEqual(report.as_tuple(), (2, 3))
        self.assertEqual(report.files_missing, 1)
        self.assertEqual(report.failures, [])

        photo = Photo.objects.get(pk=11)
        self.assertEqual(Path(photo.path).read_bytes(), b"one-one")
        self.assertEqual(photo.path, str(self.storage.photo_file(1, 11)))
        self.assertEqual(photo.size_bytes, len(b"one-one"))
        self.assertEqual(photo.thumb_path, "")

    def test_missing_file_restores_metadata_only(self):
        self.publish_catalog()

        self.engine.restore_latest()

        photo = Photo.objects.get(pk=21)
        self.assertFalse(Path(photo.path).exists())
        self.assertEqual(photo.album_id, 2)

    def test_second_restore_downloads_nothing(self):
        self.publish_catalog()
        self.engine.restore_latest()
        self.remote.downloads.clear()

        report = self.engine.restore_latest()

        self.assertEqual(report.as_tuple(), (0, 0))
        # 21 is looked up again but has no remote copy
        self.assertEqual(sorted(self.remote.downloads), ["backup.json"])

    def test_failed_download_is_counted(self):
        self.publish_catalog()
        self.remote.fail_downloads.add("photos/1/12.jpg")

        report = self.engine.restore_latest()

        self.assertEqual(report.files_missing, 2)
        self.assertEqual(report.photos_affected, 3)
        self.assertFalse(self.storage.photo_file(1, 12).exists())

    def test_latest_wins_against_local_rows(self):
        self.publish_catalog()
        make_album(1, name="Newer local", updated_at=500)
        make_album(2, name="Older local", updated_at=50)

        report = self.engine.restore_latest(ImportMode.MERGE_LATEST_WINS)

        self.assertEqual(report.albums_updated, 1)
        self.assertEqual(report.albums_inserted, 0)
        self.assertEqual(Album.objects.get(pk=1).name, "Newer local")
        self.assertEqual(Album.objects.get(pk=2).name, "Pets")

    def test_replace_all(self):
        self.publish_catalog()
        make_album(7, name="Local only", updated_at=10_000)

        report = self.engine.restore_latest(ImportMode.REPLACE_ALL)

        self.assertEqual(report.as_tuple(), (2, 3))
        self.assertFalse(Album.objects.filter(pk=7).exists())

    def test_progress_steps(self):
        self.publish_catalog()
        steps = []

        self.engine.restore_latest(ImportMode.REPLACE_ALL, on_progress=lambda s, d, t: steps.append(s))

        self.assertEqual(steps[0], "Checking for backup...")
        self.assertIn("Downloading backup...", steps)
        self.assertIn("Parsing backup data...", steps)
        self.assertIn("Clearing existing data...", steps)
        self.assertEqual(steps.count("Restoring albums..."), 2)
        self.assertEqual(steps.count("Restoring photos & downloading files"), 3)

    def test_corrupt_remote_snapshot_is_fatal(self):
        make_album(1, name="Untouched")
        self.remote.put("backup.json", b"{nope")

        with self.assertRaises(SnapshotCorruptError):
            self.engine.restore_latest(ImportMode.REPLACE_ALL)

        self.assertTrue(Album.objects.filter(pk=1).exists())
        self.assertEqual(list(self.storage.tmp_dir.iterdir()), [])

    def test_unsupported_remote_schema_is_fatal(self):
        self.remote.put("backup.json", b'{"schemaVersion": 3, "createdAt": 1}')

        with self.assertRaises(UnsupportedSchemaError):
            self.engine.restore_latest()

    def test_snapshot_download_failure_is_fatal(self):
        self.remote.put("backup.json", b"{}")
        self.remote.fail_downloads.add("backup.json")

        with self.assertRaises(TransferError):
            self.engine.restore_latest()
