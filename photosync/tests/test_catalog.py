"""Tests for the catalog store and sync bookkeeping."""

from django.test import TestCase

from photosync.catalog import CatalogStore
from photosync.models import Album, Photo, SyncStatus
from photosync.preferences import SyncStateStore, UserPreferences
from photosync.tests.fakes import make_album, make_photo


class CatalogStoreTests(TestCase):
    def setUp(self):
        self.catalog = CatalogStore()

    def test_get_changed_since_is_strict_and_ordered(self):
        make_photo(1, 1, updated_at=300)
        make_photo(2, 1, updated_at=100)
        make_photo(3, 1, updated_at=200)

        changed = self.catalog.get_changed_since(100)

        self.assertEqual([p.id for p in changed], [3, 1])

    def test_upsert_keeps_given_id_and_timestamp(self):
        album = Album(id=42, name="Kept", updated_at=7)

        self.catalog.upsert_album(album)

        stored = Album.objects.get(pk=42)
        self.assertEqual(stored.name, "Kept")
        self.assertEqual(stored.updated_at, 7)

    def test_update_counts(self):
        make_album(1, updated_at=10)

        changed = self.catalog.update_counts(1, 5, updated_at=99)

        self.assertEqual(changed, 1)
        album = self.catalog.get_album(1)
        self.assertEqual(album.photo_count, 5)
        self.assertEqual(album.updated_at, 99)

    def test_get_missing_returns_none(self):
        self.assertIsNone(self.catalog.get_album(1))
        self.assertIsNone(self.catalog.get_photo(1))

    def test_clear_all(self):
        make_album(1)
        make_photo(1, 1)

        self.catalog.clear_all()

        self.assertEqual(self.catalog.count(), {"albums": 0, "photos": 0})
        self.assertFalse(Photo.objects.exists())


class UserPreferencesTests(TestCase):
    def test_wifi_only_defaults_true(self):
        self.assertTrue(UserPreferences().wifi_only())

    def test_set_wifi_only(self):
        preferences = UserPreferences()
        preferences.set_wifi_only(False)
        self.assertFalse(preferences.wifi_only())

    def test_update_rejects_unknown_theme(self):
        with self.assertRaises(ValueError):
            UserPreferences().update(theme_mode="neon")


class SyncStateStoreTests(TestCase):
    def setUp(self):
        self.store = SyncStateStore()

    def test_initial_state(self):
        self.assertEqual(self.store.get_status(), SyncStatus.IDLE)
        self.assertEqual(self.store.get_last_synced_at(), 0)

    def test_watermark_only_moves_forward(self):
        self.assertTrue(self.store.advance_last_synced_at(500))
        self.assertFalse(self.store.advance_last_synced_at(400))
        self.assertFalse(self.store.advance_last_synced_at(500))

        self.assertEqual(self.store.get_last_synced_at(), 500)

    def test_try_accept_request_enforces_interval(self):
        self.assertTrue(self.store.try_accept_request(10_000, 2_000))
        self.assertFalse(self.store.try_accept_request(11_999, 2_000))
        self.assertTrue(self.store.try_accept_request(12_000, 2_000))

    def test_set_status(self):
        self.store.set_status(SyncStatus.SYNCING)
        self.assertEqual(self.store.get_status(), SyncStatus.SYNCING)
