"""
Builds snapshots from the live catalog.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from photosync.catalog import CatalogStore
    from photosync.preferences import UserPreferences

from photosync.models import now_millis
from photosync.sync.snapshot import (
    SnapshotAlbum,
    SnapshotModel,
    SnapshotPhoto,
    SnapshotSettings,
)

logger = logging.getLogger(__name__)


class SnapshotBuilder:
    """
    Reads the catalog and settings and produces a ``SnapshotModel``.

    Pure function of store state at call time. Store errors propagate
    unchanged: a snapshot is either complete or not built at all.
    """

    def __init__(
        self,
        catalog: CatalogStore,
        preferences: UserPreferences,
        app_version: str = "1.0",
    ):
        self.catalog = catalog
        self.preferences = preferences
        self.app_version = app_version

    def build(self, album_ids: Iterable[int] | None = None) -> SnapshotModel:
        """
        Build a snapshot.

        Args:
            album_ids: Restrict the snapshot to these albums and their
                photos. None means the whole catalog.

        Returns:
            A freshly stamped SnapshotModel
        """
        if album_ids is None:
            albums = self.catalog.get_all_albums()
            photos = self.catalog.get_all_photos()
        else:
            albums = self.catalog.get_albums(album_ids)
            photos = [
                photo
                for album in albums
                for photo in self.catalog.get_photos_in_album(album.id)
            ]

        snapshot = SnapshotModel(
            created_at=now_millis(),
            app_version=self.app_version,
            settings=self._build_settings(),
            albums=[SnapshotAlbum.from_album(a) for a in albums],
            photos=[SnapshotPhoto.from_photo(p) for p in photos],
        )

        logger.debug(
            f"Built snapshot with {len(snapshot.albums)} albums and {len(snapshot.photos)} photos"
        )
        return snapshot

    def _build_settings(self) -> SnapshotSettings:
        settings = self.preferences.load()
        return SnapshotSettings(
            theme_mode=settings.theme_mode,
            default_sort=settings.default_sort,
            last_search_query=settings.last_search_query,
        )
