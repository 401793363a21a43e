"""
Catalog store for albums and photos.

Thin wrapper over the ORM so the backup and sync engines receive the
catalog as an explicit dependency instead of reaching into model managers.
Writes store exactly what they are given: timestamps are never bumped here,
so reconciliation can copy ``updated_at`` verbatim from a snapshot.
"""

from __future__ import annotations

import logging
from typing import Iterable

from django.db import transaction

from photosync.models import Album, Photo, now_millis

logger = logging.getLogger(__name__)


class CatalogStore:
    """Point lookups, scans and writes over the album/photo tables."""

    # Albums

    def get_album(self, album_id: int) -> Album | None:
        return Album.objects.filter(pk=album_id).first()

    def get_all_albums(self) -> list[Album]:
        return list(Album.objects.order_by("id"))

    def get_albums(self, album_ids: Iterable[int]) -> list[Album]:
        """Albums for the given ids, in request order; unknown ids are skipped."""
        albums = []
        for album_id in album_ids:
            album = self.get_album(album_id)
            if album is None:
                logger.warning(f"Album {album_id} not found, skipping")
                continue
            albums.append(album)
        return albums

    def upsert_album(self, album: Album) -> Album:
        """Insert or overwrite an album row keeping its id."""
        album.save()
        return album

    def update_album(self, album: Album) -> Album:
        album.save(force_update=True)
        return album

    def update_counts(self, album_id: int, count: int, updated_at: int | None = None) -> int:
        """Set an album's photo count. Returns the number of rows changed."""
        return Album.objects.filter(pk=album_id).update(
            photo_count=count,
            updated_at=updated_at if updated_at is not None else now_millis(),
        )

    # Photos

    def get_photo(self, photo_id: int) -> Photo | None:
        return Photo.objects.filter(pk=photo_id).first()

    def get_all_photos(self) -> list[Photo]:
        return list(Photo.objects.order_by("-updated_at", "id"))

    def get_photos_in_album(self, album_id: int) -> list[Photo]:
        return list(Photo.objects.filter(album_id=album_id).order_by("id"))

    def get_changed_since(self, since: int) -> list[Photo]:
        """Photos whose ``updated_at`` is strictly after ``since``, oldest first."""
        return list(Photo.objects.filter(updated_at__gt=since).order_by("updated_at", "id"))

    def upsert_photo(self, photo: Photo) -> Photo:
        photo.save()
        return photo

    def update_photo(self, photo: Photo) -> Photo:
        photo.save(force_update=True)
        return photo

    # Bulk

    def count(self) -> dict:
        return {
            "albums": Album.objects.count(),
            "photos": Photo.objects.count(),
        }

    def clear_all(self) -> None:
        """Remove every album and photo row."""
        with transaction.atomic():
            photos, _ = Photo.objects.all().delete()
            albums, _ = Album.objects.all().delete()
        logger.info(f"Cleared catalog: {albums} albums, {photos} photos")
