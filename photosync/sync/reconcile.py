"""
Latest-wins reconciliation of snapshot entities into the local catalog.

Shared by folder import and remote restore so both apply exactly the same
rule: a missing row is inserted; an existing row is overwritten only when
the incoming ``updated_at`` is strictly greater, or when the whole catalog
is being replaced. Equal timestamps never update, which keeps re-importing
an unchanged snapshot a no-op.

``updated_at`` values are compared as-is. Clocks are assumed comparable
across devices; a device with a clock running ahead keeps winning.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.db import transaction

if TYPE_CHECKING:
    from photosync.catalog import CatalogStore
    from photosync.sync.snapshot import SnapshotAlbum, SnapshotPhoto

from photosync.models import Album, Photo

logger = logging.getLogger(__name__)


class ImportMode(str, enum.Enum):
    MERGE_LATEST_WINS = "merge_latest_wins"
    REPLACE_ALL = "replace_all"


class ReconcileAction(str, enum.Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    SKIPPED = "skipped"


def incoming_wins(incoming_updated_at: int, existing_updated_at: int, mode: ImportMode) -> bool:
    """True if an incoming copy should overwrite the existing row."""
    return mode == ImportMode.REPLACE_ALL or incoming_updated_at > existing_updated_at


@dataclass
class LocalMedia:
    """
    Where a photo's files ended up locally for this reconciliation.

    ``thumb_path`` and ``size_bytes`` are None when the file wasn't
    obtained; the row then keeps its previous value (or the snapshot's on
    insert).
    """

    path: str
    thumb_path: str | None = None
    size_bytes: int | None = None


class Reconciler:
    """Applies snapshot albums and photos to the catalog under one mode."""

    def __init__(self, catalog: CatalogStore, mode: ImportMode):
        self.catalog = catalog
        self.mode = mode

    def plan_photo(self, incoming: SnapshotPhoto) -> ReconcileAction:
        """What ``reconcile_photo`` would do right now, without writing."""
        existing = self.catalog.get_photo(incoming.id)
        return self._plan(incoming.updated_at, existing)

    def _plan(self, incoming_updated_at: int, existing) -> ReconcileAction:
        if existing is None:
            return ReconcileAction.INSERTED
        if incoming_wins(incoming_updated_at, existing.updated_at, self.mode):
            return ReconcileAction.UPDATED
        return ReconcileAction.SKIPPED

    def reconcile_album(self, incoming: SnapshotAlbum) -> ReconcileAction:
        with transaction.atomic():
            existing = self.catalog.get_album(incoming.id)
            action = self._plan(incoming.updated_at, existing)

            if action == ReconcileAction.SKIPPED:
                logger.debug(f"Skipped album {incoming.id} - not newer")
                return action

            album = existing if existing is not None else Album(id=incoming.id)
            album.name = incoming.name
            album.cover_photo_id = incoming.cover_photo_id
            album.photo_count = incoming.photo_count
            album.favorite = incoming.favorite
            album.emoji = incoming.emoji
            album.updated_at = incoming.updated_at

            if action == ReconcileAction.INSERTED:
                self.catalog.upsert_album(album)
            else:
                self.catalog.update_album(album)

        logger.debug(f"{action.value.capitalize()} album '{incoming.name}' ({incoming.id})")
        return action

    def reconcile_photo(self, incoming: SnapshotPhoto, media: LocalMedia) -> ReconcileAction:
        with transaction.atomic():
            existing = self.catalog.get_photo(incoming.id)
            action = self._plan(incoming.updated_at, existing)

            if action == ReconcileAction.SKIPPED:
                logger.debug(f"Skipped photo {incoming.id} - not newer")
                return action

            if existing is None:
                photo = Photo(id=incoming.id)
                thumb_path = media.thumb_path or ""
                size_bytes = media.size_bytes if media.size_bytes is not None else incoming.size_bytes
            else:
                photo = existing
                thumb_path = media.thumb_path if media.thumb_path is not None else existing.thumb_path
                size_bytes = media.size_bytes if media.size_bytes is not None else existing.size_bytes

            photo.album_id = incoming.album_id
            photo.filename = incoming.filename
            photo.path = media.path
            photo.thumb_path = thumb_path
            photo.width = incoming.width
            photo.height = incoming.height
            photo.size_bytes = size_bytes
            photo.caption = incoming.caption
            photo.tags = list(incoming.tags)
            photo.favorite = incoming.favorite
            photo.taken_at = incoming.taken_at
            photo.created_at = incoming.created_at
            photo.updated_at = incoming.updated_at

            if action == ReconcileAction.INSERTED:
                self.catalog.upsert_photo(photo)
            else:
                self.catalog.update_photo(photo)

        logger.debug(f"{action.value.capitalize()} photo '{incoming.filename}' ({incoming.id})")
        return action
