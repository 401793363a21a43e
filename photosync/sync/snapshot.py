"""
Versioned, portable snapshot of the catalog.

A snapshot is built fresh for every export/upload and parsed fresh for
every import/restore. The wire format is pretty-printed UTF-8 JSON with
camelCase keys; unknown keys are ignored on read and optional keys fall
back to their defaults, so newer writers stay readable as long as the
schema version matches.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field

from photosync.models import Album, Photo, SortMode, ThemeMode
from photosync.sync.exceptions import SnapshotCorruptError, UnsupportedSchemaError
from photosync.sync.paths import photo_relative_path

logger = logging.getLogger(__name__)

SNAPSHOT_SCHEMA_VERSION = 1
SNAPSHOT_FILENAME = "backup.json"
SNAPSHOT_MIME_TYPE = "application/json"


@dataclass
class SnapshotSettings:
    """User settings carried in a snapshot."""

    theme_mode: str = ThemeMode.SYSTEM.value
    default_sort: str = SortMode.DATE_NEW.value
    last_search_query: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "SnapshotSettings":
        theme_mode = data.get("themeMode", ThemeMode.SYSTEM.value)
        if theme_mode not in ThemeMode.values:
            logger.warning(f"Unknown theme mode {theme_mode!r} in snapshot, using default")
            theme_mode = ThemeMode.SYSTEM.value

        default_sort = data.get("defaultSort", SortMode.DATE_NEW.value)
        if default_sort not in SortMode.values:
            logger.warning(f"Unknown sort mode {default_sort!r} in snapshot, using default")
            default_sort = SortMode.DATE_NEW.value

        return cls(
            theme_mode=theme_mode,
            default_sort=default_sort,
            last_search_query=data.get("lastSearch", data.get("lastSearchQuery", "")) or "",
        )

    def to_dict(self) -> dict:
        return {
            "themeMode": self.theme_mode,
            "defaultSort": self.default_sort,
            "lastSearch": self.last_search_query,
        }


@dataclass
class SnapshotAlbum:
    """An album as stored in a snapshot."""

    id: int
    name: str
    photo_count: int
    updated_at: int
    cover_photo_id: int | None = None
    favorite: bool = False
    emoji: str | None = None

    @classmethod
    def from_album(cls, album: Album) -> "SnapshotAlbum":
        return cls(
            id=album.id,
            name=album.name,
            cover_photo_id=album.cover_photo_id,
            photo_count=album.photo_count,
            favorite=album.favorite,
            emoji=album.emoji,
            updated_at=album.updated_at,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "SnapshotAlbum":
        cover = data.get("coverPhotoId")
        return cls(
            id=int(data["id"]),
            name=str(data["name"]),
            cover_photo_id=int(cover) if cover is not None else None,
            photo_count=int(data["photoCount"]),
            favorite=bool(data.get("favorite", False)),
            emoji=data.get("emoji"),
            updated_at=int(data["updatedAt"]),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "coverPhotoId": self.cover_photo_id,
            "photoCount": self.photo_count,
            "favorite": self.favorite,
            "emoji": self.emoji,
            "updatedAt": self.updated_at,
        }


@dataclass
class SnapshotPhoto:
    """
    A photo as stored in a snapshot.

    ``path`` and ``thumb_path`` are absolute paths on the device that wrote
    the snapshot and are never used on import. ``relative_path`` is always
    recomputed from ``(album_id, id)``; a value found on the wire is ignored.
    """

    id: int
    album_id: int
    filename: str
    width: int
    height: int
    size_bytes: int
    caption: str
    tags: list[str]
    favorite: bool
    taken_at: int
    created_at: int
    updated_at: int
    path: str = ""
    thumb_path: str = ""
    relative_path: str = field(init=False)

    def __post_init__(self):
        self.relative_path = photo_relative_path(self.album_id, self.id)

    @classmethod
    def from_photo(cls, photo: Photo) -> "SnapshotPhoto":
        return cls(
            id=photo.id,
            album_id=photo.album_id,
            filename=photo.filename,
            width=photo.width,
            height=photo.height,
            size_bytes=photo.size_bytes,
            caption=photo.caption,
            tags=list(photo.tags or []),
            favorite=photo.favorite,
            taken_at=photo.taken_at,
            created_at=photo.created_at,
            updated_at=photo.updated_at,
            path=photo.path,
            thumb_path=photo.thumb_path,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "SnapshotPhoto":
        return cls(
            id=int(data["id"]),
            album_id=int(data["albumId"]),
            filename=str(data["filename"]),
            width=int(data["width"]),
            height=int(data["height"]),
            size_bytes=int(data["sizeBytes"]),
            caption=data.get("caption") or "",
            tags=[str(tag) for tag in data.get("tags") or []],
            favorite=bool(data.get("favorite", False)),
            taken_at=int(data["takenAt"]),
            created_at=int(data["createdAt"]),
            updated_at=int(data["updatedAt"]),
            path=data.get("path") or "",
            thumb_path=data.get("thumbPath") or "",
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "albumId": self.album_id,
            "filename": self.filename,
            "width": self.width,
            "height": self.height,
            "sizeBytes": self.size_bytes,
            "caption": self.caption,
            "tags": list(self.tags),
            "favorite": self.favorite,
            "takenAt": self.taken_at,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "path": self.path,
            "thumbPath": self.thumb_path,
            "relativePath": self.relative_path,
        }


@dataclass
class SnapshotModel:
    """The complete serialized catalog at one point in time."""

    created_at: int
    settings: SnapshotSettings
    albums: list[SnapshotAlbum]
    photos: list[SnapshotPhoto]
    app_version: str = "1.0"
    schema_version: int = SNAPSHOT_SCHEMA_VERSION

    @property
    def album_ids(self) -> set[int]:
        return {album.id for album in self.albums}

    def orphan_photos(self) -> list[SnapshotPhoto]:
        """Photos whose album isn't part of this snapshot."""
        album_ids = self.album_ids
        return [photo for photo in self.photos if photo.album_id not in album_ids]

    def to_dict(self) -> dict:
        return {
            "schemaVersion": self.schema_version,
            "createdAt": self.created_at,
            "appVersion": self.app_version,
            "settings": self.settings.to_dict(),
            "albums": [album.to_dict() for album in self.albums],
            "photos": [photo.to_dict() for photo in self.photos],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    def to_bytes(self) -> bytes:
        return self.to_json().encode("utf-8")

    @classmethod
    def from_dict(cls, data: dict) -> "SnapshotModel":
        """
        Build a snapshot from decoded JSON.

        Raises:
            UnsupportedSchemaError: If the schema version doesn't match
            SnapshotCorruptError: If required fields are missing or malformed
        """
        if not isinstance(data, dict):
            raise SnapshotCorruptError("Snapshot root must be a JSON object")

        try:
            version = int(data.get("schemaVersion", SNAPSHOT_SCHEMA_VERSION))
        except (TypeError, ValueError) as e:
            raise SnapshotCorruptError(f"Invalid schemaVersion: {e}") from e

        if version != SNAPSHOT_SCHEMA_VERSION:
            raise UnsupportedSchemaError(version, SNAPSHOT_SCHEMA_VERSION)

        try:
            return cls(
                schema_version=version,
                created_at=int(data["createdAt"]),
                app_version=str(data.get("appVersion", "1.0")),
                settings=SnapshotSettings.from_dict(data.get("settings") or {}),
                albums=[SnapshotAlbum.from_dict(a) for a in data.get("albums") or []],
                photos=[SnapshotPhoto.from_dict(p) for p in data.get("photos") or []],
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise SnapshotCorruptError(f"Malformed snapshot: {e!r}") from e

    @classmethod
    def from_json(cls, text: str | bytes) -> "SnapshotModel":
        """
        Parse a snapshot document.

        Raises:
            UnsupportedSchemaError: If the schema version doesn't match
            SnapshotCorruptError: If the document isn't valid snapshot JSON
        """
        if isinstance(text, bytes):
            try:
                text = text.decode("utf-8")
            except UnicodeDecodeError as e:
                raise SnapshotCorruptError(f"Snapshot is not UTF-8: {e}") from e

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise SnapshotCorruptError(f"Invalid snapshot JSON: {e}") from e

        return cls.from_dict(data)
