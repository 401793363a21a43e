"""
Deterministic media naming.

The relative path of a photo's binary content is a pure function of its
identity ``(album_id, photo_id)``. The same names are used in the local
media store, in exported backup folders (under ``media/``) and as object
names in the remote store, which is what joins snapshot metadata to files
on every backend.
"""

PHOTOS_PREFIX = "photos"
THUMBS_PREFIX = "thumbs"
MEDIA_DIR = "media"
PHOTO_EXTENSION = "jpg"


def photo_relative_path(album_id: int, photo_id: int) -> str:
    """Relative path of a photo original, e.g. ``photos/3/17.jpg``."""
    return f"{PHOTOS_PREFIX}/{int(album_id)}/{int(photo_id)}.{PHOTO_EXTENSION}"


def thumb_relative_path(album_id: int, photo_id: int) -> str:
    """Relative path of a photo thumbnail, e.g. ``thumbs/3/17.jpg``."""
    return f"{THUMBS_PREFIX}/{int(album_id)}/{int(photo_id)}.{PHOTO_EXTENSION}"


def export_photo_path(album_id: int, photo_id: int) -> str:
    """Path of an original inside an exported backup folder."""
    return f"{MEDIA_DIR}/{photo_relative_path(album_id, photo_id)}"


def export_thumb_path(album_id: int, photo_id: int) -> str:
    """Path of a thumbnail inside an exported backup folder."""
    return f"{MEDIA_DIR}/{thumb_relative_path(album_id, photo_id)}"
