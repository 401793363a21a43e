"""
Local binary file store for photo originals and thumbnails.

Storage layout:
    MEDIA_STORE_ROOT/
        photos/<album_id>/<photo_id>.jpg  - Originals
        thumbs/<album_id>/<photo_id>.jpg  - Thumbnails
        tmp/                              - In-progress writes
"""

from __future__ import annotations

import os
import shutil
import uuid
from pathlib import Path
from typing import BinaryIO

from django.conf import settings

from photosync.sync.paths import photo_relative_path, thumb_relative_path


class MediaStorage:
    """
    Path-by-convention file store for the local catalog.

    All writes go through a temp file in ``tmp/`` followed by a rename, so a
    crashed copy never leaves a truncated file at a deterministic path.
    """

    def __init__(self, root: Path | str | None = None):
        self.root = Path(root if root is not None else settings.MEDIA_STORE_ROOT)
        self.photos_dir = self.root / "photos"
        self.thumbs_dir = self.root / "thumbs"
        self.tmp_dir = self.root / "tmp"

    def ensure_directories(self) -> None:
        """Create the storage directory structure if it doesn't exist."""
        self.photos_dir.mkdir(parents=True, exist_ok=True)
        self.thumbs_dir.mkdir(parents=True, exist_ok=True)
        self.tmp_dir.mkdir(parents=True, exist_ok=True)

    def photo_file(self, album_id: int, photo_id: int) -> Path:
        """Absolute path of a photo original: photos/{album_id}/{photo_id}.jpg"""
        return self.root / photo_relative_path(album_id, photo_id)

    def thumb_file(self, album_id: int, photo_id: int) -> Path:
        """Absolute path of a thumbnail: thumbs/{album_id}/{photo_id}.jpg"""
        return self.root / thumb_relative_path(album_id, photo_id)

    def new_temp_path(self, suffix: str = ".tmp") -> Path:
        """Reserve a unique path under ``tmp/`` for an in-progress write."""
        self.ensure_directories()
        return self.tmp_dir / f"{uuid.uuid4().hex}{suffix}"

    def write_file(self, target: Path, data: bytes | BinaryIO) -> int:
        """
        Write content to ``target`` atomically.

        Args:
            target: Destination path
            data: Bytes or file-like object containing content

        Returns:
            Number of bytes written
        """
        tmp_path = self.new_temp_path()

        try:
            size = 0
            with open(tmp_path, "wb") as f:
                if isinstance(data, bytes):
                    f.write(data)
                    size = len(data)
                else:
                    for chunk in iter(lambda: data.read(65536), b""):
                        f.write(chunk)
                        size += len(chunk)
                f.flush()
                os.fsync(f.fileno())

            self.install(tmp_path, target)
            return size

        except Exception:
            if tmp_path.exists():
                tmp_path.unlink()
            raise

    def copy_into(self, source: Path, target: Path) -> int:
        """
        Copy an external file into the store at ``target``.

        Returns:
            Size of the copied file in bytes

        Raises:
            FileNotFoundError: If ``source`` doesn't exist
        """
        with open(source, "rb") as src:
            return self.write_file(target, src)

    def install(self, tmp_path: Path, target: Path) -> Path:
        """Move a completed temp file into its final location."""
        target.parent.mkdir(parents=True, exist_ok=True)
        os.replace(tmp_path, target)
        return target

    def free_space_bytes(self) -> int:
        """Free bytes on the filesystem holding the store."""
        self.ensure_directories()
        return shutil.disk_usage(self.root).free

    def get_storage_stats(self) -> dict:
        """
        Get storage statistics.

        Returns:
            Dict with photo_count, thumb_count, total_size_bytes
        """
        photo_count = 0
        thumb_count = 0
        total_size = 0

        for base, is_photo in ((self.photos_dir, True), (self.thumbs_dir, False)):
            if not base.exists():
                continue
            for f in base.rglob("*"):
                if f.is_file():
                    total_size += f.stat().st_size
                    if is_photo:
                        photo_count += 1
                    else:
                        thumb_count += 1

        return {
            "photo_count": photo_count,
            "thumb_count": thumb_count,
            "total_size_bytes": total_size,
        }
