"""
Contract for name-addressed remote object storage.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path


@dataclass
class RemoteObject:
    """An object in the remote store."""

    id: str
    name: str
    modified_time: datetime | None = None


class RemoteObjectStore(ABC):
    """
    Remote storage addressed by object name.

    Names follow the deterministic media convention
    (``photos/{album_id}/{photo_id}.jpg``) plus the snapshot name
    ``backup.json``; each name maps to at most one live object.
    """

    @abstractmethod
    def find_latest_by_name(self, name: str) -> RemoteObject | None:
        """Most recently modified object called ``name``, or None."""
        raise NotImplementedError("find_latest_by_name() not implemented")

    @abstractmethod
    def download(self, object_id: str, destination: Path) -> bool:
        """
        Download an object's content to ``destination``.

        Returns:
            True on success, False if the transfer failed
        """
        raise NotImplementedError("download() not implemented")

    @abstractmethod
    def create_or_update(self, name: str, content: bytes | Path, mime_type: str) -> str:
        """
        Store content under ``name``, overwriting an existing object.

        Returns:
            The remote object id
        """
        raise NotImplementedError("create_or_update() not implemented")
