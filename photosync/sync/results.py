"""
Per-item results and batch reports.

Batch operations (export, import, restore, sync upload) never let one bad
record abort the batch. Instead each item produces an ``ItemResult`` that
is folded into a ``BatchOutcome``; reports expose the counts and the
failures so callers can judge completeness.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Generic, TypeVar

T = TypeVar("T")

ProgressCallback = Callable[[str, int, int], None]


@dataclass
class ItemResult(Generic[T]):
    """Outcome of processing one album or photo."""

    key: str
    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, key: str, value: T | None = None) -> "ItemResult[T]":
        return cls(key=key, value=value)

    @classmethod
    def failure(cls, key: str, error: Exception) -> "ItemResult[T]":
        return cls(key=key, error=error)


@dataclass
class BatchOutcome:
    """Accumulated per-item results of a batch."""

    succeeded: list[ItemResult] = field(default_factory=list)
    failed: list[ItemResult] = field(default_factory=list)

    def add(self, result: ItemResult) -> ItemResult:
        if result.ok:
            self.succeeded.append(result)
        else:
            self.failed.append(result)
        return result

    def count(self, value) -> int:
        """Number of successful items whose value equals ``value``."""
        return sum(1 for r in self.succeeded if r.value == value)


@dataclass
class ExportReport:
    """Result of exporting albums to a backup folder."""

    albums: int
    photos: int
    files_copied: int
    files_missing: int
    snapshot_path: Path


@dataclass
class ImportReport:
    """Result of importing a backup folder into the catalog."""

    albums_inserted: int = 0
    albums_updated: int = 0
    photos_inserted: int = 0
    photos_updated: int = 0
    photos_skipped_missing_file: int = 0
    failures: list[ItemResult] = field(default_factory=list)


@dataclass
class RestoreReport:
    """Result of restoring the latest remote snapshot."""

    albums_inserted: int = 0
    albums_updated: int = 0
    photos_inserted: int = 0
    photos_updated: int = 0
    files_missing: int = 0
    failures: list[ItemResult] = field(default_factory=list)

    @property
    def albums_affected(self) -> int:
        return self.albums_inserted + self.albums_updated

    @property
    def photos_affected(self) -> int:
        return self.photos_inserted + self.photos_updated

    def as_tuple(self) -> tuple[int, int]:
        """``(albums_affected, photos_affected)``"""
        return self.albums_affected, self.photos_affected


@dataclass
class UploadSummary:
    """Media upload counts of one remote sync run."""

    uploaded: int = 0
    failed: int = 0
    missing: int = 0
    failures: list[ItemResult] = field(default_factory=list)
