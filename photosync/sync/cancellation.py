"""
Cooperative cancellation.

A ``CancellationToken`` is passed explicitly through every call that does
I/O. Work checks it before and after each blocking step; nothing is ever
interrupted mid-transfer.
"""

from __future__ import annotations

import threading
from typing import Callable

from photosync.sync.exceptions import SyncCancelledError


class CancellationToken:
    """
    Thread-safe cancellation flag.

    Args:
        probe: Optional callable polled on every check; once it returns
            True the token stays cancelled. Used to observe cancellation
            requested from another process. Only checks made on the thread
            that created the token poll it, so a probe may use the database.
    """

    def __init__(self, probe: Callable[[], bool] | None = None):
        self._event = threading.Event()
        self._probe = probe
        self._owner = threading.get_ident()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if (
            not self._event.is_set()
            and self._probe is not None
            and threading.get_ident() == self._owner
            and self._probe()
        ):
            self._event.set()
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """
        Raises:
            SyncCancelledError: If cancellation was requested
        """
        if self.cancelled:
            raise SyncCancelledError("Operation cancelled")

