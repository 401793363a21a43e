"""
Contract between the sync coordinator and a background job runner.
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass


class NetworkType(str, enum.Enum):
    CONNECTED = "connected"
    UNMETERED = "unmetered"


class BackoffKind(str, enum.Enum):
    EXPONENTIAL = "exponential"
    LINEAR = "linear"


class JobResult(str, enum.Enum):
    SUCCESS = "success"
    RETRY = "retry"
    FAILURE = "failure"


@dataclass(frozen=True)
class JobConstraints:
    """Conditions that must hold before the runner starts the job."""

    network: NetworkType = NetworkType.CONNECTED
    requires_battery_not_low: bool = True

    def to_dict(self) -> dict:
        return {
            "network": self.network.value,
            "requires_battery_not_low": self.requires_battery_not_low,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "JobConstraints":
        return cls(
            network=NetworkType(data.get("network", NetworkType.CONNECTED.value)),
            requires_battery_not_low=bool(data.get("requires_battery_not_low", True)),
        )


@dataclass(frozen=True)
class BackoffPolicy:
    """Delay between retries of a job that returned ``RETRY``."""

    kind: BackoffKind = BackoffKind.EXPONENTIAL
    initial_seconds: int = 30
    max_seconds: int = 5 * 60 * 60

    def delay_for(self, attempt: int) -> int:
        """Seconds to wait before retry number ``attempt`` (0-based)."""
        attempt = max(attempt, 0)
        if self.kind == BackoffKind.EXPONENTIAL:
            delay = self.initial_seconds * (2 ** attempt)
        else:
            delay = self.initial_seconds * (attempt + 1)
        return min(delay, self.max_seconds)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "initial_seconds": self.initial_seconds,
            "max_seconds": self.max_seconds,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BackoffPolicy":
        return cls(
            kind=BackoffKind(data.get("kind", BackoffKind.EXPONENTIAL.value)),
            initial_seconds=int(data.get("initial_seconds", 30)),
            max_seconds=int(data.get("max_seconds", 5 * 60 * 60)),
        )


class JobRunner(ABC):
    """
    Background job runner with at-most-one pending job per unique name.

    Implementations give at-least-once execution, apply the backoff
    policy when the job asks to be retried, and hold the job until its
    constraints are met.
    """

    @abstractmethod
    def enqueue_unique(
        self,
        name: str,
        replace_existing: bool,
        constraints: JobConstraints,
        backoff: BackoffPolicy,
    ) -> str:
        """
        Schedule the named job, replacing a pending one if asked to.

        Returns:
            Runner-specific id of the scheduled job
        """
        raise NotImplementedError("enqueue_unique() not implemented")

    @abstractmethod
    def cancel_unique(self, name: str) -> bool:
        """
        Request cancellation of the named job.

        Returns:
            True if there was a job to cancel
        """
        raise NotImplementedError("cancel_unique() not implemented")
