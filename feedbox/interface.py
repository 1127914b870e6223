"""Abstract seams of the sync engine: where messages go, who hears about it."""

from __future__ import annotations

import abc

from .models import SyncOutcome


class Output(abc.ABC):
    """Destination of composed messages.

    ``contains`` answers from a snapshot taken before the run starts;
    ``append`` may be awaited from many feed tasks at once and must
    serialize access to whatever it writes to.
    """

    @abc.abstractmethod
    def contains(self, identity: str) -> bool:
        """Return True if a message with *identity* is already stored."""

    @abc.abstractmethod
    async def append(self, raw: bytes) -> None:
        """Store one serialized message."""


class Reporter(abc.ABC):
    """Observer of per-feed lifecycle events.

    Events for different feeds arrive interleaved from concurrent tasks.
    Implementations must not raise; a reporter problem is never a sync
    failure.
    """

    @abc.abstractmethod
    async def on_begin(self, feed: str) -> None:
        """The feed task started and is about to fetch."""

    @abc.abstractmethod
    async def on_entries_count(self, feed: str, title: str, count: int) -> None:
        """The feed was fetched; *count* entries will be processed."""

    @abc.abstractmethod
    async def on_entry(self, feed: str) -> None:
        """One more entry was processed (appended, skipped or failed)."""

    @abc.abstractmethod
    async def on_end(self, feed: str, outcome: SyncOutcome) -> None:
        """The feed task finished with *outcome*."""
