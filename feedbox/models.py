"""Data models: parsed feeds and per-run sync results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field, computed_field


# ---------------------------------------------------------------------------
# Parsed feed
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Person:
    """An author or contributor of a feed or entry."""

    name: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class Link:
    """A link attached to a feed or entry."""

    href: str
    title: str | None = None
    rel: str | None = None


@dataclass
class Entry:
    """One item of a feed."""

    id: str
    title: str | None = None
    content: str | None = None
    summary: str | None = None
    published: datetime | None = None
    updated: datetime | None = None
    links: list[Link] = field(default_factory=list)
    authors: list[Person] = field(default_factory=list)
    base_url: str | None = None


@dataclass
class Feed:
    """A fetched and parsed subscription."""

    id: str
    url: str
    title: str | None = None
    entries: list[Entry] = field(default_factory=list)
    authors: list[Person] = field(default_factory=list)
    links: list[Link] = field(default_factory=list)
    base_url: str | None = None


# ---------------------------------------------------------------------------
# Sync results
# ---------------------------------------------------------------------------


class FeedStatus(str, Enum):
    """Final state of one feed task."""

    OK = "ok"
    FAILED = "failed"
    CANCELLED = "cancelled"


class SyncOutcome(BaseModel):
    """Result of syncing a single feed.

    A failed outcome never affects sibling feeds; it is only reported.
    """

    feed: str = Field(description="Feed key (the subscription URL)")
    status: FeedStatus = Field(default=FeedStatus.OK)
    title: str | None = Field(default=None, description="Display title of the feed")
    entries: int = Field(default=0, description="Entries present in the fetched feed")
    appended: int = Field(default=0, description="New messages appended to the mailbox")
    skipped: int = Field(default=0, description="Entries already in the mailbox")
    error: str | None = Field(default=None, description="Error text for failed feeds")

    @property
    def is_ok(self) -> bool:
        return self.status == FeedStatus.OK


class SyncSummary(BaseModel):
    """Machine-readable summary of a whole run."""

    outcomes: list[SyncOutcome] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def ok(self) -> int:
        return sum(1 for o in self.outcomes if o.status == FeedStatus.OK)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.status != FeedStatus.OK)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def appended(self) -> int:
        return sum(o.appended for o in self.outcomes)
