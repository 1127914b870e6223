"""Shared test fixtures for the feedbox test suite."""

from __future__ import annotations

import os
from datetime import UTC, datetime

import pytest

from feedbox.config import (
    FeedboxConfig,
    FeedConfig,
    ImapConfig,
    RecipientConfig,
    SyncConfig,
)
from feedbox.errors import AppendError
from feedbox.interface import Output, Reporter
from feedbox.models import Entry, Feed, Link, Person, SyncOutcome


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep developer FEEDBOX_* variables out of config tests."""
    for key in list(os.environ):
        if key.startswith("FEEDBOX_"):
            monkeypatch.delenv(key)


@pytest.fixture
def imap_config() -> ImapConfig:
    return ImapConfig(
        host="imap.test.com",
        port=993,
        use_ssl=True,
        username="testuser",
        password="testpass",
        folder="Feeds",
        timeout_seconds=5.0,
    )


@pytest.fixture
def feedbox_config(imap_config: ImapConfig) -> FeedboxConfig:
    return FeedboxConfig(
        imap=imap_config,
        recipient=RecipientConfig(name="Reader", email="reader@example.com"),
        sync=SyncConfig(),
        feeds=[
            FeedConfig(url="https://a.example.com/feed.xml"),
            FeedConfig(url="https://b.example.com/atom.xml"),
        ],
    )


# ------------------------------------------------------------------
# Model builders
# ------------------------------------------------------------------


def _make_entry(
    entry_id: str = "entry-1",
    *,
    title: str | None = "First Post",
    content: str | None = "<p>Hello</p>",
    summary: str | None = None,
    published: datetime | None = datetime(2025, 6, 1, 12, 0, tzinfo=UTC),
    updated: datetime | None = None,
    links: list[Link] | None = None,
    authors: list[Person] | None = None,
    base_url: str | None = None,
) -> Entry:
    return Entry(
        id=entry_id,
        title=title,
        content=content,
        summary=summary,
        published=published,
        updated=updated,
        links=links if links is not None else [Link(href=f"https://example.com/{entry_id}")],
        authors=authors or [],
        base_url=base_url,
    )


def _make_feed(
    feed_id: str = "urn:feed:test",
    *,
    url: str = "https://example.com/feed.xml",
    title: str | None = "Example Feed",
    entries: list[Entry] | None = None,
    authors: list[Person] | None = None,
    links: list[Link] | None = None,
    base_url: str | None = None,
) -> Feed:
    return Feed(
        id=feed_id,
        url=url,
        title=title,
        entries=entries or [],
        authors=authors or [],
        links=links if links is not None else [Link(href="https://example.com/")],
        base_url=base_url,
    )


@pytest.fixture
def entry() -> Entry:
    return _make_entry()


@pytest.fixture
def feed(entry: Entry) -> Feed:
    return _make_feed(entries=[entry])


# ------------------------------------------------------------------
# Test doubles
# ------------------------------------------------------------------


class FakeOutput(Output):
    """In-memory output recording every appended message."""

    def __init__(self, ids: set[str] | None = None, fail_on: int | None = None) -> None:
        self.ids = frozenset(ids or ())
        self.appended: list[bytes] = []
        self.fail_on = fail_on

    def contains(self, identity: str) -> bool:
        return identity in self.ids

    async def append(self, raw: bytes) -> None:
        if self.fail_on is not None and len(self.appended) == self.fail_on:
            raise AppendError("refused by fake server")
        self.appended.append(raw)


class RecordingReporter(Reporter):
    """Reporter that keeps every event as a tuple."""

    def __init__(self) -> None:
        self.events: list[tuple] = []

    async def on_begin(self, feed: str) -> None:
        self.events.append(("begin", feed))

    async def on_entries_count(self, feed: str, title: str, count: int) -> None:
        self.events.append(("count", feed, title, count))

    async def on_entry(self, feed: str) -> None:
        self.events.append(("entry", feed))

    async def on_end(self, feed: str, outcome: SyncOutcome) -> None:
        self.events.append(("end", feed, outcome))

    def of(self, kind: str, feed: str) -> list[tuple]:
        return [e for e in self.events if e[0] == kind and e[1] == feed]


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()


# ------------------------------------------------------------------
# Sample documents
# ------------------------------------------------------------------

RSS_FEED = b"""<?xml version="1.0"?>
<rss version="2.0">
    <channel>
        <title>Test Blog</title>
        <link>https://blog.example.com/</link>
        <item>
            <title>First Post</title>
            <link>https://blog.example.com/post1</link>
            <guid>https://blog.example.com/post1</guid>
            <description>&lt;p&gt;Summary one&lt;/p&gt;</description>
            <pubDate>Mon, 01 Jan 2024 12:00:00 GMT</pubDate>
        </item>
        <item>
            <title>Second Post</title>
            <link>https://blog.example.com/post2</link>
            <description>Summary two</description>
        </item>
    </channel>
</rss>
"""

ATOM_FEED = b"""<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
    <id>urn:uuid:60a76c80-d399-11d9-b93C-0003939e0af6</id>
    <title>Atom Example</title>
    <link href="https://atom.example.com/"/>
    <updated>2024-02-01T10:00:00Z</updated>
    <author>
        <name>Jane Doe</name>
        <email>jane@atom.example.com</email>
    </author>
    <entry>
        <id>urn:uuid:1225c695-cfb8-4ebb-aaaa-80da344efa6a</id>
        <title>Atom Entry</title>
        <link href="https://atom.example.com/entry1"/>
        <published>2024-01-31T09:30:00Z</published>
        <updated>2024-02-01T10:00:00Z</updated>
        <content type="html">&lt;p&gt;Full content&lt;/p&gt;</content>
    </entry>
</feed>
"""


@pytest.fixture
def rss_bytes() -> bytes:
    return RSS_FEED


@pytest.fixture
def atom_bytes() -> bytes:
    return ATOM_FEED
