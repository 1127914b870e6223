"""Entry → email transformation.

Pure functions: no I/O, no shared state.  ``compose_message`` is the
only one the sync engine needs; the others are exposed for reuse and
testing.
"""

from __future__ import annotations

import email.policy
import email.utils
import hashlib
from datetime import UTC, datetime
from email.message import EmailMessage
from urllib.parse import urlsplit

import structlog

from ..errors import NoContentError
from ..models import Entry, Feed, Link, Person
from .html import rewrite_relative_links, wrap_in_template

logger = structlog.get_logger()

UNKNOWN = "Unknown"
PLACEHOLDER_EMAIL = "placeholder@example.com"
FALLBACK_HOST = "example.com"


def derive_identity(feed: Feed, entry: Entry) -> str:
    """Deterministic message identity of *entry* within *feed*.

    BLAKE2b-256 over the feed id followed by the entry id, as 64 hex
    characters.  Content and timestamps do not take part, so editing a
    delivered entry never delivers it again.
    """
    hasher = hashlib.blake2b(digest_size=32)
    hasher.update(feed.id.encode("utf-8"))
    hasher.update(entry.id.encode("utf-8"))
    return hasher.hexdigest()


def extract_feed_title(feed: Feed) -> str:
    return feed.title or UNKNOWN


def extract_title(entry: Entry) -> str:
    return entry.title or UNKNOWN


def _first_email(authors: list[Person]) -> str | None:
    for author in authors:
        if author.email:
            return author.email
    return None


def extract_sender_email(feed: Feed, entry: Entry) -> str:
    """Pick the From address for *entry*.

    Entry authors first, then feed authors, then ``rss@<host>`` of the
    feed's first link, then a fixed placeholder.
    """
    address = _first_email(entry.authors) or _first_email(feed.authors)
    if address:
        return address
    if feed.links:
        try:
            host = urlsplit(feed.links[0].href).hostname
        except ValueError:
            host = None
        return f"rss@{host or FALLBACK_HOST}"
    return PLACEHOLDER_EMAIL


def extract_body(entry: Entry) -> str:
    """Full content if present, else the summary.

    Raises :class:`NoContentError` when the entry has neither.
    """
    if entry.content:
        return entry.content
    if entry.summary:
        return entry.summary
    raise NoContentError(entry.id)


def extract_article_link(entry: Entry) -> Link | None:
    return entry.links[0] if entry.links else None


def extract_date(entry: Entry) -> datetime:
    """Published time, else updated time, else now."""
    return entry.published or entry.updated or datetime.now(UTC)


def render_body(feed: Feed, entry: Entry) -> str:
    """Content → absolute image URLs → standalone HTML page."""
    content = extract_body(entry)
    base_url = entry.base_url or feed.base_url
    if base_url:
        content = rewrite_relative_links(base_url, content)
    return wrap_in_template(content, extract_article_link(entry))


def compose_message(sender_name: str, sender_email: str, feed: Feed, entry: Entry) -> bytes:
    """Build the complete email for *entry*, serialized with CRLF line endings.

    *sender_name* and *sender_email* are the configured recipient: the
    mailbox owner the message is addressed to.
    """
    body = render_body(feed, entry)

    msg = EmailMessage()
    msg["Message-ID"] = f"<{derive_identity(feed, entry)}>"
    msg["From"] = email.utils.formataddr(
        (_single_line(extract_feed_title(feed)), extract_sender_email(feed, entry))
    )
    msg["To"] = email.utils.formataddr((sender_name, sender_email))
    msg["Date"] = email.utils.format_datetime(_aware(extract_date(entry)))
    msg["Subject"] = _single_line(extract_title(entry))
    msg.set_content(body, subtype="html", charset="utf-8")

    return msg.as_bytes(policy=email.policy.SMTP)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def _single_line(text: str) -> str:
    return " ".join(text.split())


__all__ = [
    "compose_message",
    "derive_identity",
    "extract_article_link",
    "extract_body",
    "extract_date",
    "extract_feed_title",
    "extract_sender_email",
    "extract_title",
    "render_body",
    "rewrite_relative_links",
    "wrap_in_template",
]
