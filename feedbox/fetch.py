"""Feed fetcher: download with httpx, parse with feedparser.

This module turns a subscription URL into a :class:`~feedbox.models.Feed`.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import feedparser
import httpx
import structlog

from . import __version__
from .errors import FetchError, ParseError
from .models import Entry, Feed, Link, Person

logger = structlog.get_logger()

USER_AGENT = f"feedbox/{__version__} (+feed to IMAP)"


async def fetch_feed(url: str, *, timeout: float = 30.0) -> Feed:
    """Download and parse the feed at *url*.

    Args:
        url: Feed URL
        timeout: Seconds allowed for the whole HTTP exchange

    Returns:
        The parsed Feed

    Raises:
        FetchError: transport failure or non-2xx response
        ParseError: the document is not a feed
    """
    logger.info("feed_fetch_started", url=url)

    async with httpx.AsyncClient(
        follow_redirects=True,
        timeout=timeout,
        headers={"User-Agent": USER_AGENT},
    ) as client:
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise FetchError(f"{url} answered HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"failed to fetch {url}: {exc}") from exc

    parsed = feedparser.parse(
        response.content,
        response_headers={key.lower(): value for key, value in response.headers.items()},
    )
    if parsed.bozo and not parsed.entries and not parsed.feed.get("title"):
        raise ParseError(f"{url} is not a feed: {parsed.get('bozo_exception')}")

    feed = parse_feed_document(parsed, str(response.url))
    logger.info("feed_fetch_complete", url=url, entries=len(feed.entries))
    return feed


def parse_feed_document(parsed: Any, url: str) -> Feed:
    """Map a ``feedparser`` result onto the feedbox model."""
    meta = parsed.feed

    entries = []
    for raw in parsed.entries:
        entry = _parse_entry(raw)
        if entry is None:
            logger.warning("feed_entry_without_id", url=url, title=raw.get("title"))
            continue
        entries.append(entry)

    return Feed(
        id=meta.get("id") or meta.get("link") or url,
        url=url,
        title=_clean(meta.get("title")),
        entries=entries,
        authors=_parse_people(meta),
        links=_parse_links(meta),
        base_url=meta.get("link") or url,
    )


def _parse_entry(raw: Any) -> Entry | None:
    entry_id = raw.get("id") or raw.get("link") or raw.get("title")
    if not entry_id:
        return None

    content = None
    base_url = None
    for item in raw.get("content") or []:
        if item.get("value"):
            content = item["value"]
            base_url = item.get("base")
            break

    summary = raw.get("summary") or None
    if base_url is None:
        base_url = (raw.get("summary_detail") or {}).get("base")

    return Entry(
        id=entry_id,
        title=_clean(raw.get("title")),
        content=content,
        summary=summary,
        published=_parse_time(raw.get("published_parsed")),
        updated=_parse_time(raw.get("updated_parsed")),
        links=_parse_links(raw),
        authors=_parse_people(raw),
        base_url=base_url or None,
    )


def _parse_links(raw: Any) -> list[Link]:
    links = [
        Link(href=link["href"], title=link.get("title") or None, rel=link.get("rel"))
        for link in raw.get("links") or []
        if link.get("href")
    ]
    if not links and raw.get("link"):
        links.append(Link(href=raw["link"]))
    return links


def _parse_people(raw: Any) -> list[Person]:
    people = [
        Person(name=person.get("name") or None, email=person.get("email") or None)
        for person in raw.get("authors") or []
        if person.get("name") or person.get("email")
    ]
    if not people and raw.get("author_detail"):
        detail = raw["author_detail"]
        people.append(Person(name=detail.get("name") or None, email=detail.get("email") or None))
    return people


def _parse_time(value: Any) -> datetime | None:
    """feedparser normalizes dates to UTC ``time.struct_time``."""
    if not value:
        return None
    try:
        return datetime(*value[:6], tzinfo=UTC)
    except (TypeError, ValueError):
        return None


def _clean(text: str | None) -> str | None:
    """Collapse runs of whitespace, newlines included, to single spaces."""
    if text is None:
        return None
    return " ".join(text.split()) or None
