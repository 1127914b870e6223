"""Syncer: runs one task per feed and appends new entries to the mailbox."""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime

import structlog

from . import transform
from .config import FeedboxConfig, FeedConfig
from .fetch import fetch_feed
from .imap import MailboxClient, MailboxOutput
from .interface import Output, Reporter
from .models import Feed, FeedStatus, SyncOutcome, SyncSummary
from .shutdown import install_signal_handlers, remove_signal_handlers

logger = structlog.get_logger()

Fetcher = Callable[[str], Awaitable[Feed]]

TITLE_WIDTH = 20


class Syncer:
    """Sync a list of feeds into one :class:`~feedbox.interface.Output`.

    ``sync()`` starts one task per feed via :class:`asyncio.TaskGroup`.
    Feed tasks share nothing but the output (whose existing-id snapshot
    is read-only and whose appends are serialized) and the reporter.
    A failing feed ends with a failed :class:`SyncOutcome`; it never
    cancels its siblings.
    """

    def __init__(
        self,
        name: str,
        email: str,
        *,
        fetcher: Fetcher = fetch_feed,
        max_concurrency: int = 0,
        shutdown_event: asyncio.Event | None = None,
    ) -> None:
        self.name = name
        self.email = email
        self._fetcher = fetcher
        self._max_concurrency = max_concurrency
        self._shutdown_event = shutdown_event or asyncio.Event()

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def sync(
        self,
        inputs: Sequence[FeedConfig],
        output: Output,
        reporter: Reporter,
    ) -> SyncSummary:
        """Sync every feed of *inputs* concurrently and wait for all of them."""
        summary = SyncSummary()
        semaphore = (
            asyncio.Semaphore(self._max_concurrency) if self._max_concurrency > 0 else None
        )
        logger.info("sync_started", feeds=len(inputs), max_concurrency=self._max_concurrency)

        async with asyncio.TaskGroup() as tg:
            tasks = [
                tg.create_task(self._sync_feed(feed.key, output, reporter, semaphore))
                for feed in inputs
            ]

        summary.outcomes = [task.result() for task in tasks]
        summary.finished_at = datetime.now(UTC)
        logger.info(
            "sync_finished",
            feeds=len(summary.outcomes),
            failed=summary.failed,
            appended=summary.appended,
        )
        return summary

    # ------------------------------------------------------------------
    # Per-feed task
    # ------------------------------------------------------------------

    async def _sync_feed(
        self,
        url: str,
        output: Output,
        reporter: Reporter,
        semaphore: asyncio.Semaphore | None,
    ) -> SyncOutcome:
        """Run one feed to completion.  Never raises."""
        outcome = SyncOutcome(feed=url)
        if semaphore is None:
            await self._run_feed(url, output, reporter, outcome)
        else:
            async with semaphore:
                await self._run_feed(url, output, reporter, outcome)
        await _notify(reporter.on_end(url, outcome), "on_end", url)
        return outcome

    async def _run_feed(
        self,
        url: str,
        output: Output,
        reporter: Reporter,
        outcome: SyncOutcome,
    ) -> None:
        log = logger.bind(feed=url)
        try:
            await self._sync_entries(url, output, reporter, outcome, log)
        except Exception as exc:
            outcome.status = FeedStatus.FAILED
            outcome.error = str(exc) or type(exc).__name__
            log.error("feed_sync_failed", error=outcome.error, error_type=type(exc).__name__)

    async def _sync_entries(
        self,
        url: str,
        output: Output,
        reporter: Reporter,
        outcome: SyncOutcome,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        log.info("feed_sync_started")
        await reporter.on_begin(url)
        feed = await self._fetcher(url)

        title = transform.extract_feed_title(feed)[:TITLE_WIDTH]
        outcome.title = title
        outcome.entries = len(feed.entries)
        await reporter.on_entries_count(url, title, len(feed.entries))

        for entry in feed.entries:
            if self._shutdown_event.is_set():
                outcome.status = FeedStatus.CANCELLED
                outcome.error = "cancelled"
                log.warning(
                    "feed_sync_cancelled",
                    remaining=outcome.entries - outcome.appended - outcome.skipped,
                )
                return

            identity = transform.derive_identity(feed, entry)
            try:
                if output.contains(identity):
                    log.debug("entry_already_delivered", id=identity)
                    outcome.skipped += 1
                else:
                    mail = transform.compose_message(self.name, self.email, feed, entry)
                    log.debug("entry_appending", id=identity)
                    await output.append(mail)
                    log.debug("entry_appended", id=identity)
                    outcome.appended += 1
            finally:
                await _notify(reporter.on_entry(url), "on_entry", url)

        log.info("feed_sync_complete", appended=outcome.appended, skipped=outcome.skipped)


async def _notify(event: Awaitable[None], name: str, url: str) -> None:
    """Await a reporter event; a failing reporter never fails the feed."""
    try:
        await event
    except Exception as exc:
        logger.error(
            "reporter_failed",
            feed=url,
            hook=name,
            error=str(exc) or type(exc).__name__,
        )


async def run(config: FeedboxConfig, reporter: Reporter) -> SyncSummary:
    """Full run: log in, snapshot existing ids, sync every feed, log out.

    Session-setup failures (connection, TLS, login, listing) propagate
    before any feed task starts.  SIGINT/SIGTERM cancel the run between
    entries.
    """
    shutdown_event = asyncio.Event()
    install_signal_handlers(shutdown_event)
    try:
        async with MailboxClient(config.imap) as client:
            output = await MailboxOutput.open(client, config.imap.folder)
            syncer = Syncer(
                config.recipient.name,
                config.recipient.email,
                fetcher=functools.partial(fetch_feed, timeout=config.sync.fetch_timeout_seconds),
                max_concurrency=config.sync.max_concurrency,
                shutdown_event=shutdown_event,
            )
            return await syncer.sync(config.feeds, output, reporter)
    finally:
        remove_signal_handlers()
