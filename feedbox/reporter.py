"""Reporter implementations: progress bars, plain lines, silence."""

from __future__ import annotations

import asyncio

import click
from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TaskID,
    TextColumn,
)

from .interface import Reporter
from .models import SyncOutcome

TITLE_WIDTH = 20


class ProgressReporter(Reporter):
    """One progress bar per feed, for interactive terminals.

    Use as a context manager around the run so the live display is
    started and stopped cleanly::

        with ProgressReporter() as reporter:
            await syncer.sync(feeds, output, reporter)
    """

    def __init__(self, console: Console | None = None) -> None:
        self._progress = Progress(
            TextColumn("{task.fields[prefix]:<20}", markup=False, style="bold"),
            BarColumn(bar_width=None),
            TextColumn("{task.fields[message]}"),
            MofNCompleteColumn(),
            console=console,
        )
        self._tasks: dict[str, TaskID] = {}
        self._lock = asyncio.Lock()

    def __enter__(self) -> ProgressReporter:
        self._progress.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._progress.stop()

    async def on_begin(self, feed: str) -> None:
        async with self._lock:
            self._tasks[feed] = self._progress.add_task(
                feed,
                total=None,
                prefix=feed[:TITLE_WIDTH],
                message="",
            )

    async def on_entries_count(self, feed: str, title: str, count: int) -> None:
        async with self._lock:
            task = self._tasks.get(feed)
            if task is not None:
                self._progress.update(task, total=count, prefix=title[:TITLE_WIDTH])

    async def on_entry(self, feed: str) -> None:
        async with self._lock:
            task = self._tasks.get(feed)
            if task is not None:
                self._progress.advance(task)

    async def on_end(self, feed: str, outcome: SyncOutcome) -> None:
        async with self._lock:
            task = self._tasks.get(feed)
            if task is not None and outcome.error:
                self._progress.update(task, message=f"[red]{escape(outcome.error)}[/red]")


class LineReporter(Reporter):
    """Line-oriented output for cron jobs and pipes.

    Each event is a single ``click.echo`` call, so lines from concurrent
    feeds never interleave mid-line.
    """

    def __init__(self, *, verbose: bool = False) -> None:
        self._verbose = verbose

    async def on_begin(self, feed: str) -> None:
        click.echo(f"fetching: {feed}")

    async def on_entries_count(self, feed: str, title: str, count: int) -> None:
        click.echo(f"fetched: {feed} ({title}) has {count} entries")

    async def on_entry(self, feed: str) -> None:
        if self._verbose:
            click.echo(f"processed: {feed} one more")

    async def on_end(self, feed: str, outcome: SyncOutcome) -> None:
        if outcome.error:
            click.echo(f"ERROR: {feed}: {outcome.error}")
        else:
            click.echo(
                f"synced: {feed} ({outcome.appended} new, {outcome.skipped} already delivered)"
            )


class NullReporter(Reporter):
    """Discards every event."""

    async def on_begin(self, feed: str) -> None:
        pass

    async def on_entries_count(self, feed: str, title: str, count: int) -> None:
        pass

    async def on_entry(self, feed: str) -> None:
        pass

    async def on_end(self, feed: str, outcome: SyncOutcome) -> None:
        pass
