"""Command-line entry point.

Usage::

    feedbox config > ~/.config/feedbox/config.yaml   # template to edit
    feedbox add https://example.com/feed.xml         # subscribe
    feedbox sync                                     # deliver new entries
"""

from __future__ import annotations

import asyncio
import contextlib
import sys
from pathlib import Path

import click

from . import __version__
from .config import (
    DEFAULT_CONFIG_PATH,
    FeedboxConfig,
    add_feed,
    default_config,
    dump_config,
    load_config,
    save_config,
)
from .errors import FeedboxError
from .fetch import fetch_feed
from .interface import Reporter
from .logging import setup_logging
from .reporter import LineReporter, NullReporter, ProgressReporter
from .sync import run

EXIT_SETUP_FAILED = 1
EXIT_FEED_FAILED = 2


def _cause(exc: BaseException) -> BaseException | None:
    if exc.__cause__ is not None or exc.__suppress_context__:
        return exc.__cause__
    return exc.__context__


def _print_error_chain(exc: BaseException) -> None:
    click.echo(f"error: {exc}", err=True)
    cause = _cause(exc)
    while cause is not None:
        click.echo(f"caused by: {cause}", err=True)
        cause = _cause(cause)


def _load(ctx: click.Context) -> FeedboxConfig:
    try:
        config = load_config(ctx.obj["config_path"])
    except FeedboxError as exc:
        _print_error_chain(exc)
        ctx.exit(EXIT_SETUP_FAILED)
    log_json = ctx.obj["log_json"]
    setup_logging(
        json=config.log_json if log_json is None else log_json,
        level=ctx.obj["log_level"] or config.log_level,
    )
    return config


@click.group()
@click.version_option(__version__, prog_name="feedbox")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_CONFIG_PATH,
    envvar="FEEDBOX_CONFIG",
    show_default=True,
    help="Configuration file",
)
@click.option("--log-level", default=None, help="Override the configured log level")
@click.option("--log-json/--no-log-json", default=None, help="JSON log lines on stderr")
@click.pass_context
def cli(ctx: click.Context, config_path: Path, log_level: str | None, log_json: bool | None) -> None:
    """Deliver syndication feeds into an IMAP mailbox."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path.expanduser()
    ctx.obj["log_level"] = log_level
    ctx.obj["log_json"] = log_json


@cli.command()
@click.option(
    "--progress/--no-progress",
    default=None,
    help="Progress bars instead of lines (default: when stdout is a terminal)",
)
@click.option("--quiet", "-q", is_flag=True, help="No per-feed output")
@click.option("--verbose", "-v", is_flag=True, help="One line per processed entry")
@click.option(
    "--summary-json",
    type=click.Path(dir_okay=False, allow_dash=True),
    default=None,
    help="Write the per-feed summary as JSON ('-' for stdout)",
)
@click.option("--strict", is_flag=True, help="Exit with status 2 when any feed failed")
@click.pass_context
def sync(
    ctx: click.Context,
    progress: bool | None,
    quiet: bool,
    verbose: bool,
    summary_json: str | None,
    strict: bool,
) -> None:
    """Append new entries of every subscribed feed to the mailbox."""
    config = _load(ctx)

    reporter: Reporter
    if quiet:
        reporter = NullReporter()
    elif progress or (progress is None and sys.stdout.isatty()):
        reporter = ProgressReporter()
    else:
        reporter = LineReporter(verbose=verbose)

    live = reporter if isinstance(reporter, ProgressReporter) else contextlib.nullcontext()
    try:
        with live:
            summary = asyncio.run(run(config, reporter))
    except FeedboxError as exc:
        _print_error_chain(exc)
        ctx.exit(EXIT_SETUP_FAILED)

    if summary_json is not None:
        payload = summary.model_dump_json(indent=2)
        if summary_json == "-":
            click.echo(payload)
        else:
            Path(summary_json).write_text(payload + "\n", encoding="utf-8")

    if strict and summary.failed:
        ctx.exit(EXIT_FEED_FAILED)


@cli.command()
@click.argument("url")
@click.pass_context
def add(ctx: click.Context, url: str) -> None:
    """Subscribe to the feed at URL after checking that it parses."""
    config = _load(ctx)
    try:
        feed = asyncio.run(fetch_feed(url, timeout=config.sync.fetch_timeout_seconds))
    except FeedboxError as exc:
        _print_error_chain(exc)
        ctx.exit(EXIT_SETUP_FAILED)

    if not add_feed(config, url):
        click.echo(f"already subscribed: {url}")
        return
    save_config(config, ctx.obj["config_path"])
    click.echo(f"added: {url} ({feed.title or 'Unknown'}, {len(feed.entries)} entries)")


@cli.command("config")
def show_default_config() -> None:
    """Print a configuration template."""
    click.echo(dump_config(default_config()), nl=False)


def main() -> None:
    cli(prog_name="feedbox")


if __name__ == "__main__":
    main()
