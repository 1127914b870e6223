"""Graceful stop of a sync run on SIGINT / SIGTERM."""

from __future__ import annotations

import asyncio
import signal

import structlog

logger = structlog.get_logger()

STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def install_signal_handlers(shutdown_event: asyncio.Event) -> None:
    """Let the first stop signal end the run between entries.

    The first SIGINT or SIGTERM sets *shutdown_event*: every feed task
    finishes the append in flight, then records a ``cancelled`` outcome.
    The handlers remove themselves at that point, so a second signal gets
    the default behaviour and aborts the process at once.

    Must be called from the running event loop.
    """
    loop = asyncio.get_running_loop()

    def _request_stop(sig: signal.Signals) -> None:
        for other in STOP_SIGNALS:
            loop.remove_signal_handler(other)
        logger.warning("sync_stop_requested", signal=sig.name, hint="send again to abort")
        shutdown_event.set()

    for sig in STOP_SIGNALS:
        loop.add_signal_handler(sig, _request_stop, sig)


def remove_signal_handlers() -> None:
    """Restore default handling once the run is over."""
    loop = asyncio.get_running_loop()
    for sig in STOP_SIGNALS:
        loop.remove_signal_handler(sig)
