"""structlog configuration for the feedbox CLI.

Logs go to stderr by default; stdout is reserved for reporter output and
``--summary-json -``.  Records from third-party stdlib loggers (httpx,
httpcore) pass through the same renderer so a JSON log stays parseable.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

# Per-request chatter that is only useful when debugging.
CHATTY_LOGGERS = ("httpx", "httpcore")


def setup_logging(
    *,
    json: bool = False,
    level: str = "WARNING",
    stream: TextIO | None = None,
) -> None:
    """Route structlog and stdlib logging into one handler on *stream*.

    *json* selects JSON lines (for cron jobs feeding a log collector)
    over the console renderer, which only colours output on a terminal.
    Below ``DEBUG`` the HTTP client loggers are held at ``WARNING``.
    """
    stream = stream or sys.stderr
    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer: structlog.types.Processor
    if json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=stream.isatty())

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())

    chatty_level = logging.DEBUG if root.level <= logging.DEBUG else logging.WARNING
    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(chatty_level)
