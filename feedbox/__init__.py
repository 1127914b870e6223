"""feedbox: deliver syndication feeds into an IMAP mailbox, one email per entry."""

__version__ = "0.1.0"

from .config import FeedboxConfig, FeedConfig, ImapConfig, RecipientConfig, SyncConfig
from .errors import (
    AppendError,
    AuthError,
    ConfigError,
    FeedboxError,
    FetchError,
    MailboxConnectionError,
    MailboxError,
    NoContentError,
    ParseError,
    TlsError,
)
from .fetch import fetch_feed
from .imap import MailboxClient, MailboxOutput
from .interface import Output, Reporter
from .models import Entry, Feed, FeedStatus, Link, Person, SyncOutcome, SyncSummary
from .reporter import LineReporter, NullReporter, ProgressReporter
from .sync import Syncer, run

__all__ = [
    "AppendError",
    "AuthError",
    "ConfigError",
    "Entry",
    "Feed",
    "FeedConfig",
    "FeedStatus",
    "FeedboxConfig",
    "FeedboxError",
    "FetchError",
    "ImapConfig",
    "LineReporter",
    "Link",
    "MailboxClient",
    "MailboxConnectionError",
    "MailboxError",
    "MailboxOutput",
    "NoContentError",
    "NullReporter",
    "Output",
    "ParseError",
    "Person",
    "ProgressReporter",
    "RecipientConfig",
    "Reporter",
    "SyncConfig",
    "SyncOutcome",
    "SyncSummary",
    "Syncer",
    "TlsError",
    "__version__",
    "fetch_feed",
    "run",
]
