"""Project-wide error types."""


class FeedboxError(Exception):
    """Base for all feedbox errors."""


class ConfigError(FeedboxError):
    """Missing or invalid configuration file."""


class MailboxError(FeedboxError):
    """IMAP command failure."""


class MailboxConnectionError(MailboxError):
    """Could not reach the IMAP server (DNS, socket, timeout)."""


class TlsError(MailboxError):
    """TLS handshake or certificate verification failed."""


class AuthError(MailboxError):
    """The server rejected the credentials."""


class AppendError(MailboxError):
    """APPEND of a composed message was refused."""


class FetchError(FeedboxError):
    """The feed could not be downloaded."""


class ParseError(FeedboxError):
    """The downloaded document is not a usable feed."""


class NoContentError(FeedboxError):
    """The entry carries neither content nor summary."""

    def __init__(self, entry_id: str) -> None:
        super().__init__(f"no content in entry {entry_id}")
        self.entry_id = entry_id


__all__ = [
    "AppendError",
    "AuthError",
    "ConfigError",
    "FeedboxError",
    "FetchError",
    "MailboxConnectionError",
    "MailboxError",
    "NoContentError",
    "ParseError",
    "TlsError",
]
