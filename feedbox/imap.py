"""Async IMAP mailbox adapter wrapping stdlib imaplib with asyncio.to_thread."""

from __future__ import annotations

import asyncio
import email.parser
import imaplib
import ssl

import structlog

from .config import ImapConfig
from .errors import (
    AppendError,
    AuthError,
    MailboxConnectionError,
    MailboxError,
    TlsError,
)
from .interface import Output

logger = structlog.get_logger()

MESSAGE_ID_FETCH = "(BODY.PEEK[HEADER.FIELDS (MESSAGE-ID)])"


def quote_folder(folder: str) -> str:
    """Quote a mailbox name for imaplib, which sends arguments verbatim."""
    if folder.startswith('"') and folder.endswith('"'):
        return folder
    if any(ch in folder for ch in ' "\\(){%*'):
        escaped = folder.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return folder


def parse_message_id(header_block: bytes) -> str | None:
    """Extract the bare Message-ID from a raw header block.

    Returns None when the block has no usable Message-ID.
    """
    headers = email.parser.BytesHeaderParser().parsebytes(header_block)
    value = headers.get("Message-ID")
    if not value:
        return None
    message_id = str(value).strip().strip("<>").strip()
    return message_id or None


class MailboxClient:
    """Async-friendly IMAP session.

    All blocking ``imaplib`` operations are wrapped with
    ``asyncio.to_thread()``.  The session itself is not safe for
    concurrent commands; share it through :class:`MailboxOutput`.
    """

    def __init__(self, config: ImapConfig) -> None:
        self._config = config
        self._conn: imaplib.IMAP4_SSL | imaplib.IMAP4 | None = None

    @property
    def connected(self) -> bool:
        return self._conn is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the connection and log in.

        Raises :class:`MailboxConnectionError`, :class:`TlsError` or
        :class:`AuthError`.
        """
        self._conn = await asyncio.to_thread(self._connect_sync)
        logger.info(
            "imap_connected",
            host=self._config.host,
            port=self._config.port,
            username=self._config.username,
        )

    def _connect_sync(self) -> imaplib.IMAP4:
        host, port = self._config.host, self._config.port
        timeout = self._config.timeout_seconds
        try:
            if self._config.use_ssl:
                conn: imaplib.IMAP4 = imaplib.IMAP4_SSL(
                    host,
                    port,
                    ssl_context=ssl.create_default_context(),
                    timeout=timeout,
                )
            else:
                conn = imaplib.IMAP4(host, port, timeout=timeout)
        except ssl.SSLError as exc:
            raise TlsError(f"TLS handshake with {host}:{port} failed") from exc
        except (OSError, imaplib.IMAP4.error) as exc:
            raise MailboxConnectionError(f"cannot connect to {host}:{port}") from exc

        try:
            conn.login(self._config.username, self._config.password.get_secret_value())
        except imaplib.IMAP4.error as exc:
            _shutdown_quietly(conn)
            raise AuthError(f"login as {self._config.username} rejected by {host}") from exc
        except OSError as exc:
            _shutdown_quietly(conn)
            raise MailboxConnectionError(f"connection to {host}:{port} lost during login") from exc
        return conn

    async def logout(self) -> None:
        """Best-effort LOGOUT.  Never raises."""
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        try:
            await asyncio.to_thread(conn.logout)
        except (imaplib.IMAP4.error, OSError) as exc:
            logger.warning("imap_logout_failed", error=str(exc))
            return
        logger.info("imap_disconnected")

    async def __aenter__(self) -> MailboxClient:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.logout()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def list_message_ids(self, folder: str) -> frozenset[str]:
        """Return the Message-IDs of every message in *folder*.

        The folder is opened read-only.  Messages whose header cannot be
        parsed are skipped.
        """
        ids = await asyncio.to_thread(self._list_message_ids_sync, folder)
        logger.info("imap_ids_listed", folder=folder, count=len(ids))
        return ids

    def _list_message_ids_sync(self, folder: str) -> frozenset[str]:
        conn = self._require_conn()
        try:
            status, data = conn.select(quote_folder(folder), readonly=True)
            if status != "OK":
                raise MailboxError(f"cannot examine {folder}: {_text(data)}")
            exists = int(data[0]) if data and data[0] else 0
            logger.debug("imap_folder_examined", folder=folder, exists=exists)
            if exists == 0:
                return frozenset()

            status, data = conn.fetch("1:*", MESSAGE_ID_FETCH)
            if status != "OK":
                raise MailboxError(f"cannot fetch headers from {folder}: {_text(data)}")
        except (imaplib.IMAP4.error, OSError) as exc:
            raise MailboxError(f"listing {folder} failed") from exc

        ids: set[str] = set()
        for item in data:
            # Literal responses arrive as (envelope, payload) tuples;
            # the bare b")" separators between them carry nothing.
            if not isinstance(item, tuple) or len(item) < 2 or not isinstance(item[1], bytes):
                continue
            try:
                message_id = parse_message_id(item[1])
            except (TypeError, ValueError, UnicodeError) as exc:
                logger.debug("imap_header_unparsable", envelope=_text([item[0]]), error=str(exc))
                continue
            if message_id is not None:
                ids.add(message_id)
        return frozenset(ids)

    async def append(self, raw: bytes, folder: str) -> None:
        """SELECT *folder* read-write and APPEND *raw* to it.

        Raises :class:`AppendError`.  Callers must not run two appends
        on the same session concurrently.
        """
        await asyncio.to_thread(self._append_sync, raw, folder)

    def _append_sync(self, raw: bytes, folder: str) -> None:
        conn = self._require_conn()
        mailbox = quote_folder(folder)
        try:
            status, data = conn.select(mailbox)
            if status != "OK":
                raise AppendError(f"cannot select {folder}: {_text(data)}")
            status, data = conn.append(mailbox, None, None, raw)
        except (imaplib.IMAP4.error, OSError) as exc:
            raise AppendError(f"append to {folder} failed: {exc}") from exc
        if status != "OK":
            raise AppendError(f"append to {folder} refused: {_text(data)}")

    def _require_conn(self) -> imaplib.IMAP4:
        if self._conn is None:
            raise MailboxError("not connected")
        return self._conn


class MailboxOutput(Output):
    """Shared handle used by every feed task of a run.

    Holds the point-in-time set of existing Message-IDs (read without
    locking) and serializes appends onto the single IMAP session.
    """

    def __init__(self, client: MailboxClient, folder: str, ids: frozenset[str]) -> None:
        self._client = client
        self._folder = folder
        self._ids = ids
        self._lock = asyncio.Lock()
        self._appended = 0

    @classmethod
    async def open(cls, client: MailboxClient, folder: str) -> MailboxOutput:
        """Snapshot the folder's identities with a single listing call."""
        ids = await client.list_message_ids(folder)
        return cls(client, folder, ids)

    @property
    def folder(self) -> str:
        return self._folder

    @property
    def appended(self) -> int:
        return self._appended

    def contains(self, identity: str) -> bool:
        return identity in self._ids

    async def append(self, raw: bytes) -> None:
        async with self._lock:
            await self._client.append(raw, self._folder)
            self._appended += 1


def _shutdown_quietly(conn: imaplib.IMAP4) -> None:
    try:
        conn.shutdown()
    except OSError:
        pass


def _text(data: object) -> str:
    if not isinstance(data, list):
        return str(data)
    parts = []
    for item in data:
        if isinstance(item, bytes):
            parts.append(item.decode("utf-8", errors="replace"))
        elif item is not None:
            parts.append(str(item))
    return " ".join(parts)
