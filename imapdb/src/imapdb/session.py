"""Stateful IMAP session bound to the imapdb store mailbox.

What:
  Wrap the third-party ``imapclient`` library with the handful of UID-based
  primitives the key-value facade needs: select, search, fetch, append, and
  flag-then-expunge deletion.

Why:
  Direct use of ``imapclient`` leaks library exceptions and response shapes
  (``BODY[]`` vs ``BODY.PEEK[]`` keys, ``APPENDUID`` codes) into the store
  logic. Centralising them keeps the facade readable and turns every failure
  into the imapdb error taxonomy.

How:
  :meth:`MailboxSession.connect` dials over TLS, logs in, and selects the store
  mailbox, creating it when the server refuses the selection. Each primitive
  runs inside :meth:`MailboxSession._command`, which rewraps ``imapclient`` and
  socket errors as :class:`~imapdb.errors.ProtocolError` with context.

Interfaces:
  :class:`MailboxSession`.

Invariants & Safety:
  - All operations run in UID mode; sequence numbers are never used.
  - Fetches use ``BODY.PEEK`` so reading a value never sets ``\\Seen``.
  - The session exclusively owns its connection; it must not be shared
    between threads.
"""
from __future__ import annotations

import contextlib
import re
from typing import Dict, Iterable, Iterator, List, Mapping, Optional

from imapclient import IMAPClient
from imapclient.exceptions import IMAPClientError
from pydantic import ValidationError

from . import codec
from .config.schema import DEFAULT_MAILBOX, Settings
from .errors import (
    ConfigError,
    ImapConnectionError,
    MailboxError,
    NotFoundError,
    ProtocolError,
)
from .utils.logging import JsonLogger, get_logger

_BODY_SECTION = b"BODY.PEEK[]"
_LABEL_SECTION = b"BODY.PEEK[HEADER.FIELDS (SUBJECT)]"
_APPENDUID = re.compile(rb"APPENDUID\s+\d+\s+(\d+)", re.IGNORECASE)


class MailboxSession:
    """One authenticated connection with the store mailbox selected.

    What:
      Owns a single ``imapclient.IMAPClient`` and exposes the primitives used
      by :class:`~imapdb.db.ImapDB`.

    Why:
      Keeping the connection lifecycle here lets the facade stay a plain
      sequence of select/search/fetch/append calls.

    How:
      Construct through :meth:`connect` (network) or directly around an already
      logged-in client (tests, custom transports). :meth:`close` logs out.
    """

    def __init__(self, client: IMAPClient, mailbox: str, *, logger: Optional[JsonLogger] = None):
        self._client: Optional[IMAPClient] = client
        self._mailbox = mailbox
        self._logger = logger or get_logger("imapdb.session")

    @classmethod
    def connect(cls, settings: Settings, *, logger: Optional[JsonLogger] = None) -> "MailboxSession":
        """Dial, log in, and select (or create) the store mailbox.

        What:
          Opens a TLS connection to ``settings.host:settings.port``, performs
          ``LOGIN``, and makes ``settings.mailbox`` the current mailbox.

        Why:
          A store that has never been written to has no mailbox yet; creating it
          on first connection keeps ``set`` usable without manual setup.

        How:
          Instantiates ``IMAPClient`` with ``ssl=True``, logs in, then tries
          ``select_folder``. A refused selection triggers ``create_folder``; when
          that fails too the connection is released before raising.

        Args:
          settings: Validated connection settings.
          logger: Optional logger; defaults to one at ``settings.log_level``.

        Returns:
          Connected :class:`MailboxSession`.

        Raises:
          ImapConnectionError: When the dial or the login fails.
          MailboxError: When the mailbox can neither be selected nor created.
        """

        log = logger or get_logger("imapdb.session", level=settings.log_level)
        try:
            client = IMAPClient(settings.host, port=settings.port, ssl=True, timeout=settings.timeout)
        except OSError as exc:
            raise ImapConnectionError(f"failed to connect to {settings.address}: {exc}") from exc
        try:
            client.login(settings.username, settings.password)
        except (IMAPClientError, OSError) as exc:
            _shutdown(client, log)
            raise ImapConnectionError(
                f"failed to log in to {settings.address} as {settings.username}: {exc}"
            ) from exc
        log.debug("connected", address=settings.address, username=settings.username)
        session = cls(client, settings.mailbox, logger=log)
        session._select_or_create()
        return session

    @classmethod
    def open(
        cls,
        address: str,
        username: str,
        password: str,
        mailbox: str = DEFAULT_MAILBOX,
        *,
        timeout: Optional[float] = None,
    ) -> "MailboxSession":
        """Shortcut for :meth:`connect` with loose arguments instead of :class:`Settings`.

        Raises:
          ConfigError: When the arguments fail validation.
        """

        try:
            settings = Settings(
                address=address,
                username=username,
                password=password,
                mailbox=mailbox,
                timeout=timeout,
            )
        except ValidationError as exc:
            raise ConfigError(f"invalid connection parameters: {exc}") from exc
        return cls.connect(settings)

    @property
    def client(self) -> IMAPClient:
        """Return the underlying ``IMAPClient``.

        Raises:
          RuntimeError: If the session has been closed.
        """

        if self._client is None:
            raise RuntimeError("IMAP session is closed")
        return self._client

    @property
    def mailbox(self) -> str:
        return self._mailbox

    @property
    def closed(self) -> bool:
        return self._client is None

    @contextlib.contextmanager
    def _command(self, failure: str) -> Iterator[None]:
        """Translate ``imapclient`` and socket errors into :class:`ProtocolError`."""

        try:
            yield
        except (IMAPClientError, OSError) as exc:
            raise ProtocolError(f"{failure}: {exc}") from exc

    def _select_or_create(self) -> None:
        try:
            self.client.select_folder(self._mailbox)
            return
        except (IMAPClientError, OSError) as exc:
            self._logger.info("mailbox_missing", mailbox=self._mailbox, error=str(exc))
        try:
            self.client.create_folder(self._mailbox)
        except (IMAPClientError, OSError) as exc:
            client, self._client = self._client, None
            _shutdown(client, self._logger)
            raise MailboxError(f"failed to create mailbox {self._mailbox}: {exc}") from exc
        self._logger.info("mailbox_created", mailbox=self._mailbox)

    def select(self) -> None:
        """Re-select the store mailbox so the next command sees current state."""

        with self._command(f"failed to select mailbox {self._mailbox}"):
            self.client.select_folder(self._mailbox)

    def search_by_key(self, key: str) -> List[int]:
        """Return the UIDs whose text matches ``key``, ascending.

        Matching is the server's ``SEARCH TEXT`` (substring, usually
        case-insensitive, headers and body), so a key that is a substring of
        another key's label over-matches.
        """

        charset = None if key.isascii() else "UTF-8"
        with self._command(f"failed to search messages in {self._mailbox}"):
            uids = self.client.search(["TEXT", key], charset=charset)
        return sorted(int(uid) for uid in uids)

    def fetch_labels(self, uids: Iterable[int]) -> Dict[int, str]:
        """Return ``{uid: decoded Subject}`` for ``uids``; vanished UIDs are omitted."""

        wanted = list(uids)
        if not wanted:
            return {}
        with self._command(f"failed to fetch labels in {self._mailbox}"):
            response = self.client.fetch(wanted, [_LABEL_SECTION])
        labels: Dict[int, str] = {}
        for uid, data in response.items():
            header = _section(data, b"BODY[HEADER")
            if header is not None:
                labels[int(uid)] = codec.decode_label(header)
        return labels

    def fetch_body(self, uid: int) -> bytes:
        """Return the raw RFC 822 bytes of message ``uid``.

        Raises:
          NotFoundError: When the server returns no message or no body section.
          ProtocolError: When the ``FETCH`` command fails.
        """

        with self._command(f"failed to fetch message {uid} in {self._mailbox}"):
            response = self.client.fetch([uid], [_BODY_SECTION])
        data = response.get(uid)
        if data is None:
            raise NotFoundError("FETCH command did not return any message")
        body = _section(data, b"BODY[]", exact=True)
        if body is None:
            raise NotFoundError("FETCH command did not return body section")
        return body

    def append(self, message_bytes: bytes, mailbox: Optional[str] = None) -> Optional[int]:
        """Append ``message_bytes`` and return the new UID when the server reports it.

        Servers without UIDPLUS answer without an ``APPENDUID`` code, in which
        case ``None`` is returned.
        """

        target = mailbox or self._mailbox
        with self._command(f"APPEND command failed for {target}"):
            response = self.client.append(target, message_bytes)
        if isinstance(response, str):
            response = response.encode("utf-8")
        match = _APPENDUID.search(response or b"")
        return int(match.group(1)) if match else None

    def mark_deleted_and_expunge(self, uids: Iterable[int]) -> None:
        """Flag ``uids`` as ``\\Deleted`` (silently) and expunge the mailbox.

        Both steps propagate failures; nothing is expunged when flagging fails.
        """

        doomed = list(uids)
        if not doomed:
            return
        with self._command(f"failed to flag messages as deleted in {self._mailbox}"):
            self.client.delete_messages(doomed, silent=True)
        with self._command(f"failed to expunge {self._mailbox}"):
            self.client.expunge()

    def close(self) -> None:
        """Log out and release the connection; closing twice is a no-op."""

        if self._client is None:
            return
        client, self._client = self._client, None
        try:
            client.logout()
        except (IMAPClientError, OSError) as exc:
            _shutdown(client, self._logger)
            raise ProtocolError(f"failed to close connection: {exc}") from exc

    def __enter__(self) -> "MailboxSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _section(data: Mapping[bytes, object], name: bytes, *, exact: bool = False) -> Optional[bytes]:
    """Return the first fetch item named (or prefixed by) ``name`` as bytes.

    Servers echo ``BODY.PEEK[...]`` requests back as ``BODY[...]`` and may
    quote header field names differently, hence the prefix match.
    """

    for key, value in data.items():
        if not isinstance(key, bytes) or value is None:
            continue
        upper = key.upper()
        if upper == name if exact else upper.startswith(name):
            if isinstance(value, str):
                return value.encode("utf-8")
            return bytes(value)
    return None


def _shutdown(client: Optional[IMAPClient], logger: JsonLogger) -> None:
    """Drop a connection that is already failing; secondary errors are logged."""

    if client is None:
        return
    try:
        client.shutdown()
    except (IMAPClientError, OSError) as exc:
        logger.warning("shutdown_failed", error=str(exc))
