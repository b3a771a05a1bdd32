"""Key-value store facade over one IMAP mailbox.

What:
  Implement ``get``/``set``/``delete``/``close`` on top of
  :class:`~imapdb.session.MailboxSession` and :mod:`imapdb.codec`, keeping at
  most one live message per key.

Why:
  Callers want mapping semantics, not IMAP primitives. The facade owns the
  "delete stale copies, then append the replacement" sequence so no caller has
  to reimplement it, and it decides which server search hits really belong to a
  key.

How:
  Every operation validates the key, re-selects the mailbox, searches with
  ``SEARCH TEXT`` and, in ``exact`` match mode, keeps only the candidates whose
  decoded subject equals the key. ``set`` encodes the new message before touching
  the mailbox so a key that cannot be encoded never destroys the stored value.

Interfaces:
  :class:`ImapDB`, :func:`open_db`.

Invariants & Safety:
  - Failures while flagging or expunging superseded messages propagate; ``set``
    never appends after a failed cleanup.
  - A message whose attachment is missing or empty counts as absent.
  - No locking: two writers racing on one key may leave zero, one, or two
    messages. Readers then pick the newest UID.
"""
from __future__ import annotations

from typing import List, Optional

from pydantic import ValidationError

from . import codec
from .config.schema import DEFAULT_MAILBOX, MatchMode, Settings
from .errors import ConfigError, NotFoundError
from .session import MailboxSession
from .utils.logging import JsonLogger, get_logger

_MATCH_MODES = ("exact", "text")


class ImapDB:
    """Mapping-like store where each key is one message in a mailbox.

    What:
      Wraps a connected :class:`MailboxSession` and exposes byte values by
      string key.

    Why:
      Keeps the store rules (key matching, replacement order, empty-value
      handling) separate from the connection lifecycle.

    How:
      Build one with :meth:`connect` or :func:`open_db`, or around an existing
      session in tests. The instance is a context manager that closes the
      session on exit.
    """

    def __init__(
        self,
        session: MailboxSession,
        *,
        match: MatchMode = "exact",
        logger: Optional[JsonLogger] = None,
    ) -> None:
        if match not in _MATCH_MODES:
            raise ValueError(f"unknown match mode {match!r}")
        self._session = session
        self._match = match
        self._logger = logger or get_logger("imapdb.db")

    @classmethod
    def connect(
        cls,
        address: str,
        user: str,
        password: str,
        *,
        mailbox: str = DEFAULT_MAILBOX,
        match: MatchMode = "exact",
        timeout: Optional[float] = None,
    ) -> "ImapDB":
        """Open a store on ``mailbox`` at ``address`` (``host[:port]``).

        Raises:
          ConfigError: When the arguments fail validation.
          ImapConnectionError: When the dial or login fails.
          MailboxError: When the mailbox cannot be created.
        """

        try:
            settings = Settings(
                address=address,
                username=user,
                password=password,
                mailbox=mailbox,
                match=match,
                timeout=timeout,
            )
        except ValidationError as exc:
            raise ConfigError(f"invalid connection parameters: {exc}") from exc
        return open_db(settings)

    @property
    def session(self) -> MailboxSession:
        return self._session

    @property
    def match(self) -> str:
        return self._match

    def get(self, key: str) -> bytes:
        """Return the value stored under ``key``.

        What:
          Fetches the newest message matching ``key`` and decodes its
          attachment.

        Why:
          Absence and an empty attachment are indistinguishable on the wire, so
          both raise :class:`NotFoundError`.

        Raises:
          InvalidKeyError: When ``key`` cannot be a message label.
          NotFoundError: When no message holds a non-empty value for ``key``.
          ProtocolError: When an IMAP command fails.
          CodecError: When the stored message is not valid MIME.
        """

        codec.check_key(key)
        self._session.select()
        uids = self._matching_uids(key)
        if not uids:
            raise NotFoundError(key=key)
        try:
            body = self._session.fetch_body(uids[-1])
        except NotFoundError as exc:
            raise NotFoundError(exc.reason, key=key) from exc
        value = codec.decode(body)
        if not value:
            raise NotFoundError("message has no value attachment", key=key)
        return value

    def find(self, key: str) -> Optional[bytes]:
        """Like :meth:`get` but return ``None`` instead of raising ``NotFoundError``."""

        try:
            return self.get(key)
        except NotFoundError:
            return None

    def set(self, key: str, value: codec.BytesLike) -> Optional[int]:
        """Store ``value`` under ``key``, replacing every previous message.

        Returns the UID of the appended message when the server reports it
        (UIDPLUS), otherwise ``None``.

        Raises:
          TypeError: When ``value`` is not bytes-like.
          InvalidKeyError: When ``key`` cannot be a message label.
          ProtocolError: When select, search, cleanup, or append fails.
        """

        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise TypeError(f"value must be bytes-like, not {type(value).__name__}")
        message = codec.encode(key, value)
        self._session.select()
        stale = self._matching_uids(key)
        self._session.mark_deleted_and_expunge(stale)
        uid = self._session.append(message)
        self._logger.info("set", key=key, superseded=len(stale), uid=uid, size=len(value))
        return uid

    def delete(self, key: str) -> None:
        """Remove every message stored under ``key``; absent keys are a no-op."""

        codec.check_key(key)
        self._session.select()
        stale = self._matching_uids(key)
        self._session.mark_deleted_and_expunge(stale)
        self._logger.info("delete", key=key, removed=len(stale))

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "ImapDB":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _matching_uids(self, key: str) -> List[int]:
        """Return the ascending UIDs that hold ``key`` under the current match mode."""

        candidates = self._session.search_by_key(key)
        if self._match == "text" or not candidates:
            return candidates
        labels = self._session.fetch_labels(candidates)
        return [uid for uid in candidates if labels.get(uid) == key]


def open_db(settings: Settings, *, logger: Optional[JsonLogger] = None) -> ImapDB:
    """Connect a session for ``settings`` and wrap it in an :class:`ImapDB`."""

    log = logger or get_logger("imapdb.db", level=settings.log_level)
    session = MailboxSession.connect(settings)
    return ImapDB(session, match=settings.match, logger=log)
