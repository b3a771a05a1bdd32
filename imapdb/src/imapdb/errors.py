"""Exception hierarchy shared by every imapdb layer.

What:
  Define the error taxonomy raised by the configuration loader, the mailbox
  session, the MIME codec, and the key-value facade.

Why:
  Callers (library consumers and the CLI) need to tell an absent key apart from
  a broken connection or a server that rejected a command. A single base class
  lets the CLI convert any failure into a non-zero exit without catching
  unrelated programming errors.

How:
  Every exception derives from :class:`ImapDBError`. Library exceptions from
  ``imapclient``, ``pydantic``, or the :mod:`email` package are wrapped with
  ``raise ... from exc`` so the original cause stays attached.

Interfaces:
  :class:`ImapDBError`, :class:`ConfigError`, :class:`ImapConnectionError`,
  :class:`MailboxError`, :class:`ProtocolError`, :class:`CodecError`,
  :class:`InvalidKeyError`, :class:`NotFoundError`.
"""
from __future__ import annotations

from typing import Optional


class ImapDBError(Exception):
    """Base class for all imapdb failures."""


class ConfigError(ImapDBError):
    """Settings are missing, malformed, or fail validation."""


class ImapConnectionError(ImapDBError):
    """The TLS dial or the login to the IMAP server failed."""


class MailboxError(ImapDBError):
    """The backing mailbox could neither be selected nor created."""


class ProtocolError(ImapDBError):
    """An IMAP command (select, search, fetch, append, store, expunge) failed."""


class CodecError(ImapDBError):
    """A key/value pair could not be turned into MIME, or a message could not be parsed."""


class InvalidKeyError(CodecError, ValueError):
    """The key cannot be stored as a message label (empty, or contains CR/LF)."""


class NotFoundError(ImapDBError, KeyError):
    """No message holds a value for the requested key.

    What:
      Signals the expected "absent key" outcome: no message matched, or the
      matching message carried no attachment (or an empty one).

    Why:
      Absence is a normal result, not a malfunction. Deriving from
      :class:`KeyError` lets callers treat the store like a mapping, while the
      :class:`ImapDBError` base keeps the CLI's single ``except`` clause valid.

    How:
      Stores the reason and, when known, the key; ``str()`` returns a readable
      message instead of the quoted repr :class:`KeyError` would produce.
    """

    def __init__(self, reason: str = "not found", *, key: Optional[str] = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.key = key

    def __str__(self) -> str:
        if self.key is None:
            return self.reason
        return f"{self.key!r}: {self.reason}"
