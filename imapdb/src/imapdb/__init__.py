"""
Module: imapdb.__init__

What:
  Expose the public surface of imapdb, a key-value store that keeps one MIME
  message per key in a dedicated IMAP mailbox.

Why:
  Library consumers should not need to know the internal module layout to open
  a store, catch its errors, or build settings.

Interfaces:
  - ImapDB / open_db: key-value facade and its settings-based constructor.
  - MailboxSession: IMAP primitives bound to one mailbox.
  - Settings / load_settings: configuration model and loader.
  - ImapDBError and subclasses: error taxonomy.
"""

from .config import Settings, load_settings
from .db import ImapDB, open_db
from .errors import (
    CodecError,
    ConfigError,
    ImapConnectionError,
    ImapDBError,
    InvalidKeyError,
    MailboxError,
    NotFoundError,
    ProtocolError,
)
from .session import MailboxSession

__version__ = "0.1.0"

__all__ = [
    "CodecError",
    "ConfigError",
    "ImapConnectionError",
    "ImapDB",
    "ImapDBError",
    "InvalidKeyError",
    "MailboxError",
    "MailboxSession",
    "NotFoundError",
    "ProtocolError",
    "Settings",
    "load_settings",
    "open_db",
]
