"""Pytest fixtures for unit tests requiring the IMAP fake.

What:
  Expose a :class:`FakeImapBackend` wired in place of ``imapclient.IMAPClient``
  plus ready-made settings, sessions, and stores on top of it.

Why:
  Session, store, and CLI tests all need the same network-free server. Sharing
  the fixtures keeps each test focused on the behaviour it asserts.

How:
  Append the unit directory to ``sys.path`` for ``fakes`` imports and
  monkeypatch ``imapdb.session.IMAPClient`` with the backend's ``connect``
  method so the production connect path runs unchanged.

Interfaces:
  :func:`backend`, :func:`settings`, :func:`session`, :func:`db`.

Invariants & Safety:
  - Each test receives a fresh backend; the store mailbox already exists.
"""

import sys
from pathlib import Path

import pytest

from imapdb.config import Settings
from imapdb.db import open_db
from imapdb.session import MailboxSession

UNIT_DIR = Path(__file__).resolve().parent
if str(UNIT_DIR) not in sys.path:
    sys.path.insert(0, str(UNIT_DIR))

from fakes import FakeImapBackend


@pytest.fixture
def backend(monkeypatch: pytest.MonkeyPatch) -> FakeImapBackend:
    fake = FakeImapBackend(mailboxes=("imapdb",))
    monkeypatch.setattr("imapdb.session.IMAPClient", fake.connect)
    return fake


@pytest.fixture
def settings() -> Settings:
    return Settings(address="imap.example.org", username="user", password="secret")


@pytest.fixture
def session(backend: FakeImapBackend, settings: Settings):
    with MailboxSession.connect(settings) as opened:
        yield opened


@pytest.fixture
def db(backend: FakeImapBackend, settings: Settings):
    with open_db(settings) as store:
        yield store

