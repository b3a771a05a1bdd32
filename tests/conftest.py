"""Pytest configuration shared by every imapdb suite.

What:
  Make the in-repo ``imapdb/src`` tree importable and isolate tests from the
  operator's shell environment.

Why:
  Tests must exercise the source tree rather than an installed wheel, and a
  developer with ``IMAP_SERVER`` exported must not have it leak into settings
  assertions.

How:
  Prepend ``imapdb/src`` to ``sys.path`` at import time and remove every
  ``IMAP_*`` variable plus ``IMAPDB_CONFIG_PATH`` before each test.

Interfaces:
  :func:`clean_environment` (autouse pytest fixture).
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "imapdb" / "src"
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))

import pytest

_ENV_VARS = ("IMAP_SERVER", "IMAP_USER", "IMAP_PASSWORD", "IMAP_MAILBOX", "IMAPDB_CONFIG_PATH")


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
