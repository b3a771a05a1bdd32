"""imapdb command-line interface.

What:
  Provide a Typer application with the ``get``, ``set`` and ``delete``
  commands that operate on the mailbox-backed store.

Why:
  Shell scripts and cron jobs need a way to read and write single values
  without writing Python. Failures must be visible through the exit status
  while stdout stays reserved for the value itself.

How:
  Commands are declared as :class:`Command` descriptors in :data:`COMMANDS`
  and registered on a fresh ``typer.Typer`` by :func:`build_app`. Each command
  resolves settings from the environment (``IMAP_SERVER``, ``IMAP_USER``,
  ``IMAP_PASSWORD``, optional ``IMAP_MAILBOX`` and ``IMAPDB_CONFIG_PATH``),
  opens a store, runs one operation, and closes the connection.

Interfaces:
  ``app`` (Typer application), :func:`build_app`, :func:`main`,
  :class:`Command`, :data:`COMMANDS`.

Invariants & Safety:
  - Exit codes: ``0`` success, ``1`` any :class:`~imapdb.errors.ImapDBError`
    (including a missing key), ``2`` usage errors reported by Typer.
  - Diagnostics are JSON lines on stderr; values are never logged.
"""
from __future__ import annotations

import contextlib
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional

import typer

from .config import load_settings
from .db import ImapDB, open_db
from .errors import ImapDBError
from .utils.logging import JsonLogger, get_logger

LOGGER = get_logger("imapdb.cli")

_MAILBOX_HELP = "Mailbox holding the store (defaults to $IMAP_MAILBOX or 'imapdb')."


@dataclass(frozen=True)
class Command:
    """Descriptor binding a command name and help text to its callback."""

    name: str
    help: str
    callback: Callable[..., None]


@contextlib.contextmanager
def _store(command: str, mailbox: Optional[str]) -> Iterator[ImapDB]:
    """Open a store for one command and turn imapdb failures into exit code 1.

    Records use the configured ``log_level`` once settings are loaded; a
    configuration failure is reported through the module logger at ``INFO``.
    """

    logger = LOGGER
    db: Optional[ImapDB] = None
    try:
        settings = load_settings({"mailbox": mailbox})
        logger = get_logger(LOGGER.component, level=settings.log_level)
        db = open_db(settings)
        yield db
    except ImapDBError as exc:
        logger.error("command_failed", command=command, error=str(exc), kind=type(exc).__name__)
        raise typer.Exit(code=1) from exc
    finally:
        if db is not None:
            _close_quietly(db, command, logger)


def _close_quietly(db: ImapDB, command: str, logger: JsonLogger) -> None:
    try:
        db.close()
    except ImapDBError as exc:
        logger.warning("close_failed", command=command, error=str(exc))


def get(
    key: str = typer.Argument(..., help="Key to read."),
    mailbox: Optional[str] = typer.Option(None, "--mailbox", help=_MAILBOX_HELP),
) -> None:
    """Print the raw value stored under KEY."""

    with _store("get", mailbox) as db:
        value = db.get(key)
    typer.echo(value, nl=False)


def set_(
    key: str = typer.Argument(..., help="Key to write."),
    value: str = typer.Argument(..., help="Value to store (UTF-8)."),
    mailbox: Optional[str] = typer.Option(None, "--mailbox", help=_MAILBOX_HELP),
) -> None:
    """Store VALUE under KEY, replacing any previous value."""

    with _store("set", mailbox) as db:
        db.set(key, value.encode("utf-8"))


def delete(
    key: str = typer.Argument(..., help="Key to remove."),
    mailbox: Optional[str] = typer.Option(None, "--mailbox", help=_MAILBOX_HELP),
) -> None:
    """Remove KEY; succeeds when the key is already absent."""

    with _store("delete", mailbox) as db:
        db.delete(key)


COMMANDS = (
    Command("get", "Print the value stored under a key.", get),
    Command("set", "Store a value under a key.", set_),
    Command("delete", "Remove a key.", delete),
)


def build_app(commands: Iterable[Command]) -> typer.Typer:
    """Return a Typer application exposing ``commands``."""

    application = typer.Typer(help="Key-value store backed by an IMAP mailbox", add_completion=False)
    for command in commands:
        application.command(name=command.name, help=command.help)(command.callback)
    return application


app = build_app(COMMANDS)


def main() -> None:
    app()
