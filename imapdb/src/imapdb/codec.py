"""MIME layout of one stored key/value entry.

What:
  Turn a ``(key, value)`` pair into the RFC 822 bytes appended to the store
  mailbox, and turn fetched bytes back into the value.

Why:
  Every entry must stay a well-formed mail so any IMAP client can browse the
  store: the key is readable as the subject and as an inline text part, while
  the value travels untouched as a base64 attachment named ``data.bin``.

How:
  Build messages with :class:`email.message.EmailMessage` and serialise them
  with the SMTP policy (CRLF line endings, as IMAP ``APPEND`` expects). Parsing
  uses :class:`~email.parser.BytesParser` with the default policy; leaf parts
  are exposed lazily as tagged :class:`Part` values so the attachment is found
  by its :class:`PartKind` rather than by inspecting headers at call sites.

Interfaces:
  :func:`encode`, :func:`decode`, :func:`iter_parts`, :func:`decode_label`,
  :func:`check_key`, :class:`Part`, :class:`PartKind`.

Invariants & Safety:
  - Keys containing CR or LF, or keys whose ``Subject`` would not decode back
    to the same string, are rejected before any header is written.
  - :func:`decode` returns the payload of the *first* attachment part and an
    empty byte string when there is none.
  - Structurally broken multipart bodies raise :class:`CodecError` instead of
    silently yielding nothing.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from email import errors, policy
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import format_datetime
from typing import Iterator, Optional, Union

from .errors import CodecError, InvalidKeyError

ATTACHMENT_FILENAME = "data.bin"

BytesLike = Union[bytes, bytearray, memoryview]

_STRUCTURAL_DEFECTS = (
    errors.StartBoundaryNotFoundDefect,
    errors.NoBoundaryInMultipartDefect,
    errors.MultipartInvariantViolationDefect,
    errors.MissingHeaderBodySeparatorDefect,
)


class PartKind(enum.Enum):
    INLINE = "inline"
    ATTACHMENT = "attachment"


@dataclass(frozen=True)
class Part:
    """One leaf MIME part of a stored message.

    Attributes:
      kind: Whether the part is displayed inline or carried as an attachment.
      content_type: Lower-cased ``maintype/subtype``.
      filename: Attachment filename, if any.
      payload: Transfer-decoded body bytes.
    """

    kind: PartKind
    content_type: str
    filename: Optional[str]
    payload: bytes


def check_key(key: str) -> None:
    """Reject keys that cannot round-trip through a ``Subject`` header.

    Exact matching compares the key with the subject as a parser reads it back,
    so keys that the header machinery rewrites (leading whitespace, text that
    looks like an RFC 2047 encoded word) are refused too.

    Raises:
      TypeError: When ``key`` is not a string.
      InvalidKeyError: When ``key`` is empty, contains CR/LF, or does not read
        back unchanged from a ``Subject`` header.
    """

    if not isinstance(key, str):
        raise TypeError(f"key must be str, not {type(key).__name__}")
    if not key:
        raise InvalidKeyError("key must not be empty")
    if "\r" in key or "\n" in key:
        raise InvalidKeyError(f"key {key!r} must not contain line breaks")
    if _label_round_trip(key) != key:
        raise InvalidKeyError(f"key {key!r} does not survive as a message subject")


def _label_round_trip(key: str) -> str:
    header = EmailMessage()
    try:
        header["Subject"] = key
        return decode_label(header.as_bytes(policy=policy.SMTP))
    except (ValueError, TypeError, errors.MessageError) as exc:
        raise InvalidKeyError(f"key {key!r} cannot be written as a subject: {exc}") from exc


def encode(key: str, value: BytesLike, *, now: Optional[datetime] = None) -> bytes:
    """Build the MIME message that stores ``value`` under ``key``.

    What:
      Produces a ``multipart/mixed`` message whose ``Subject`` is the key, whose
      first part is an inline ``text/plain; charset=utf-8`` copy of the key, and
      whose second part is the ``application/octet-stream`` attachment
      ``data.bin`` holding the value.

    Why:
      The subject is what IMAP search and mail clients show; the attachment keeps
      arbitrary bytes intact through base64 transfer encoding.

    Args:
      key: Entry label; must be non-empty and free of CR/LF.
      value: Raw value bytes (may be empty).
      now: Timestamp for the ``Date`` header; defaults to the current UTC time.

    Returns:
      Serialised message bytes with CRLF line endings.

    Raises:
      InvalidKeyError: When the key is empty or contains line breaks.
      CodecError: When the message cannot be assembled.
    """

    check_key(key)
    message = EmailMessage()
    try:
        message["Date"] = format_datetime(now or datetime.now(timezone.utc))
        message["Subject"] = key
        message.set_content(key, subtype="plain", charset="utf-8", disposition="inline")
        message.add_attachment(
            bytes(value),
            maintype="application",
            subtype="octet-stream",
            filename=ATTACHMENT_FILENAME,
        )
        return message.as_bytes(policy=policy.SMTP)
    except (ValueError, TypeError, errors.HeaderParseError) as exc:
        raise CodecError(f"failed to create mail message for {key!r}: {exc}") from exc


def iter_parts(message_bytes: BytesLike) -> Iterator[Part]:
    """Yield the leaf parts of ``message_bytes`` in document order.

    The generator parses on first use and cannot be restarted; call again for a
    fresh pass.

    Raises:
      CodecError: When the message is not valid MIME.
    """

    message = _parse(message_bytes)
    for part in message.walk():
        if part.is_multipart():
            continue
        kind = PartKind.ATTACHMENT if part.is_attachment() else PartKind.INLINE
        payload = part.get_payload(decode=True)
        yield Part(
            kind=kind,
            content_type=part.get_content_type(),
            filename=part.get_filename(),
            payload=payload if isinstance(payload, bytes) else b"",
        )


def decode(message_bytes: BytesLike) -> bytes:
    """Return the value stored in ``message_bytes``.

    Scans the parts in order and returns the payload of the first attachment;
    a message without an attachment decodes to ``b""``.
    """

    for part in iter_parts(message_bytes):
        if part.kind is PartKind.ATTACHMENT:
            return part.payload
    return b""


def decode_label(header_bytes: BytesLike) -> str:
    """Return the decoded ``Subject`` of a header block (``""`` when absent)."""

    message = BytesParser(policy=policy.default).parsebytes(bytes(header_bytes), headersonly=True)
    subject = message.get("Subject")
    return str(subject) if subject is not None else ""


def _parse(message_bytes: BytesLike) -> EmailMessage:
    try:
        message = BytesParser(policy=policy.default).parsebytes(bytes(message_bytes))
    except (ValueError, TypeError, LookupError, errors.MessageError) as exc:
        raise CodecError(f"failed to parse mail message: {exc}") from exc
    for part in message.walk():
        for defect in part.defects:
            if isinstance(defect, _STRUCTURAL_DEFECTS):
                raise CodecError(f"failed to read message part: {type(defect).__name__}")
    return message
