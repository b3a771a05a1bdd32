"""MIME codec unit tests.

What:
  Check the layout produced by :func:`imapdb.codec.encode` and the attachment
  lookup performed by :func:`imapdb.codec.decode`.

Why:
  Stored entries must stay readable by ordinary mail clients and must give back
  the exact value bytes, including binary and non-UTF-8 payloads.

How:
  Encode sample entries, re-parse them with the standard library parser, and
  feed hand-written MIME documents to the decoder for edge cases.
"""

from datetime import datetime, timezone
from email import policy
from email.parser import BytesParser

import pytest

from imapdb import codec
from imapdb.errors import CodecError, InvalidKeyError


def _parse(raw: bytes):
    return BytesParser(policy=policy.default).parsebytes(raw)


def test_encode_builds_inline_label_and_attachment() -> None:
    raw = codec.encode("config/feature", b"\x00\xffvalue", now=datetime(2024, 5, 1, tzinfo=timezone.utc))
    message = _parse(raw)

    assert message["Subject"] == "config/feature"
    assert message["MIME-Version"] == "1.0"
    assert "1 May 2024" in message["Date"]
    assert message.get_content_type() == "multipart/mixed"
    inline, attachment = list(message.iter_parts())
    assert inline.get_content_type() == "text/plain"
    assert inline.get_content_charset() == "utf-8"
    assert inline.get_content_disposition() == "inline"
    assert inline.get_content().strip() == "config/feature"
    assert attachment.get_content_type() == "application/octet-stream"
    assert attachment.get_filename() == codec.ATTACHMENT_FILENAME
    assert attachment.get_content_disposition() == "attachment"
    assert attachment.get_payload(decode=True) == b"\x00\xffvalue"


def test_encode_uses_crlf_line_endings() -> None:
    raw = codec.encode("k", b"v")

    assert b"\r\n" in raw
    assert b"\n" not in raw.replace(b"\r\n", b"")


def test_decode_returns_value_bytes() -> None:
    value = bytes(range(256)) * 4

    assert codec.decode(codec.encode("binary", value)) == value


def test_decode_accepts_non_ascii_key() -> None:
    raw = codec.encode("clé/été", "données".encode("latin-1"))

    assert codec.decode(raw) == "données".encode("latin-1")
    assert _parse(raw)["Subject"] == "clé/été"


def test_iter_parts_tags_each_leaf() -> None:
    parts = list(codec.iter_parts(codec.encode("k", b"payload")))

    assert [part.kind for part in parts] == [codec.PartKind.INLINE, codec.PartKind.ATTACHMENT]
    assert parts[1].filename == "data.bin"
    assert parts[1].payload == b"payload"


def test_iter_parts_is_not_restartable() -> None:
    parts = codec.iter_parts(codec.encode("k", b"payload"))

    assert len(list(parts)) == 2
    assert list(parts) == []


def test_decode_picks_first_attachment() -> None:
    raw = (
        b"Subject: k\r\n"
        b"MIME-Version: 1.0\r\n"
        b'Content-Type: multipart/mixed; boundary="b"\r\n'
        b"\r\n"
        b"--b\r\n"
        b"Content-Type: text/plain\r\n"
        b"\r\n"
        b"k\r\n"
        b"--b\r\n"
        b"Content-Type: application/octet-stream\r\n"
        b'Content-Disposition: attachment; filename="first.bin"\r\n'
        b"\r\n"
        b"first\r\n"
        b"--b\r\n"
        b"Content-Type: application/octet-stream\r\n"
        b'Content-Disposition: attachment; filename="second.bin"\r\n'
        b"\r\n"
        b"second\r\n"
        b"--b--\r\n"
    )

    assert codec.decode(raw) == b"first"


def test_decode_without_attachment_is_empty() -> None:
    raw = b"Subject: k\r\nContent-Type: text/plain\r\n\r\nonly text\r\n"

    assert codec.decode(raw) == b""


def test_decode_rejects_broken_multipart() -> None:
    raw = (
        b"Subject: k\r\n"
        b"MIME-Version: 1.0\r\n"
        b'Content-Type: multipart/mixed; boundary="missing"\r\n'
        b"\r\n"
        b"no boundary anywhere\r\n"
    )

    with pytest.raises(CodecError):
        codec.decode(raw)


@pytest.mark.parametrize("key", ["", "a\r\nBcc: victim@example.org", "line\nbreak"])
def test_encode_rejects_unusable_keys(key: str) -> None:
    with pytest.raises(InvalidKeyError):
        codec.encode(key, b"v")


def test_invalid_key_is_a_codec_and_value_error() -> None:
    with pytest.raises(CodecError):
        codec.check_key("")
    with pytest.raises(ValueError):
        codec.check_key("a\rb")


def test_check_key_requires_text() -> None:
    with pytest.raises(TypeError):
        codec.check_key(b"bytes-key")


def test_decode_label_handles_encoded_words() -> None:
    header = b"Subject: =?utf-8?q?cl=C3=A9?=\r\n\r\n"

    assert codec.decode_label(header) == "clé"
    assert codec.decode_label(b"\r\n") == ""


@pytest.mark.parametrize("key", [" lead", "=?utf-8?q?abc?="])
def test_check_key_rejects_keys_the_subject_rewrites(key: str) -> None:
    with pytest.raises(InvalidKeyError, match="does not survive"):
        codec.check_key(key)


@pytest.mark.parametrize("key", ["trailing ", "double  space", "clé/été"])
def test_check_key_accepts_keys_that_read_back_unchanged(key: str) -> None:
    codec.check_key(key)

    assert _parse(codec.encode(key, b"v"))["Subject"] == key
