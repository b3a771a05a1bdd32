"""Structured logger unit tests.

What:
  Validate that :class:`imapdb.utils.logging.JsonLogger` emits one JSON object
  per line, filters by level, and redacts passwords and stored values.
"""

import io
import json

from imapdb.utils.logging import REDACTED, JsonLogger, get_logger


def test_emits_json_line_with_context() -> None:
    stream = io.StringIO()
    logger = JsonLogger(stream=stream, component="imapdb.test")

    logger.info("stored", key="k", uid=7)

    record = json.loads(stream.getvalue())
    assert record["lvl"] == "INFO"
    assert record["msg"] == "stored"
    assert record["component"] == "imapdb.test"
    assert record["key"] == "k"
    assert record["uid"] == 7
    assert "ts" in record


def test_redacts_sensitive_fields_recursively() -> None:
    stream = io.StringIO()
    logger = JsonLogger(stream=stream)

    logger.warning("login", password="hunter2", nested={"value": b"raw", "user": "u"})

    record = json.loads(stream.getvalue())
    assert record["password"] == REDACTED
    assert record["nested"] == {"value": REDACTED, "user": "u"}
    assert "hunter2" not in stream.getvalue()


def test_level_threshold_filters_records() -> None:
    stream = io.StringIO()
    logger = JsonLogger(stream=stream, level="WARN")

    logger.debug("noise")
    logger.info("noise")
    logger.error("boom", error="bad")

    lines = stream.getvalue().splitlines()
    assert len(lines) == 1
    assert json.loads(lines[0])["lvl"] == "ERROR"


def test_default_stream_is_stderr(capsys) -> None:
    get_logger("imapdb.cli").error("command_failed", error="nope")

    captured = capsys.readouterr()
    assert captured.out == ""
    assert json.loads(captured.err)["error"] == "nope"
