"""Tests for structured log output."""

import logging

import orjson

from vault_index.core.logging import ContextTextFormatter, JsonFormatter, log_context


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("vault_index.test", logging.ERROR, __file__, 1, "Failed: %s", ("disk full",), None)
    record.__dict__.update(extra)
    return record


def test_log_context_prefixes_fields_and_drops_none() -> None:
    assert log_context(path="a.md", worker=None) == {"ctx_path": "a.md"}


def test_json_formatter_nests_context() -> None:
    payload = orjson.loads(JsonFormatter().format(_record(**log_context(path="notes/a.md", worker="embed-worker-0"))))
    assert payload["message"] == "Failed: disk full"
    assert payload["level"] == "ERROR"
    assert payload["context"] == {"path": "notes/a.md", "worker": "embed-worker-0"}


def test_json_formatter_omits_empty_context() -> None:
    payload = orjson.loads(JsonFormatter().format(_record()))
    assert "context" not in payload


def test_text_formatter_appends_context_pairs() -> None:
    line = ContextTextFormatter().format(_record(**log_context(path="a.md", model="hashed")))
    assert line.endswith("Failed: disk full model=hashed path=a.md")
