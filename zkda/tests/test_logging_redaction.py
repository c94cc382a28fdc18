"""Tests for log formatting and redaction."""

from __future__ import annotations

import json
import logging

import pytest

from zkda.logging import (
    JSONFormatter,
    LoggingOptions,
    RedactionFilter,
    configure_logging,
    load_logging_options_from_env,
)


def _record(msg: str, context=None) -> logging.LogRecord:
    record = logging.LogRecord("zkda.test", logging.INFO, __file__, 1, msg, None, None)
    if context is not None:
        record.context = context
    return record


class TestRedactionFilter:
    def test_credentials_in_message(self):
        record = _record("calling ledger with X-API-Key: abc123 and token=xyz")
        RedactionFilter().filter(record)
        assert "abc123" not in record.msg
        assert "xyz" not in record.msg
        assert "[REDACTED]" in record.msg

    def test_private_inputs_hidden(self):
        record = _record("batch", {"private_inputs": "c2VjcmV0", "operations": 2})
        RedactionFilter().filter(record)
        assert record.context == {"private_inputs": "[REDACTED]", "operations": 2}

    def test_nested_api_key(self):
        record = _record("cfg", {"ledger": {"api_key": "s3cret", "base_url": "http://x"}})
        RedactionFilter().filter(record)
        assert record.context["ledger"]["api_key"] == "[REDACTED]"
        assert record.context["ledger"]["base_url"] == "http://x"

    def test_blobs_truncated(self):
        proof = "A" * 500
        record = _record("record", {"proof": proof, "sequence": 4})
        RedactionFilter(max_blob_chars=16).filter(record)
        assert record.context["proof"] == "A" * 16 + "...(500 chars)"
        assert record.context["sequence"] == 4

    def test_raw_bytes_summarized(self):
        record = _record("value", {"items": [b"\x00" * 16]})
        RedactionFilter().filter(record)
        assert record.context["items"] == ["<16 bytes>"]

    def test_depth_limit(self):
        deep = {"a": {"b": {"c": {"d": "leaf"}}}}
        record = _record("deep", deep)
        RedactionFilter(max_depth=2).filter(record)
        assert record.context["a"]["b"]["c"] == "[REDACTED]"


class TestJSONFormatter:
    def test_payload(self):
        record = _record("Transition accepted", {"sequence": 3})
        payload = json.loads(JSONFormatter().format(record))
        assert payload == {
            "level": "INFO",
            "logger": "zkda.test",
            "message": "Transition accepted",
            "context": {"sequence": 3},
        }


class TestConfigure:
    def test_env_options(self, monkeypatch):
        monkeypatch.setenv("ZKDA_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("ZKDA_LOG_FORMAT", "json")
        monkeypatch.setenv("ZKDA_LOG_REDACT", "0")
        options = load_logging_options_from_env()
        assert options == LoggingOptions(level="DEBUG", format="json", file=None, redact=False)

    def test_invalid_format(self):
        with pytest.raises(ValueError):
            configure_logging(LoggingOptions(format="xml"))

    def test_file_handler_writes_redacted_json(self, tmp_path):
        log_file = tmp_path / "zkda.log"
        configure_logging(LoggingOptions(level="INFO", format="json", file=str(log_file)))
        logger = logging.getLogger("zkda.session")

        try:
            logger.info("submit", extra={"context": {"private_inputs": "c2VjcmV0"}})
            for handler in logging.getLogger("zkda").handlers:
                handler.flush()

            line = log_file.read_text().strip().splitlines()[-1]
            assert json.loads(line)["context"] == {"private_inputs": "[REDACTED]"}
        finally:
            root = logging.getLogger("zkda")
            for handler in list(root.handlers):
                handler.close()
                root.removeHandler(handler)
            root.propagate = True
