"""Unit tests for structured logging."""

import json
import logging

from offer_pipeline.core.logging_config import (
    StructuredFormatter,
    configure_structured_logging,
)


def make_record(**extra):
    record = logging.LogRecord(
        name="offer_pipeline.test",
        level=logging.WARNING,
        pathname=__file__,
        lineno=10,
        msg="Attempt %d failed",
        args=(1,),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    def test_context_fields_lifted(self):
        line = StructuredFormatter().format(
            make_record(service="completion", retry_attempt=1, error_code="COMPLETION_TIMEOUT")
        )
        data = json.loads(line)
        assert data["message"] == "Attempt 1 failed"
        assert data["level"] == "WARNING"
        assert data["service"] == "completion"
        assert data["retry_attempt"] == 1
        assert data["error_code"] == "COMPLETION_TIMEOUT"
        assert data["timestamp"].endswith("Z")

    def test_unknown_extras_ignored(self):
        data = json.loads(StructuredFormatter().format(make_record(secret="x")))
        assert "secret" not in data


class TestConfigure:
    def test_configures_root_and_quiets_http_logs(self):
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        try:
            configure_structured_logging(level="debug", json_format=True)
            assert root.level == logging.DEBUG
            assert isinstance(root.handlers[0].formatter, StructuredFormatter)
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
