"""test_logging_config.py — JSON log formatting and setup."""

import json
import logging
import sys

import pytest

from solarquote.services.logging_config import JSONFormatter, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)


def _record(**extra):
    record = logging.LogRecord(
        name="solarquote-engine", level=logging.WARNING, pathname=__file__, lineno=10,
        msg="Edit rejected: %s", args=("colour",), exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:

    def test_core_fields(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert entry["level"] == "WARNING"
        assert entry["logger"] == "solarquote-engine"
        assert entry["message"] == "Edit rejected: colour"
        assert entry["line"] == 10
        assert "timestamp" in entry

    def test_extras_included(self):
        entry = json.loads(JSONFormatter().format(
            _record(quotation_id="Q-42", project_type="hybrid", duration_ms=1.5)
        ))
        assert entry["quotation_id"] == "Q-42"
        assert entry["project_type"] == "hybrid"
        assert entry["duration_ms"] == 1.5

    def test_absent_extras_omitted(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert "quotation_id" not in entry

    def test_none_context_omitted(self):
        """The access log passes quotation_id=None when no X-Quotation-ID header was sent."""
        entry = json.loads(JSONFormatter().format(_record(quotation_id=None, http_status=422)))
        assert "quotation_id" not in entry
        assert entry["http_status"] == 422

    def test_exception_included(self):
        try:
            raise ValueError("bad edit")
        except ValueError:
            record = _record()
            record.exc_info = sys.exc_info()
        entry = json.loads(JSONFormatter().format(record))
        assert "ValueError: bad edit" in entry["exception"]


class TestSetupLogging:

    def test_json_handler(self, restore_root_logger):
        setup_logging(level="DEBUG", json_output=True)
        assert restore_root_logger.level == logging.DEBUG
        assert isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)

    def test_text_handler(self, restore_root_logger):
        setup_logging(level="warning", json_output=False)
        assert restore_root_logger.level == logging.WARNING
        assert not isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)

    def test_unknown_level_falls_back_to_info(self, restore_root_logger):
        setup_logging(level="chatty")
        assert restore_root_logger.level == logging.INFO

    def test_single_handler_returned(self, restore_root_logger):
        setup_logging()
        handler = setup_logging()
        assert restore_root_logger.handlers == [handler]
        assert handler.stream is sys.stdout

    def test_chatty_loggers_quietened(self, restore_root_logger):
        setup_logging(level="DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING
