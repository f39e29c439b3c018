"""
Tests for logging formatters module.
"""

import json
import logging
import sys

from daogov.logging.formatters import JSONFormatter, TextFormatter


def make_record(message="Vote cast", level=logging.INFO, exc_info=None, **extra):
    record = logging.LogRecord(
        "daogov.governance.engine", level, __file__, 10, message, None, exc_info
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Test JSONFormatter class."""

    def test_basic_fields(self):
        """Test the standard JSON fields."""
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "info"
        assert data["logger"] == "daogov.governance.engine"
        assert data["message"] == "Vote cast"
        assert data["timestamp"].endswith("Z")
        assert "thread_id" in data
        assert "process_id" in data

    def test_static_and_extra_fields(self):
        """Test static fields and ``extra`` attributes."""
        formatter = JSONFormatter(
            include_thread=False, include_process=False, static_fields={"service": "daogov"}
        )
        data = json.loads(formatter.format(make_record(dao_id="0xdao")))

        assert data["service"] == "daogov"
        assert data["extra"] == {"dao_id": "0xdao"}
        assert "thread_id" not in data

    def test_exception(self):
        """Test exception formatting."""
        try:
            raise ValueError("bad vote")
        except ValueError:
            record = make_record(level=logging.ERROR, exc_info=sys.exc_info())

        data = json.loads(JSONFormatter().format(record))
        assert data["exception"]["type"] == "ValueError"
        assert data["exception"]["message"] == "bad vote"
        assert "Traceback" in data["exception"]["traceback"]

    def test_unix_timestamp(self):
        """Test the unix timestamp format."""
        record = make_record()
        data = json.loads(JSONFormatter(timestamp_format="unix").format(record))
        assert float(data["timestamp"]) == record.created


class TestTextFormatter:
    """Test TextFormatter class."""

    def test_format(self):
        """Test the text layout."""
        line = TextFormatter().format(make_record(level=logging.WARNING))
        assert "[WARNING]" in line
        assert "daogov.governance.engine:" in line
        assert line.endswith("Vote cast")

    def test_without_logger(self):
        """Test omitting the logger name."""
        line = TextFormatter(include_logger=False).format(make_record())
        assert "daogov.governance.engine" not in line
