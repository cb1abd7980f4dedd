"""
Unit tests for structured JSON logging configuration.
"""
import io
import sys
import json
import logging

from prtg_exporter.common.correlation import RefreshContext
from prtg_exporter.common.logging_config import JSONFormatter, get_logger, setup_logging


def _record(**extra):
    record = logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname="test.py",
        lineno=42,
        msg="Hello %s",
        args=("world",),
        exc_info=None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Test JSONFormatter output"""

    def setup_method(self):
        self.formatter = JSONFormatter()

    def test_format_basic_fields(self):
        """Test that basic log fields are present in JSON output"""
        data = json.loads(self.formatter.format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "test.logger"
        assert data["message"] == "Hello world"
        assert data["line"] == 42
        assert data["timestamp"].endswith("Z")

    def test_includes_refresh_id(self):
        data = json.loads(self.formatter.format(_record(refresh_id="abc123")))
        assert data["refresh_id"] == "abc123"

    def test_omits_empty_refresh_id(self):
        data = json.loads(self.formatter.format(_record(refresh_id="", component="")))
        assert "refresh_id" not in data
        assert "component" not in data

    def test_includes_sensor_id(self):
        data = json.loads(self.formatter.format(_record(sensor_id=2001)))
        assert data["sensor_id"] == 2001

    def test_includes_exception(self):
        try:
            raise ValueError("bad value")
        except ValueError:
            record = _record()
            record.exc_info = sys.exc_info()
        data = json.loads(self.formatter.format(record))
        assert "ValueError: bad value" in data["exception"]


class TestSetupLogging:
    """Test setup_logging"""

    def test_json_output_with_refresh_id(self):
        """Child loggers propagate and pick up the refresh id"""
        stream = io.StringIO()
        setup_logging(name="prtg_exporter_test", level="DEBUG", stream=stream)
        child = get_logger("prtg_exporter_test.poller")

        with RefreshContext("cycle-1"):
            child.info("refreshing")

        data = json.loads(stream.getvalue().strip())
        assert data["message"] == "refreshing"
        assert data["logger"] == "prtg_exporter_test.poller"
        assert data["refresh_id"] == "cycle-1"

    def test_text_format(self):
        stream = io.StringIO()
        logger = setup_logging(name="prtg_exporter_text", fmt="text", stream=stream)
        logger.warning("plain")
        assert "[WARNING] prtg_exporter_text: plain" in stream.getvalue()

    def test_level_filters(self):
        stream = io.StringIO()
        logger = setup_logging(name="prtg_exporter_level", level="WARNING", stream=stream)
        logger.info("hidden")
        assert stream.getvalue() == ""

    def test_no_duplicate_handlers(self):
        setup_logging(name="prtg_exporter_dup", stream=io.StringIO())
        logger = setup_logging(name="prtg_exporter_dup", stream=io.StringIO())
        assert len(logger.handlers) == 1
        assert logger.propagate is False

    def test_get_logger_level_override(self):
        logger = get_logger("prtg_exporter_override", level="ERROR")
        assert logger.level == logging.ERROR
