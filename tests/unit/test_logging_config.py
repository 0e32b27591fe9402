"""
Unit tests for structured JSON logging configuration.
"""
import json
import logging
import sys

import pytest

from cubrid_exporter.common.correlation import CorrelationFilter
from cubrid_exporter.common.logging_config import (
    JSONFormatter,
    get_logger,
    set_level,
    setup_logging,
)


def _record(level=logging.INFO, msg="msg", args=(), exc_info=None):
    return logging.LogRecord(
        name="cubrid_exporter.test", level=level,
        pathname="scraper.py", lineno=42, msg=msg, args=args, exc_info=exc_info
    )


class TestJSONFormatter:
    """Test JSONFormatter output"""

    def setup_method(self):
        self.formatter = JSONFormatter()

    def test_format_basic_fields(self):
        data = json.loads(self.formatter.format(_record(msg="Scraped %s", args=("statdump",))))

        assert data["level"] == "INFO"
        assert data["logger"] == "cubrid_exporter.test"
        assert data["message"] == "Scraped statdump"
        assert data["line"] == 42
        assert data["timestamp"].endswith("Z")

    def test_correlation_and_component(self):
        record = _record()
        record.correlation_id = "abc-123"
        record.component = "exporter"
        data = json.loads(self.formatter.format(record))

        assert data["correlation_id"] == "abc-123"
        assert data["component"] == "exporter"

    def test_empty_correlation_id_omitted(self):
        record = _record()
        record.correlation_id = ""
        data = json.loads(self.formatter.format(record))
        assert "correlation_id" not in data

    def test_collector_extra(self):
        """Scraper failures are logged with extra={"collector": ...}"""
        record = _record(level=logging.ERROR)
        record.collector = "collect.spacedb"
        data = json.loads(self.formatter.format(record))
        assert data["collector"] == "collect.spacedb"

    def test_format_includes_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            exc_info = sys.exc_info()

        data = json.loads(self.formatter.format(_record(level=logging.ERROR, exc_info=exc_info)))
        assert "ValueError: boom" in data["exception"]


class TestSetupLogging:

    def test_configures_logger(self):
        logger = setup_logging("cubrid_exporter.test.setup", level="WARNING")

        assert logger.level == logging.WARNING
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)
        assert any(isinstance(f, CorrelationFilter) for f in logger.filters)
        assert logger.propagate is False

    def test_no_duplicate_handlers(self):
        setup_logging("cubrid_exporter.test.dedup")
        logger = setup_logging("cubrid_exporter.test.dedup")
        assert len(logger.handlers) == 1

    def test_invalid_level_raises(self):
        with pytest.raises(AttributeError):
            setup_logging("cubrid_exporter.test.bad", level="LOUD")


class TestGetLogger:

    def test_creates_handler_when_missing(self):
        name = "cubrid_exporter.test.fresh_logger"
        logging.getLogger(name).handlers.clear()

        logger = get_logger(name)

        assert len(logger.handlers) == 1
        assert logger.level == logging.INFO

    def test_level_override(self):
        assert get_logger("cubrid_exporter.test.override", level="ERROR").level == logging.ERROR


class TestSetLevel:

    def test_updates_loggers_under_prefix_only(self):
        inside = get_logger("cubrid_exporter.test.set_level.a")
        outside = get_logger("other_package.set_level")

        updated = set_level("debug", prefix="cubrid_exporter.test.set_level")

        assert updated >= 1
        assert inside.level == logging.DEBUG
        assert outside.level == logging.INFO

    def test_prefix_match_is_on_dotted_boundary(self):
        sibling = get_logger("cubrid_exporter.test.set_levelx")
        set_level("ERROR", prefix="cubrid_exporter.test.set_level")
        assert sibling.level == logging.INFO
