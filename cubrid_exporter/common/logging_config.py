"""
Structured logging configuration using JSON format.
All exporter loggers share the JSON formatter and the correlation filter.
"""
import logging
import sys
import json
from datetime import datetime, timezone
from typing import Optional

from cubrid_exporter.common.correlation import CorrelationFilter

LOGGER_PREFIX = "cubrid_exporter"


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging with correlation tracking"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        correlation_id = getattr(record, 'correlation_id', None)
        if correlation_id:
            log_data['correlation_id'] = correlation_id

        component = getattr(record, 'component', None)
        if component:
            log_data['component'] = component

        # Scraper label, passed as extra={"collector": ...}
        if hasattr(record, 'collector'):
            log_data['collector'] = record.collector

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(name: str, level: str = "INFO") -> logging.Logger:
    """
    Configure structured logging for a component.

    Args:
        name: Logger name (usually __name__)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Configured logger instance with correlation filter
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)

    if not any(isinstance(f, CorrelationFilter) for f in logger.filters):
        logger.addFilter(CorrelationFilter())

    logger.propagate = False

    return logger


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get or create a logger with optional level override.

    Args:
        name: Logger name
        level: Optional log level override

    Returns:
        Logger instance with correlation filter
    """
    if level:
        return setup_logging(name, level)

    logger = logging.getLogger(name)
    if not logger.handlers:
        return setup_logging(name, "INFO")

    if not any(isinstance(f, CorrelationFilter) for f in logger.filters):
        logger.addFilter(CorrelationFilter())

    return logger


def set_level(level: str, prefix: str = LOGGER_PREFIX) -> int:
    """
    Apply *level* to every already-created logger under *prefix*.

    Module loggers are created at import time with INFO, so the
    ``--log.level`` flag has to be pushed to them after parsing.

    Returns:
        Number of loggers updated
    """
    numeric = getattr(logging, level.upper())
    updated = 0
    for name, logger in list(logging.Logger.manager.loggerDict.items()):
        if not isinstance(logger, logging.Logger):
            continue
        if name == prefix or name.startswith(prefix + "."):
            logger.setLevel(numeric)
            updated += 1
    return updated
