"""
Structured logging configuration using JSON format.
Provides consistent logging across the exporter with refresh-id support.
"""
import logging
import sys
import json
from datetime import datetime, timezone
from typing import Optional, TextIO

from prtg_exporter.common.correlation import CorrelationFilter

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Root of the package logger hierarchy; module loggers propagate into it
PACKAGE_LOGGER = "prtg_exporter"


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging with refresh tracking"""

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

        refresh_id = getattr(record, 'refresh_id', None)
        if refresh_id:
            log_data['refresh_id'] = refresh_id

        component = getattr(record, 'component', None)
        if component:
            log_data['component'] = component

        if hasattr(record, 'sensor_id'):
            log_data['sensor_id'] = record.sensor_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(
    name: str = PACKAGE_LOGGER,
    level: str = "INFO",
    fmt: str = "json",
    stream: Optional[TextIO] = None
) -> logging.Logger:
    """
    Configure logging for a logger and everything below it.

    Args:
        name: Logger name (the package logger by default)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        fmt: "json" for structured output, "text" for human-readable lines
        stream: Output stream (stdout by default)

    Returns:
        Configured logger instance with correlation filter on its handler
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    if fmt == "text":
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    else:
        handler.setFormatter(JSONFormatter())
    # Handler-level filter so records propagated from child loggers get it too
    handler.addFilter(CorrelationFilter())

    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get a module logger.

    Module loggers do not get handlers of their own: they propagate to the
    package logger configured by ``setup_logging``.

    Args:
        name: Logger name (usually __name__)
        level: Optional log level override
    """
    logger = logging.getLogger(name)
    if level:
        logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return logger
