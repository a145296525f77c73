"""
Logging configuration for labformula.

Provides structured logging with JSON output for production
and human-readable output for development. The engine modules only
ever call get_logger(); configuring handlers is left to the host
application through setup_logging().
"""

import logging
import sys
from typing import Any

import orjson

from labformula.core.config import Settings, settings as default_settings


class JSONFormatter(logging.Formatter):
    """
    Custom JSON formatter for structured logging.

    Outputs log records as JSON for easy parsing by log aggregators.
    """

    # Attributes every LogRecord carries; anything else came from extra=
    STANDARD_ATTRS = frozenset(
        {
            "name",
            "msg",
            "args",
            "created",
            "filename",
            "funcName",
            "levelname",
            "levelno",
            "lineno",
            "module",
            "msecs",
            "pathname",
            "process",
            "processName",
            "relativeCreated",
            "stack_info",
            "exc_info",
            "exc_text",
            "thread",
            "threadName",
            "taskName",
            "message",
        }
    )

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_data = {
            k: v
            for k, v in record.__dict__.items()
            if k not in self.STANDARD_ATTRS and not k.startswith("_")
        }
        if extra_data:
            log_data["extra"] = extra_data

        return orjson.dumps(log_data, default=str).decode("utf-8")


class ConsoleFormatter(logging.Formatter):
    """
    Custom console formatter with colors for development.

    Makes logs easier to read during development.
    """

    # ANSI color codes
    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors."""
        color = self.COLORS.get(record.levelname, self.RESET)
        original = record.levelname
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def setup_logging(
    log_level: str | None = None,
    json_logs: bool | None = None,
    log_format: str | None = None,
    settings: Settings | None = None,
) -> None:
    """
    Set up application logging.

    Arguments left as None come from settings: debug forces DEBUG over
    log_level, and JSON output is on when json_logs is set or the
    environment is production.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Whether to output JSON logs (for production)
        log_format: Custom log format string
        settings: Settings to read defaults from
    """
    settings = settings or default_settings
    if log_level is None:
        log_level = "DEBUG" if settings.debug else settings.log_level
    if json_logs is None:
        json_logs = settings.json_logs or settings.environment == "production"
    log_level = log_level.upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)

    if json_logs:
        formatter: logging.Formatter = JSONFormatter()
    else:
        format_str = (
            log_format
            or "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d - %(message)s"
        )
        formatter = ConsoleFormatter(format_str, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    logger = logging.getLogger(__name__)
    logger.info(
        "Logging configured",
        extra={
            "log_level": log_level,
            "json_logs": json_logs,
            "environment": settings.environment,
        },
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


class LoggerMixin:
    """
    Mixin class that provides a logger attribute.

    Classes that inherit from this mixin get a logger named after the class.
    """

    @property
    def logger(self) -> logging.Logger:
        """Get logger for this class."""
        return logging.getLogger(self.__class__.__module__ + "." + self.__class__.__name__)
