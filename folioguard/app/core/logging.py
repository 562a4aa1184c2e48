"""Structured logging configuration for FolioGuard.

This module provides a structured logging setup using Python's standard
logging module with JSON formatting for production environments. Security
events go to the ``folioguard.security`` logger, whose handlers are moved
behind a background writer so logging never blocks request handling.
"""

import json
import logging
import logging.config
import sys
import traceback
from datetime import datetime
from typing import Any, Dict, Optional

from folioguard.app.core.async_logging import make_logger_async, shutdown_async_logging
from folioguard.app.core.config import settings

SECURITY_LOGGER_NAME = "folioguard.security"

# Attributes present on every LogRecord; anything else came in via extra=
_RESERVED_ATTRS = frozenset((
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "message",
    "asctime", "taskName",
))


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Outputs log records as JSON objects for consumption by log aggregation
    systems or a SIEM.
    """

    # Contextual fields for request tracking
    CONTEXT_FIELDS = [
        "request_id",    # Request ID from X-Request-ID header
        "identifier",    # Caller identifier (client IP or composite key)
        "event_kind",    # Security event kind
        "path",          # Request path
        "method",        # HTTP method
        "status_code",   # HTTP response status
    ]

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON string representation of the log record
        """
        record.message = record.getMessage()

        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).astimezone().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
            "source": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        for field in self.CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None and value != "-":
                log_data[field] = value

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and key not in self.CONTEXT_FIELDS
        }
        if extra:
            log_data["extra"] = extra

        if record.exc_info and record.exc_info != (None, None, None):
            log_data["exception"] = traceback.format_exception(*record.exc_info)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class ContextFilter(logging.Filter):
    """Logging filter that adds default contextual fields to log records."""

    CONTEXT_DEFAULTS = {
        "request_id": None,
        "identifier": None,
        "event_kind": None,
        "path": None,
        "method": None,
        "status_code": None,
    }

    def filter(self, record: logging.LogRecord) -> bool:
        for field, default in self.CONTEXT_DEFAULTS.items():
            if not hasattr(record, field):
                setattr(record, field, default)
        return True


def get_logging_config(
    log_level: Optional[str] = None, log_format: Optional[str] = None
) -> Dict[str, Any]:
    """Get logging configuration dictionary.

    Returns:
        Logging configuration dict compatible with logging.config.dictConfig
    """
    log_format = (log_format or settings.log_format).lower()
    log_level = (log_level or settings.log_level).upper()

    formatters: Dict[str, Any] = {
        "standard": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        },
        "structured": {
            "format": (
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
                " - request_id=%(request_id)s - identifier=%(identifier)s"
            )
        },
    }

    if log_format == "json":
        formatters["json"] = {"()": "folioguard.app.core.logging.JSONFormatter"}
        default_formatter = "json"
    else:
        default_formatter = "structured" if log_format == "structured" else "standard"

    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "level": log_level,
            "formatter": default_formatter,
            "stream": sys.stdout,
            "filters": ["context"],
        },
        "error_console": {
            "class": "logging.StreamHandler",
            "level": "ERROR",
            "formatter": default_formatter,
            "stream": sys.stderr,
            "filters": ["context"],
        },
        "security_console": {
            "class": "logging.StreamHandler",
            "level": "INFO",
            "formatter": default_formatter,
            "stream": sys.stdout,
            "filters": ["context"],
        },
    }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "filters": {
            "context": {"()": "folioguard.app.core.logging.ContextFilter"},
        },
        "handlers": handlers,
        "loggers": {
            "folioguard": {
                "level": log_level,
                "handlers": ["console", "error_console"],
                "propagate": False,
            },
            SECURITY_LOGGER_NAME: {
                "level": "INFO",
                "handlers": ["security_console"],
                "propagate": False,
            },
            "uvicorn": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False,
            },
        },
        "root": {
            "level": log_level,
            "handlers": ["console"],
        },
    }


def setup_logging(async_security_log: bool = True) -> None:
    """Configure logging for the application.

    Args:
        async_security_log: Write security events from a background thread
    """
    logging.config.dictConfig(get_logging_config())

    if async_security_log:
        make_logger_async(logging.getLogger(SECURITY_LOGGER_NAME))

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def shutdown_logging() -> None:
    """Flush the security log writer."""
    shutdown_async_logging(logging.getLogger(SECURITY_LOGGER_NAME))


def get_logger(name: str = "folioguard") -> logging.Logger:
    """Get a logger instance with the specified name."""
    return logging.getLogger(name)


def get_log_context(
    request_id: Optional[str] = None,
    identifier: Optional[str] = None,
    event_kind: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Create a log context dictionary for use with the extra parameter.

    Example:
        >>> logger.warning(
        ...     "Request rejected",
        ...     extra=get_log_context(identifier="1.2.3.4", event_kind="rate_limit")
        ... )
    """
    context = {
        "request_id": request_id,
        "identifier": identifier,
        "event_kind": event_kind,
    }
    context.update(extra)
    return {k: v for k, v in context.items() if v is not None}
