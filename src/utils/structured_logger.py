"""
Structured JSON logging with request ID tracing.

This module provides:
- JSON-formatted log output for machine parsing
- Request and user ID propagation via contextvars (async-safe)
- An optional access log written to a file, one line per request

Usage:
    from src.utils.structured_logger import setup_structured_logging, set_request_id

    setup_structured_logging(level="INFO", json_output=True)
    set_request_id("abc-123")
    logger = logging.getLogger(__name__)
    logger.info("Listing created", extra={"listing_id": 42})
"""

import logging
import json
import sys
from datetime import datetime, timezone
from contextvars import ContextVar
from typing import Optional, Any, Dict

ACCESS_LOGGER_NAME = "marketplace.access"

request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar('user_id', default=None)


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def clear_request_id() -> None:
    request_id_var.set(None)


def set_user_id(user_id: str) -> None:
    """Set authenticated user ID for current context."""
    user_id_var.set(user_id)


def get_user_id() -> Optional[str]:
    return user_id_var.get()


def clear_user_id() -> None:
    user_id_var.set(None)


# Standard LogRecord attributes excluded from "extra"
_STANDARD_ATTRS = {
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'pathname', 'process', 'processName', 'relativeCreated',
    'stack_info', 'exc_info', 'exc_text', 'thread', 'threadName',
    'message', 'taskName'
}


class JSONFormatter(logging.Formatter):
    """JSON log formatter with request_id and user_id injection.

    {
        "timestamp": "2026-01-21T15:30:00.123456Z",
        "level": "INFO",
        "logger": "module.name",
        "message": "Log message",
        "request_id": "abc-123",
        "user_id": "42",
        "service": "marketplace-api",
        "extra": {...}
    }
    """

    def __init__(self, service_name: str = "marketplace-api"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": get_request_id(),
            "user_id": get_user_id(),
            "service": self.service_name,
            "source": {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        extra_fields = {}
        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS or key.startswith('_'):
                continue
            try:
                json.dumps(value)
                extra_fields[key] = value
            except (TypeError, ValueError):
                extra_fields[key] = str(value)

        if extra_fields:
            log_data["extra"] = extra_fields

        return json.dumps(log_data, default=str)


class PlainFormatter(logging.Formatter):
    """Plain text formatter with request_id for development.

    Format: timestamp - logger - level - [request_id] message
    """

    def format(self, record: logging.LogRecord) -> str:
        request_id = get_request_id()
        request_id_str = f"[{request_id}] " if request_id else ""

        timestamp = datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S')

        base_message = f"{timestamp} - {record.name} - {record.levelname} - {request_id_str}{record.getMessage()}"

        if record.exc_info:
            base_message += "\n" + self.formatException(record.exc_info)

        return base_message


class AccessLogFormatter(logging.Formatter):
    """One line per request, close to the combined log format."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, timezone.utc).strftime('%d/%b/%Y:%H:%M:%S +0000')
        return (
            f'{getattr(record, "client_ip", "-")} - {getattr(record, "user_id", None) or "-"} [{timestamp}] '
            f'"{getattr(record, "method", "-")} {getattr(record, "path", "-")}" '
            f'{getattr(record, "status_code", "-")} {getattr(record, "duration_ms", "-")}ms '
            f'"{getattr(record, "user_agent", "-")}" {get_request_id() or "-"}'
        )


def setup_structured_logging(
    level: str = "INFO",
    json_output: bool = True,
    service_name: str = "marketplace-api",
    access_log_file: Optional[str] = None
) -> None:
    """Configure logging for the application.

    Should be called once at application startup.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON format. If False, plain text
        service_name: Service name to include in log entries
        access_log_file: If set, request lines are appended to this file
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers to prevent duplicate logs
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(JSONFormatter(service_name=service_name))
    else:
        handler.setFormatter(PlainFormatter())
    root_logger.addHandler(handler)

    access_logger = logging.getLogger(ACCESS_LOGGER_NAME)
    for existing in access_logger.handlers[:]:
        access_logger.removeHandler(existing)
        existing.close()

    if access_log_file:
        file_handler = logging.FileHandler(access_log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(AccessLogFormatter())
        access_logger.addHandler(file_handler)
        access_logger.setLevel(logging.INFO)
        access_logger.propagate = False
    else:
        access_logger.propagate = True

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("hpack").setLevel(logging.WARNING)
